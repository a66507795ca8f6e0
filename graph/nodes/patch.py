from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import PipelineState, add_error, get_deps
from tools.progress import ProgressSnapshot


async def patch(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """Write the enrichment back onto the Airtable record."""
    deps = get_deps(config)
    session_id = state["session_id"]
    record_id = state.get("record_id")

    await deps.advance(session_id, ProgressSnapshot(90, "Updating your record..."))

    try:
        await deps.store.update_lead_with_ai(record_id, state["enrichment"])
        logger.info(f"Enrichment written to record {record_id}")
    except Exception as e:
        error_msg = f"patch_failed: {getattr(e, 'code', type(e).__name__)}: {e}"
        logger.error(f"Failed to write enrichment to record {record_id}: {e}")
        return {"errors": add_error(state, error_msg)}

    return {"status": "running"}
