from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import PipelineState, add_error, get_deps
from tools.progress import ProgressSnapshot


async def enrich(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """Enrich the saved lead with AI scoring, summary and follow-up draft."""
    deps = get_deps(config)
    session_id = state["session_id"]
    logger.info(f"Starting enrichment for record {state.get('record_id')}")

    try:
        enrichment = await deps.enricher.enrich_lead(state["lead"])
    except Exception as e:
        # The lead is already saved; enrichment is best effort
        error_msg = f"enrich_failed: {getattr(e, 'code', type(e).__name__)}: {e}"
        logger.warning(f"Enrichment failed for record {state.get('record_id')}, skipping patch: {e}")
        return {"enrichment": None, "errors": add_error(state, error_msg)}

    await deps.advance(session_id, ProgressSnapshot(60, "Lead analyzed"))
    logger.info(f"Enrichment completed for record {state.get('record_id')}: {enrichment['score']}")
    return {"enrichment": enrichment}
