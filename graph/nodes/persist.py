from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import PipelineState, add_error, get_deps
from tools.errors import StoreError
from tools.progress import ProgressSnapshot

SAVE_FAILED_MESSAGE = "Failed to save your information. Please try again."


async def persist(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """Create the Airtable record. Store failures end the run."""
    deps = get_deps(config)
    session_id = state["session_id"]
    logger.info(f"Saving lead for session {session_id}")

    await deps.advance(session_id, ProgressSnapshot(30, "Saving your information..."))

    try:
        record_id = await deps.store.create_lead_record(state["lead"])
    except StoreError as e:
        logger.error(f"Airtable save failed for session {session_id}: [{e.code}] {e.message}")
        deps.fail(session_id, ProgressSnapshot.failed(SAVE_FAILED_MESSAGE, e.code))
        return {"status": "errored", "errors": add_error(state, f"persist_failed: {e.code}")}

    logger.info(f"Lead saved to Airtable: {record_id}")
    return {"record_id": record_id}
