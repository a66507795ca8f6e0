from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import PipelineState, add_error, get_deps
from tools.progress import ProgressSnapshot
from tools.validation import validate_lead


async def validate(state: PipelineState, config: RunnableConfig) -> PipelineState:
    """Validate the raw submission; the first problem ends the run."""
    deps = get_deps(config)
    session_id = state["session_id"]
    logger.info(f"Starting validation for session {session_id}")

    await deps.advance(session_id, ProgressSnapshot(10, "Validating your information..."))

    result = validate_lead(state.get("raw") or {})
    if not result.accepted:
        problem = result.first_problem
        logger.warning(f"Validation failed for session {session_id}: {problem.field} ({problem.code})")
        deps.fail(session_id, ProgressSnapshot.failed(problem.message, problem.code, problem.field))
        return {
            "status": "errored",
            "errors": add_error(state, f"validation_failed: {problem.field}: {problem.message}"),
        }

    logger.info(f"Validation passed for {result.lead.email}")
    return {"lead": result.lead}
