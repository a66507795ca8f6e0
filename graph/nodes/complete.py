from langchain_core.runnables import RunnableConfig
from loguru import logger

from graph.state import PipelineState, get_deps
from tools.progress import ProgressSnapshot


async def complete(state: PipelineState, config: RunnableConfig) -> PipelineState:
    deps = get_deps(config)
    record_id = state.get("record_id")
    result = {"recordId": record_id, "enriched": bool(state.get("enrichment"))}

    deps.progress.update(state["session_id"], ProgressSnapshot(100, "Complete", result=result))
    logger.info(f"Pipeline complete for record {record_id} ({len(state.get('errors') or [])} non-fatal errors)")
    return {"status": "done"}
