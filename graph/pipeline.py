import asyncio
import os
import time
from typing import Any, Dict, Optional, Set

from langgraph.graph import END, START, StateGraph
from loguru import logger

from graph.nodes.complete import complete
from graph.nodes.enrich import enrich
from graph.nodes.patch import patch
from graph.nodes.persist import persist
from graph.nodes.validate import validate
from graph.state import PipelineDeps, PipelineState
from tools.errors import InternalError
from tools.progress import ProgressSnapshot, ProgressStore, new_session_id

DEFAULT_STAGE_DELAY = 0.3


def build_workflow():
    """Build the lead submission workflow."""
    workflow = StateGraph(PipelineState)

    workflow.add_node("validate", validate)
    workflow.add_node("persist", persist)
    workflow.add_node("enrich", enrich)
    workflow.add_node("patch", patch)
    workflow.add_node("complete", complete)

    workflow.add_edge(START, "validate")

    # Validation and persistence failures are fatal; the failing node has
    # already published the error snapshot.
    def stop_on_error(state: PipelineState) -> str:
        return "errored" if state.get("status") == "errored" else "continue"

    workflow.add_conditional_edges("validate", stop_on_error, {"errored": END, "continue": "persist"})
    workflow.add_conditional_edges("persist", stop_on_error, {"errored": END, "continue": "enrich"})

    # Enrichment failures are not: skip the patch and finish
    def after_enrich(state: PipelineState) -> str:
        return "patch" if state.get("enrichment") else "complete"

    workflow.add_conditional_edges("enrich", after_enrich, {"patch": "patch", "complete": "complete"})
    workflow.add_edge("patch", "complete")
    workflow.add_edge("complete", END)

    return workflow.compile()


class LeadPipeline:
    """
    Runs lead submissions out of band and reports progress per session.

    ``submit`` returns a session id immediately and schedules ``run`` on
    the event loop. Subscribers follow the run through the progress store.
    """

    def __init__(
        self,
        progress: ProgressStore,
        store: Any,
        enricher: Any,
        stage_delay: Optional[float] = None,
    ):
        if stage_delay is None:
            stage_delay = float(os.getenv("PIPELINE_STAGE_DELAY", DEFAULT_STAGE_DELAY))
        self.progress = progress
        self.deps = PipelineDeps(progress=progress, store=store, enricher=enricher, stage_delay=stage_delay)
        self.graph = build_workflow()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    def submit(self, raw: Dict[str, Any]) -> str:
        """Start a run for ``raw`` without waiting for it. Must be called from the event loop."""
        session_id = new_session_id()
        self.progress.set(session_id, ProgressSnapshot.starting())

        task = asyncio.create_task(self.run(session_id, raw), name=f"lead-pipeline-{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info(f"Accepted lead submission, session {session_id}")
        return session_id

    async def run(self, session_id: str, raw: Dict[str, Any]) -> PipelineState:
        """
        Execute the workflow for one submission.

        Never raises: unexpected failures are logged and published as an
        internal-error snapshot unless the run already reached a terminal
        snapshot.
        """
        start_time = time.time()
        initial_state: PipelineState = {"session_id": session_id, "raw": raw, "status": "running", "errors": []}

        try:
            result = await self.graph.ainvoke(initial_state, config={"configurable": {"deps": self.deps}})
        except Exception as e:
            logger.exception(f"Pipeline run {session_id} crashed: {e}")
            current = self.progress.get(session_id)
            if current is None or not current.is_terminal:
                error = InternalError()
                self.progress.update(session_id, ProgressSnapshot.failed(error.message, error.code))
            return {**initial_state, "status": "errored", "errors": [f"internal_error: {e}"]}

        processing_time = time.time() - start_time
        logger.info(
            f"Pipeline run {session_id} finished in {processing_time:.2f}s: "
            f"status={result.get('status')} record={result.get('record_id')}"
        )
        return result

    async def drain(self) -> None:
        """Wait for in-flight runs to finish."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} pipeline run(s) to finish")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
