import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict

from langchain_core.runnables import RunnableConfig

from tools.models import EnrichmentResult, LeadRecord
from tools.progress import ProgressSnapshot, ProgressStore


class PipelineState(TypedDict, total=False):
    """State shape for one lead submission run."""
    session_id: str
    raw: Dict[str, Any]                     # submitted payload
    lead: LeadRecord                        # set once validation passes
    record_id: Optional[str]                # Airtable record id
    enrichment: Optional[EnrichmentResult]
    status: str                             # "running" | "errored" | "done"
    errors: List[str]


@dataclass
class PipelineDeps:
    """Collaborators handed to every node through the run config."""
    progress: ProgressStore
    store: Any                              # AirtableClient
    enricher: Any                           # LLMClient
    stage_delay: float = 0.0

    async def advance(self, session_id: str, snapshot: ProgressSnapshot) -> None:
        """Publish a stage snapshot, then pause for UX pacing if configured."""
        self.progress.update(session_id, snapshot)
        if self.stage_delay > 0:
            await asyncio.sleep(self.stage_delay)

    def fail(self, session_id: str, snapshot: ProgressSnapshot) -> None:
        self.progress.update(session_id, snapshot)


def get_deps(config: RunnableConfig) -> PipelineDeps:
    return config["configurable"]["deps"]


def add_error(state: PipelineState, message: str) -> List[str]:
    return list(state.get("errors") or []) + [message]
