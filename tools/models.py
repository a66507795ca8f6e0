from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, TypedDict

LEAD_FIELDS = ("full_name", "email", "company", "budget", "timeline", "message", "source")


@dataclass(frozen=True)
class LeadRecord:
    """Validated lead submission. Optional fields are None when absent."""
    full_name: str
    email: str
    message: str
    company: Optional[str] = None
    budget: Optional[Any] = None
    timeline: Optional[Any] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EnrichmentResult(TypedDict):
    """AI enrichment attached to a lead."""
    score: str                # "Hot" | "Warm" | "Cold"
    summary: str
    tags: List[str]           # 3-8 distinct values from AI_TAG_OPTIONS
    next_action: str
    follow_up_subject: str
    follow_up_body: str
