import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tools.errors import ValidationError
from tools.messages import get_message
from tools.models import LeadRecord

# Practical subset of RFC 5322
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

FULL_NAME_MIN = 2
FULL_NAME_MAX = 100
EMAIL_MAX = 254
COMPANY_MAX = 200


@dataclass(frozen=True)
class Problem:
    field: str
    message: str
    code: str

    def to_dict(self) -> Dict[str, str]:
        return {"status": "error", "message": self.message, "code": self.code, "field": self.field}

    def to_error(self) -> ValidationError:
        return ValidationError(self.field, self.message, self.code)


@dataclass
class ValidationResult:
    accepted: bool
    problems: List[Problem] = field(default_factory=list)
    lead: Optional[LeadRecord] = None

    @property
    def first_problem(self) -> Optional[Problem]:
        return self.problems[0] if self.problems else None


def _text(value: Any) -> str:
    """Trimmed string value, or '' for anything that is not a string."""
    return value.strip() if isinstance(value, str) else ""


def _missing(field_name: str) -> Problem:
    msg = get_message("VALIDATION", "MISSING_REQUIRED_FIELD")
    return Problem(field_name, msg["message"], msg["code"])


def _invalid_email() -> Problem:
    msg = get_message("VALIDATION", "INVALID_EMAIL")
    return Problem("email", msg["message"], msg["code"])


def validate_full_name(value: Any) -> Optional[Problem]:
    name = _text(value)
    if not name:
        return _missing("full_name")
    if len(name) < FULL_NAME_MIN:
        return Problem("full_name", f"Full name must be at least {FULL_NAME_MIN} characters", "VALIDATION_ERROR")
    if len(name) > FULL_NAME_MAX:
        return Problem("full_name", "Full name is too long", "VALIDATION_ERROR")
    return None


def validate_email(value: Any) -> Optional[Problem]:
    email = _text(value)
    if not email:
        return _missing("email")
    if not EMAIL_PATTERN.match(email):
        return _invalid_email()
    if ".." in email or email.startswith(".") or email.endswith("."):
        return _invalid_email()
    if len(email) > EMAIL_MAX:
        return Problem("email", "Email address is too long", "VALIDATION_ERROR")
    return None


def validate_message(value: Any) -> Optional[Problem]:
    if not _text(value):
        return _missing("message")
    return None


def validate_company(value: Any) -> Optional[Problem]:
    if len(_text(value)) > COMPANY_MAX:
        return Problem("company", "Company name is too long", "VALIDATION_ERROR")
    return None


def _optional(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def validate_lead(raw: Dict[str, Any]) -> ValidationResult:
    """
    Validate a raw lead submission.

    Every field is checked independently and the first failing rule per
    field is reported. Problems are ordered full_name, email, message,
    company. On success the result carries the trimmed LeadRecord.
    """
    raw = raw or {}
    checks = [
        validate_full_name(raw.get("full_name")),
        validate_email(raw.get("email")),
        validate_message(raw.get("message")),
        validate_company(raw.get("company")),
    ]
    problems = [problem for problem in checks if problem is not None]
    if problems:
        return ValidationResult(accepted=False, problems=problems)

    lead = LeadRecord(
        full_name=_text(raw.get("full_name")),
        email=_text(raw.get("email")),
        message=_text(raw.get("message")),
        company=_optional(raw.get("company")),
        budget=_optional(raw.get("budget")),
        timeline=_optional(raw.get("timeline")),
        source=_optional(raw.get("source")),
    )
    return ValidationResult(accepted=True, lead=lead)
