import json
import os
from typing import Any, Optional

import openai
from loguru import logger

from tools.errors import (
    EnrichmentConfigError,
    EnrichmentParseError,
    EnrichmentProviderError,
    EnrichmentShapeError,
)
from tools.models import EnrichmentResult, LeadRecord

DEFAULT_MODEL = "gpt-4o-mini"

LEAD_SCORES = ("Hot", "Warm", "Cold")

AI_TAG_OPTIONS = ("Default", "Make.com", "Zapier", "Email", "Phone", "Other")

MIN_TAGS = 3
MAX_TAGS = 8

REQUIRED_KEYS = ("score", "summary", "tags", "next_action", "follow_up_subject", "follow_up_body")

ENRICHMENT_PROMPT = """You are a marketing ops + sales assistant.
Classify and summarize this inbound lead for a CRM.

Rules:
- Score "Hot" if budget is clear OR urgency is high OR strong buying intent.
- Score "Warm" if interest is clear but budget/urgency is moderate.
- Score "Cold" if vague, no budget, no clear intent.

Tags (select 3-8 from these options only):
- "Default" - Use for general leads without specific tool mentions
- "Make.com" - If lead mentions Make.com or automation with Make
- "Zapier" - If lead mentions Zapier or Zapier integrations
- "Email" - If lead mentions email marketing, email automation, or email workflows
- "Phone" - If lead mentions phone calls, call tracking, or phone-based processes
- "Other" - For any other specific tools, platforms, or use cases mentioned

Select tags based on what the lead mentions in their message. You can select multiple tags.
Keep summary to 1 sentence.
Provide a specific, actionable next action recommendation.

Follow-up Email:
Generate a friendly, human follow-up email that:
- Is short and concise
- Feels personal and not salesy
- Mentions their specific intent/request from the message
- Offers to help with a call or continue via email
- Use the lead's first name from "Full Name" field
- Keep subject line short and friendly (under 60 characters)
- Keep body to 3-4 sentences maximum"""

ENRICHMENT_SCHEMA = {
    "name": "lead_enrichment",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "score": {
                "type": "string",
                "enum": list(LEAD_SCORES),
                "description": "Lead quality score: Hot, Warm, or Cold",
            },
            "summary": {
                "type": "string",
                "description": "One sentence summary of the lead",
            },
            "tags": {
                "type": "array",
                "items": {"type": "string", "enum": list(AI_TAG_OPTIONS)},
                "minItems": MIN_TAGS,
                "maxItems": MAX_TAGS,
                "description": "Tags selected from predefined options: " + ", ".join(AI_TAG_OPTIONS),
            },
            "next_action": {
                "type": "string",
                "description": "Recommended next action for this lead",
            },
            "follow_up_subject": {
                "type": "string",
                "description": "Short, friendly email subject line for follow-up (under 60 characters)",
            },
            "follow_up_body": {
                "type": "string",
                "description": "Friendly, human email body for follow-up (3-4 sentences, mentions their intent)",
            },
        },
        "required": list(REQUIRED_KEYS),
    },
}


def extract_first_name(full_name: Optional[str]) -> str:
    if not full_name:
        return ""
    parts = full_name.strip().split()
    return parts[0] if parts else ""


def build_lead_context(lead: LeadRecord) -> str:
    """Build the user message describing the lead."""
    def show(value: Any) -> str:
        return "" if value is None else str(value)

    return f"""Lead:
Full name: {show(lead.full_name)}
First name: {extract_first_name(lead.full_name)}
Email: {show(lead.email)}
Company: {show(lead.company)}
Budget: {show(lead.budget)}
Timeline: {show(lead.timeline)}
Message: {show(lead.message)}
Source: {show(lead.source)}"""


def parse_enrichment(content: Optional[str]) -> EnrichmentResult:
    """
    Parse and check a structured completion against ENRICHMENT_SCHEMA.

    Raises:
        EnrichmentParseError: content is missing, not a JSON object, or
            carries values outside the schema (score enum, tag vocabulary,
            tag count, non-string text).
        EnrichmentShapeError: a required key is missing or empty.
    """
    if not content:
        raise EnrichmentParseError("No content received from OpenAI")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise EnrichmentParseError() from e

    if not isinstance(data, dict):
        raise EnrichmentParseError("OpenAI response is not a JSON object")

    missing = [key for key in REQUIRED_KEYS if not data.get(key)]
    if missing:
        raise EnrichmentShapeError(f"Enrichment response is missing fields: {missing}")

    for key in REQUIRED_KEYS:
        if key != "tags" and not isinstance(data[key], str):
            raise EnrichmentParseError(f"Enrichment field '{key}' must be a string")

    if data["score"] not in LEAD_SCORES:
        raise EnrichmentParseError(f"Unknown lead score: {data['score']}")

    tags = data["tags"]
    if not isinstance(tags, list) or any(tag not in AI_TAG_OPTIONS for tag in tags):
        raise EnrichmentParseError(f"Tags must be drawn from {list(AI_TAG_OPTIONS)}")

    # Tags are a set; keep first-seen order
    unique_tags = list(dict.fromkeys(tags))
    if not MIN_TAGS <= len(unique_tags) <= MAX_TAGS:
        raise EnrichmentParseError(f"Expected {MIN_TAGS}-{MAX_TAGS} distinct tags, got {len(unique_tags)}")

    return EnrichmentResult(
        score=data["score"],
        summary=data["summary"].strip(),
        tags=unique_tags,
        next_action=data["next_action"].strip(),
        follow_up_subject=data["follow_up_subject"].strip(),
        follow_up_body=data["follow_up_body"].strip(),
    )


class LLMClient:
    """OpenAI client for lead scoring, summarization and follow-up drafting."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client: Any = None):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self._client = client

        if not self.api_key and client is None:
            logger.warning("No OpenAI API key provided, lead enrichment will be skipped")

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise EnrichmentConfigError()
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def enrich_lead(self, lead: LeadRecord) -> EnrichmentResult:
        """
        Score, summarize and draft a follow-up for a lead.

        Args:
            lead: Validated lead

        Returns:
            EnrichmentResult checked against ENRICHMENT_SCHEMA
        """
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ENRICHMENT_PROMPT},
                    {"role": "user", "content": build_lead_context(lead)},
                ],
                response_format={"type": "json_schema", "json_schema": ENRICHMENT_SCHEMA},
                temperature=0.3,
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI completion failed: {e}")
            raise EnrichmentProviderError(str(e) or None) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        enrichment = parse_enrichment(content)

        logger.info(f"LLM enrichment completed: {enrichment['score']} ({', '.join(enrichment['tags'])})")
        return enrichment

