import os
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx
from loguru import logger

from tools.errors import (
    StoreApiError,
    StoreAuthError,
    StoreConfigError,
    StoreConnectionError,
    StoreError,
    StoreInvalidArgument,
    StoreNotFoundError,
    StoreSchemaError,
    StoreUnknownError,
)
from tools.models import EnrichmentResult, LeadRecord

AIRTABLE_API_BASE = "https://api.airtable.com/v0"

# Form field -> Airtable column
FIELD_MAPPING = {
    "full_name": "Full Name",
    "email": "Email",
    "company": "Company",
    "budget": "Budget",
    "timeline": "Timeline",
    "message": "Message",
    "source": "Source",
}

# Enrichment key -> Airtable column
AI_FIELD_MAPPING = {
    "score": "AI Score",
    "summary": "AI Summary",
    "tags": "AI Tags",
    "next_action": "Next Action",
    "follow_up_subject": "Follow-up Subject",
    "follow_up_body": "Follow-up Body",
}

FOLLOW_UP_SENT_FIELD = "Follow-up Sent"


def build_airtable_fields(lead: Mapping[str, Any], mapping: Mapping[str, str] = FIELD_MAPPING) -> Dict[str, Any]:
    """Map lead values onto Airtable columns, dropping None and empty strings (0 and False are kept)."""
    fields = {}
    for form_field, airtable_field in mapping.items():
        value = lead.get(form_field)
        if value is None or value == "":
            continue
        fields[airtable_field] = value
    return fields


def build_ai_fields(enrichment: Mapping[str, Any], mapping: Mapping[str, str] = AI_FIELD_MAPPING) -> Dict[str, Any]:
    """Project an enrichment result onto Airtable columns."""
    fields = {}
    for key, airtable_field in mapping.items():
        value = enrichment.get(key)
        if not value:
            continue
        # multi-select columns expect a list of option names
        fields[airtable_field] = list(value) if key == "tags" else value
    fields[FOLLOW_UP_SENT_FIELD] = False
    return fields


class AirtableClient:
    """Airtable record store for captured leads."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        table_name: Optional[str] = None,
        timeout: float = 20.0,
    ):
        self.api_key = api_key or os.getenv("AIRTABLE_ACCESS_TOKEN")
        self.base_id = base_id or os.getenv("AIRTABLE_BASE_ID")
        self.table_name = table_name or os.getenv("AIRTABLE_TABLE_NAME")
        self.base_url = AIRTABLE_API_BASE
        self.timeout = timeout

        if not self.configured:
            logger.warning("Airtable configuration is incomplete, lead persistence will fail until it is set")

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.base_id and self.table_name)

    def _assert_config(self) -> None:
        if not self.configured:
            raise StoreConfigError()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, path: str = "") -> str:
        # Table names may contain spaces
        table = quote(self.table_name, safe="")
        return f"{self.base_url}/{self.base_id}/{table}{path}"

    async def create_lead_record(self, lead: LeadRecord) -> str:
        """
        Create a lead record in Airtable.

        Args:
            lead: Validated lead

        Returns:
            The new Airtable record ID
        """
        self._assert_config()
        fields = build_airtable_fields(lead.to_dict())
        record = await self._request("POST", self._url(), json={"fields": fields})
        record_id = record.get("id") if isinstance(record, dict) else None
        if not record_id:
            raise StoreUnknownError("Airtable did not return a record ID")
        logger.info(f"Created Airtable record {record_id}")
        return record_id

    async def update_lead_record(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Patch fields on an existing lead record.

        Args:
            record_id: Airtable record ID
            fields: Airtable column -> value

        Returns:
            Updated record with "id" and "fields"
        """
        self._assert_config()
        if not record_id:
            raise StoreInvalidArgument("recordId is required.")
        if not fields:
            raise StoreInvalidArgument("Fields are required for update.")

        record = await self._request("PATCH", self._url(f"/{record_id}"), json={"fields": fields})
        logger.info(f"Updated Airtable record {record_id}")
        return {"id": record.get("id"), "fields": record.get("fields", {})}

    async def update_lead_with_ai(self, record_id: str, enrichment: EnrichmentResult) -> Dict[str, Any]:
        """Write AI enrichment back onto a lead record."""
        return await self.update_lead_record(record_id, build_ai_fields(enrichment))

    async def get_lead_record(self, record_id: str) -> Dict[str, Any]:
        """Fetch a lead record by ID."""
        self._assert_config()
        if not record_id:
            raise StoreInvalidArgument("recordId is required.")
        return await self._request("GET", self._url(f"/{record_id}"))

    async def _request(self, method: str, url: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=self._get_headers(), json=json)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise self._translate_status_error(e.response) from e
        except httpx.RequestError as e:
            logger.error(f"Airtable request failed without a response: {e}")
            raise StoreConnectionError() from e
        except Exception as e:
            logger.error(f"Unexpected Airtable failure: {e}")
            raise StoreUnknownError() from e

    @staticmethod
    def _api_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message") or error.get("type")
        if isinstance(error, str):
            return error
        return None

    def _translate_status_error(self, response: httpx.Response) -> StoreError:
        status = response.status_code
        api_message = self._api_message(response)
        logger.error(f"Airtable API returned {status}: {api_message or response.text[:200]}")

        if status in (401, 403):
            return StoreAuthError()
        if status == 404:
            return StoreNotFoundError()
        if status == 422:
            return StoreSchemaError(api_message)
        return StoreApiError(api_message, status_code=status)
