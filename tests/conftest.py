import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tools.errors import StoreConnectionError
from tools.progress import ProgressStore

SAMPLE_ENRICHMENT = {
    "score": "Hot",
    "summary": "Jane needs help automating lead follow-ups.",
    "tags": ["Default", "Email", "Zapier"],
    "next_action": "Book a discovery call this week",
    "follow_up_subject": "Quick question about your automation",
    "follow_up_body": "Hi Jane, thanks for reaching out. Happy to help with your automation. Would a short call work? Or we can keep going by email.",
}


class FakeStore:
    """Records Airtable calls instead of making them."""

    configured = True

    def __init__(self, record_id="rec123", create_error=None, patch_error=None):
        self.record_id = record_id
        self.create_error = create_error
        self.patch_error = patch_error
        self.created = []
        self.patched = []

    async def create_lead_record(self, lead):
        self.created.append(lead)
        if self.create_error:
            raise self.create_error
        return self.record_id

    async def update_lead_with_ai(self, record_id, enrichment):
        self.patched.append((record_id, enrichment))
        if self.patch_error:
            raise self.patch_error
        return {"id": record_id, "fields": {}}

    async def get_lead_record(self, record_id):
        return {"id": record_id, "fields": {"Full Name": "Jane Doe"}}


class FakeEnricher:
    configured = True

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else dict(SAMPLE_ENRICHMENT)
        self.error = error
        self.calls = []

    async def enrich_lead(self, lead):
        self.calls.append(lead)
        if self.error:
            raise self.error
        return self.result


class RecordingProgressStore(ProgressStore):
    """Progress store that keeps every accepted write."""

    def __init__(self, ttl=0):
        super().__init__(ttl=ttl)
        self.history = {}

    def set(self, session_id, snapshot):
        super().set(session_id, snapshot)
        self.history.setdefault(session_id, []).append(snapshot)

    def update(self, session_id, snapshot):
        written = super().update(session_id, snapshot)
        if written:
            self.history.setdefault(session_id, []).append(snapshot)
        return written


@pytest.fixture
def sample_lead():
    return {
        "full_name": "Jane Doe",
        "email": "jane@acme.com",
        "message": "Need automation help",
    }


@pytest.fixture
def progress():
    return RecordingProgressStore()


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def failing_store():
    return FakeStore(create_error=StoreConnectionError())


@pytest.fixture
def fake_enricher():
    return FakeEnricher()


@pytest.fixture
def sample_enrichment():
    return dict(SAMPLE_ENRICHMENT)
