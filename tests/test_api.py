import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app import create_app
from graph.pipeline import LeadPipeline
from tools.errors import StoreNotFoundError, StoreSchemaError


def read_events(response):
    return [json.loads(line[len("data: "):]) for line in response.text.splitlines() if line.startswith("data: ")]


@pytest.fixture
def pipeline(progress, fake_store, fake_enricher):
    return LeadPipeline(progress, fake_store, fake_enricher, stage_delay=0)


@pytest.fixture
def client(pipeline, monkeypatch):
    monkeypatch.setenv("PROGRESS_POLL_INTERVAL", "0.01")
    with TestClient(create_app(pipeline)) as test_client:
        yield test_client


class TestLeadSubmission:
    def test_accepts_and_returns_session(self, client, sample_lead):
        response = client.post("/lead", json=sample_lead)

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "processing"
        assert body["code"] == "LEAD_PROCESSING"
        assert body["sessionId"]

    def test_progress_stream_ends_with_record(self, client, fake_store, sample_lead):
        session_id = client.post("/lead", json=sample_lead).json()["sessionId"]

        response = client.get(f"/lead/progress/{session_id}")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = read_events(response)
        assert events[0] == {"percent": 0, "message": "Starting...", "isError": False, "result": None}
        assert events[-1]["percent"] == 100
        assert events[-1]["result"] == {"recordId": "rec123", "enriched": True}
        assert len(fake_store.created) == 1

    def test_finished_session_is_gone(self, client, sample_lead):
        session_id = client.post("/lead", json=sample_lead).json()["sessionId"]
        client.get(f"/lead/progress/{session_id}")

        response = client.get(f"/lead/progress/{session_id}")

        assert response.status_code == 404
        assert response.json()["code"] == "SESSION_NOT_FOUND"

    def test_unknown_session(self, client):
        response = client.get("/lead/progress/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "message": "Progress session not found or already completed",
            "code": "SESSION_NOT_FOUND",
        }

    def test_validation_error_arrives_on_stream(self, client, fake_store, sample_lead):
        sample_lead["email"] = "not-an-email"
        session_id = client.post("/lead", json=sample_lead).json()["sessionId"]

        events = read_events(client.get(f"/lead/progress/{session_id}"))

        assert events[-1]["isError"] is True
        assert events[-1]["message"] == "Invalid email format"
        assert events[-1]["result"] == {"code": "INVALID_EMAIL", "field": "email"}
        assert fake_store.created == []

    @pytest.mark.parametrize("body", ["not json", "[1, 2, 3]", '"just a string"'])
    def test_rejects_non_object_body(self, client, body):
        response = client.post("/lead", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"


class TestSyncSubmission:
    def test_saves_lead(self, client, sample_lead):
        response = client.post("/lead/sync", json=sample_lead)

        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "Lead captured successfully",
            "code": "LEAD_CAPTURED",
            "data": {"leadId": "rec123"},
        }

    def test_reports_first_problem(self, client):
        response = client.post("/lead/sync", json={"full_name": "A", "email": "bad"})

        assert response.status_code == 400
        body = response.json()
        assert body["field"] == "full_name"
        assert body["message"] == "Full name must be at least 2 characters"

    def test_store_failure_is_bad_gateway(self, client, failing_store, sample_lead, pipeline):
        pipeline.deps.store = failing_store

        response = client.post("/lead/sync", json=sample_lead)

        assert response.status_code == 502
        assert response.json()["code"] == "AIRTABLE_CONNECTION_ERROR"

    def test_schema_failure_keeps_store_message(self, client, fake_store, sample_lead):
        fake_store.create_error = StoreSchemaError("Unknown field name: \"Budget\"")

        response = client.post("/lead/sync", json=sample_lead)

        assert response.status_code == 502
        assert response.json()["code"] == "AIRTABLE_VALIDATION_ERROR"
        assert response.json()["message"] == "Unknown field name: \"Budget\""


class TestAdminLookup:
    def test_returns_record(self, client):
        response = client.get("/admin/leads/rec123")

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == "LEAD_RETRIEVED"
        assert body["data"]["id"] == "rec123"

    def test_missing_record(self, client, fake_store):
        fake_store.get_lead_record = AsyncMock(side_effect=StoreNotFoundError())

        response = client.get("/admin/leads/recMISSING")

        assert response.status_code == 404
        assert response.json()["code"] == "AIRTABLE_NOT_FOUND"


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["airtable"] == "configured"
        assert body["services"]["openai"] == "configured"

    def test_unknown_route(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"status": "error", "message": "Resource not found", "code": "NOT_FOUND"}
