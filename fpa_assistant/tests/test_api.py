"""
Integration tests for the FastAPI API layer.

Tests cover:
- POST /api/chat greeting, rule-based conversations and session reuse
- Focused record via context_record_id
- Error responses for empty messages and busy sessions
- POST /api/sessions/reset
- GET /api/records and GET /api/health
- SessionStore expiry and cleanup
"""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import SAMPLE_RECORDS, texts

from fpa_assistant.agent.assistant import AssistantBusyError, ChatAssistant
from fpa_assistant.api.routes import configure_routes, router
from fpa_assistant.core.records import InMemoryRecordStore
from fpa_assistant.core.session import SessionStore


def _create_test_app(record_store=None):
    """Create a test client over a rule-based assistant."""
    app = FastAPI()
    record_store = record_store or InMemoryRecordStore(SAMPLE_RECORDS)
    session_store = SessionStore(
        assistant_factory=lambda: ChatAssistant(record_store),
        timeout_seconds=3600,
    )
    configure_routes(session_store, record_store)
    app.include_router(router, prefix="/api")
    return TestClient(app), session_store, record_store


@pytest.fixture
def client_bundle():
    return _create_test_app()


# --- /api/chat ---


class TestChat:
    """Tests for the POST /api/chat endpoint."""

    def test_greeting_on_new_conversation(self, client_bundle):
        client, session_store, _ = client_bundle
        response = client.post("/api/chat", json={"message": ""})

        assert response.status_code == 200
        data = response.json()
        assert data["conversation_id"]
        assert "📋 Rule-based" in texts(data["actions"])[0]
        assert data["pending"] is None
        assert session_store.count() == 1

    def test_conversation_reuses_session(self, client_bundle):
        client, session_store, record_store = client_bundle

        first = client.post("/api/chat", json={"message": "delete fpa 731"}).json()
        assert first["pending"]["intent"] == "delete"
        assert first["pending"]["needs_confirm"] is True

        second = client.post(
            "/api/chat",
            json={"message": "yes", "conversation_id": first["conversation_id"]},
        ).json()
        assert texts(second["actions"]) == ["🗑️ Deleted FPA 731."]
        assert second["pending"] is None
        assert session_store.count() == 1
        assert all(r.fpa_number != "731" for r in record_store.list_records())

    def test_unknown_conversation_id_starts_new_session(self, client_bundle):
        client, session_store, _ = client_bundle
        response = client.post(
            "/api/chat", json={"message": "help", "conversation_id": "custom-id"}
        )
        assert response.json()["conversation_id"] == "custom-id"
        assert session_store.get_session("custom-id") is not None

    def test_context_record(self, client_bundle):
        client, _, record_store = client_bundle
        record = next(r for r in record_store.list_records() if r.fpa_number == "500")

        response = client.post(
            "/api/chat",
            json={"message": "what is the landowner?", "context_record_id": record.id},
        )
        assert texts(response.json()["actions"]) == ["The landowner for FPA 500 is John Doe."]

    def test_empty_message_on_existing_session(self, client_bundle):
        client, _, _ = client_bundle
        conversation_id = client.post("/api/chat", json={"message": ""}).json()["conversation_id"]

        response = client.post(
            "/api/chat", json={"message": "  ", "conversation_id": conversation_id}
        )
        assert response.status_code == 400

    def test_busy_session_conflict(self, client_bundle):
        client, session_store, _ = client_bundle
        conversation_id, session = session_store.create_session("busy")
        session.assistant = MagicMock()
        session.assistant.submit_utterance.side_effect = AssistantBusyError("Still working")

        response = client.post(
            "/api/chat", json={"message": "help", "conversation_id": conversation_id}
        )
        assert response.status_code == 409

    def test_unexpected_error(self, client_bundle):
        client, session_store, _ = client_bundle
        conversation_id, session = session_store.create_session("broken")
        session.assistant = MagicMock()
        session.assistant.submit_utterance.side_effect = RuntimeError("boom")

        response = client.post(
            "/api/chat", json={"message": "help", "conversation_id": conversation_id}
        )
        assert response.status_code == 500
        assert "boom" in response.json()["detail"]

    def test_malformed_request(self, client_bundle):
        client, _, _ = client_bundle
        response = client.post("/api/chat", json={"message": 42})
        assert response.status_code == 422


# --- Other endpoints ---


class TestSessionReset:
    """Tests for the POST /api/sessions/reset endpoint."""

    def test_reset_existing(self, client_bundle):
        client, session_store, _ = client_bundle
        conversation_id = client.post("/api/chat", json={"message": ""}).json()["conversation_id"]

        response = client.post("/api/sessions/reset", json={"conversation_id": conversation_id})
        assert response.json() == {"success": True, "message": "Session reset"}
        assert session_store.count() == 0

    def test_reset_missing(self, client_bundle):
        client, _, _ = client_bundle
        response = client.post("/api/sessions/reset", json={"conversation_id": "nope"})
        assert response.json() == {"success": False, "message": "Session not found"}


class TestRecordsAndHealth:
    """Tests for GET /api/records and GET /api/health."""

    def test_records(self, client_bundle):
        client, _, _ = client_bundle
        data = client.get("/api/records").json()
        assert [r["fpa_number"] for r in data["records"]] == ["500", "2024-256", "731"]

    def test_health(self, client_bundle):
        client, _, _ = client_bundle
        client.post("/api/chat", json={"message": ""})
        assert client.get("/api/health").json() == {"status": "healthy", "active_sessions": 1}


# --- SessionStore ---


class TestSessionStore:
    """Tests for session lifecycle."""

    def test_expired_session_is_dropped(self):
        assistant = MagicMock()
        store = SessionStore(assistant_factory=lambda: assistant, timeout_seconds=0)
        conversation_id, session = store.create_session()
        session.last_accessed_at -= 10

        assert store.get_session(conversation_id) is None
        assert store.count() == 0
        assistant.close.assert_called_once()

    def test_cleanup_expired(self):
        store = SessionStore(assistant_factory=MagicMock, timeout_seconds=60)
        _, stale = store.create_session("stale")
        store.create_session("fresh")
        stale.last_accessed_at -= 120

        assert store.cleanup_expired() == 1
        assert store.get_session("fresh") is not None
        assert store.get_session("stale") is None
