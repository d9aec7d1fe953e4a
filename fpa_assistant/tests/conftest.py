"""
Shared test fixtures and helpers for the FPA assistant test suite.

Provides mock chat models (scripted JSON, raw text, raising, hanging),
a small set of sample records, and record-store fixtures.
"""

import asyncio
import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from fpa_assistant.core.actions import ActionType, messages_from
from fpa_assistant.core.records import InMemoryRecordStore

SAMPLE_RECORDS = [
    {
        "fpa_number": "500",
        "landowner": "John Doe",
        "timber_sale_name": "Oak Ridge",
        "landowner_type": "Small",
        "application_status": "In Decision Window",
        "decision_deadline": "2026-03-01",
    },
    {
        "fpa_number": "2024-256",
        "landowner": "Weyer Timber Co",
        "timber_sale_name": "Cedar Flats",
        "landowner_type": "Large",
        "application_status": "Approved",
        "expiration_date": "2027-06-30",
        "approved_activity": "Started",
    },
    {
        "fpa_number": "731",
        "landowner": "Jane Smith",
        "timber_sale_name": "Pine Hollow",
        "application_status": "Withdrawn",
        "notes": "[2025-01-10 09:00] Landowner asked to withdraw",
    },
]


# --- Mock LLMs ---


class ScriptedLLM:
    """Returns pre-configured responses in order (dicts are sent as JSON)."""

    def __init__(self, responses: list[dict | str]):
        self.responses = list(responses)
        self.call_count = 0
        self.calls: list[list] = []

    async def ainvoke(self, messages, **kwargs):
        self.call_count += 1
        self.calls.append(list(messages))
        if not self.responses:
            raise RuntimeError("No more responses")
        response = self.responses.pop(0)
        result = MagicMock()
        result.content = json.dumps(response) if isinstance(response, dict) else response
        return result


class ExceptionLLM:
    """Raises an exception on every call."""

    def __init__(self, error_message: str = "LLM service unavailable"):
        self.error_message = error_message
        self.call_count = 0

    async def ainvoke(self, messages, **kwargs):
        self.call_count += 1
        raise RuntimeError(self.error_message)


class HangingLLM:
    """Never answers within any reasonable timeout."""

    def __init__(self, delay_seconds: float = 3600):
        self.delay_seconds = delay_seconds
        self.call_count = 0

    async def ainvoke(self, messages, **kwargs):
        self.call_count += 1
        await asyncio.sleep(self.delay_seconds)
        result = MagicMock()
        result.content = "{}"
        return result


# --- Helpers ---


def texts(actions: list[dict[str, Any]]) -> list[str]:
    """All MESSAGE texts in an action list."""
    return messages_from(actions)


def actions_of(actions: list[dict[str, Any]], action_type: ActionType) -> list[dict[str, Any]]:
    return [a for a in actions if a.get("action") == action_type.value]


# --- Fixtures ---


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore(SAMPLE_RECORDS)


@pytest.fixture
def editor_store() -> InMemoryRecordStore:
    return InMemoryRecordStore(SAMPLE_RECORDS, editor_enabled=True)


@pytest.fixture
def empty_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def records(store):
    return store.list_records()
