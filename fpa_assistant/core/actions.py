"""
Assistant action protocol: structured output sent to the chat surface.

Every turn produces an ordered list of action dicts. The UI renders
MESSAGE actions in the transcript, flags form inputs named by
HIGHLIGHT_FIELDS, and switches views on NAVIGATE.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from fpa_assistant.core.schema import View


# --- Action Type Enum ---


class ActionType(str, Enum):
    """All supported assistant action types."""

    MESSAGE = "MESSAGE"
    HIGHLIGHT_FIELDS = "HIGHLIGHT_FIELDS"
    NAVIGATE = "NAVIGATE"


# --- Action Models ---


class ListFilter(BaseModel):
    """Filter applied to the record list view."""

    type: str = Field(..., description="all, status, landowner_type or landowner")
    value: str | None = None
    label: str


class MessageAction(BaseModel):
    """An assistant chat message."""

    action: ActionType = ActionType.MESSAGE
    text: str


class HighlightFieldsAction(BaseModel):
    """Form inputs the UI should visually flag."""

    action: ActionType = ActionType.HIGHLIGHT_FIELDS
    fields: list[str]


class NavigateAction(BaseModel):
    """Request to switch the UI to another view."""

    action: ActionType = ActionType.NAVIGATE
    view: View
    record_id: str | None = None
    list_filter: ListFilter | None = None
    draft: dict[str, str] | None = None


AssistantAction = MessageAction | HighlightFieldsAction | NavigateAction


# --- Action Builders ---


def build_message_action(text: str) -> dict:
    """Build a MESSAGE action dict."""
    return MessageAction(text=text).model_dump(mode="json")


def build_highlight_action(fields: list[str]) -> dict:
    """Build a HIGHLIGHT_FIELDS action dict, dropping duplicates but keeping order."""
    return HighlightFieldsAction(fields=list(dict.fromkeys(fields))).model_dump(mode="json")


def build_navigate_action(
    view: View,
    record_id: str | None = None,
    list_filter: ListFilter | None = None,
    draft: dict[str, str] | None = None,
) -> dict:
    """Build a NAVIGATE action dict.

    Args:
        view: Target view.
        record_id: Record to show (detail/edit views).
        list_filter: Filter for the list view.
        draft: Pre-filled field values for the edit view.

    Returns:
        A dict representing the action JSON.
    """
    action = NavigateAction(view=view, record_id=record_id, list_filter=list_filter, draft=draft)
    return action.model_dump(mode="json", exclude_none=True)


def messages_from(actions: list[dict[str, Any]]) -> list[str]:
    """Texts of all MESSAGE actions, in order."""
    return [a["text"] for a in actions if a.get("action") == ActionType.MESSAGE.value]
