"""
Pydantic models for validating/normalizing the command-parser JSON payload.
"""

import re
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from fpa_assistant.core.extractors import capitalize_first, extract_date
from fpa_assistant.core.utils import collapse_whitespace

# Filler words models (and people) put in front of names
_LEADING_FILLER_RE = re.compile(r"^(?:named|called|name|that|is|of|the|a)\s+", re.I)
_NOTE_LEAD_RE = re.compile(r"^(?:that\s+the|that\s+a|that)\s+", re.I)
_NOTE_ARTICLE_RE = re.compile(r"^(?:the|a)\s+", re.I)


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "null", "none", "n/a"}:
        return None
    return value


def clean_name(value: str | None) -> str | None:
    """Strip leading filler words repeatedly and collapse whitespace."""
    if value is None:
        return None
    cleaned = collapse_whitespace(value)
    previous = None
    while cleaned and cleaned != previous:
        previous = cleaned
        cleaned = _LEADING_FILLER_RE.sub("", cleaned)
    return cleaned or None


def clean_note(value: str | None) -> str | None:
    """Drop "that ..." leads and articles, then capitalize."""
    if value is None:
        return None
    cleaned = collapse_whitespace(value)
    cleaned = _NOTE_LEAD_RE.sub("", cleaned)
    cleaned = _NOTE_ARTICLE_RE.sub("", cleaned)
    return capitalize_first(cleaned) or None


class _BasePayload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class CommandFieldsPayload(_BasePayload):
    landowner: str | None = None
    timber_sale_name: str | None = Field(
        default=None, validation_alias=AliasChoices("timber_sale_name", "timberSaleName")
    )
    landowner_type: Literal["Small", "Large"] | None = Field(
        default=None, validation_alias=AliasChoices("landowner_type", "landownerType")
    )
    application_status: Literal[
        "In Decision Window", "Approved", "Withdrawn", "Disapproved", "Closed Out"
    ] | None = Field(
        default=None, validation_alias=AliasChoices("application_status", "applicationStatus")
    )
    approved_activity: Literal["Not Started", "Started", "Completed"] | None = Field(
        default=None, validation_alias=AliasChoices("approved_activity", "approvedActivity")
    )
    decision_deadline: str | None = Field(
        default=None, validation_alias=AliasChoices("decision_deadline", "decisionDeadline")
    )
    expiration_date: str | None = Field(
        default=None, validation_alias=AliasChoices("expiration_date", "expirationDate")
    )
    notes: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _nullify_blanks(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("decision_deadline", "expiration_date")
    @classmethod
    def _iso_date(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = extract_date(value)
        if normalized is None:
            raise ValueError(f"Expected a YYYY-MM-DD date, got '{value}'")
        return normalized

    @field_validator("landowner", "timber_sale_name")
    @classmethod
    def _clean_names(cls, value: str | None) -> str | None:
        return clean_name(value)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: str | None) -> str | None:
        return clean_note(value)


class CommandPayload(_BasePayload):
    intent: Literal[
        "create", "update", "delete", "comment", "view", "list", "navigate", "question", "unknown"
    ]
    fpa_number: str | None = Field(
        default=None, validation_alias=AliasChoices("fpa_number", "fpaNumber")
    )
    fields: CommandFieldsPayload = Field(default_factory=CommandFieldsPayload)
    view: Literal["dashboard", "list", "add", "reports"] | None = None
    response: str | None = None

    @field_validator("fpa_number", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        if isinstance(value, str):
            return value.strip().lstrip("#").strip() or None
        return value

    @field_validator("fields", mode="before")
    @classmethod
    def _fields_default(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("view", "response", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)


def validate_command_payload(payload: dict[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    """Validate and normalize a command-parser payload.

    Returns:
        (normalized payload, None) on success, (None, error message) otherwise.
    """
    if "intent" not in payload:
        return None, "Payload must contain an 'intent'."
    try:
        validated = CommandPayload.model_validate(payload)
    except ValidationError as e:
        return None, str(e)

    data = validated.model_dump(exclude_none=True)
    data["fields"] = {
        k: v for k, v in validated.fields.model_dump(exclude_none=True).items()
        if k in CommandFieldsPayload.model_fields
    }
    return data, None
