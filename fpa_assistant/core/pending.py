"""
Pending operation: the dialogue state carried between turns.

A PendingOperation is the only mutable state the assistant owns. It is
created when a command arrives with information missing (or a required
confirmation), accumulates answers turn by turn, and is dropped once
the operation is dispatched, cancelled or superseded.

Each field is held in a FieldSlot so "never asked", "explicitly
skipped", "filled in the form by hand" and "has a value" stay distinct.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from fpa_assistant.core.records import FpaRecord
from fpa_assistant.core.schema import Intent, RecordField, RecordSchema, load_record_schema
from fpa_assistant.core.visibility import is_field_visible


class SlotState(str, Enum):
    """Lifecycle of a single field within a pending operation."""

    UNSET = "unset"
    SKIPPED = "skipped"
    MANUALLY_FILLED = "manually_filled"
    VALUE = "value"


class FieldSlot(BaseModel):
    """A field's state plus its value (only meaningful in VALUE state)."""

    state: SlotState = SlotState.UNSET
    value: str | None = None


class PendingOperation(BaseModel):
    """An in-flight multi-turn command.

    Attributes:
        intent: create, update, delete or comment.
        record: Resolved target record (None until named, always None for create).
        fields: Accumulated field slots keyed by field ID.
        expecting_field: Cursor, the field the next utterance should resolve.
        needs_confirm: Delete only; set before a destructive call can happen.
        target_field: Update only; the field the user asked to change when
            they named it without a value ("change the landowner for fpa 12").
    """

    intent: Intent
    record: FpaRecord | None = None
    fields: dict[str, FieldSlot] = Field(default_factory=dict)
    expecting_field: str | None = None
    needs_confirm: bool = False
    target_field: str | None = None

    # -----------------------------------------------------------------
    # Slot access
    # -----------------------------------------------------------------

    def slot(self, field_id: str) -> FieldSlot:
        return self.fields.get(field_id, FieldSlot())

    def get_value(self, field_id: str) -> str | None:
        slot = self.slot(field_id)
        return slot.value if slot.state == SlotState.VALUE else None

    def has_value(self, field_id: str) -> bool:
        return self.get_value(field_id) is not None

    def is_resolved(self, field_id: str) -> bool:
        """A field is resolved once it has a value, was skipped, or was filled by hand."""
        return self.slot(field_id).state != SlotState.UNSET

    def set_value(self, field_id: str, value: str) -> None:
        self.fields[field_id] = FieldSlot(state=SlotState.VALUE, value=value)

    def skip(self, field_id: str) -> None:
        self.fields[field_id] = FieldSlot(state=SlotState.SKIPPED)

    def mark_manually_filled(self, field_id: str) -> None:
        self.fields[field_id] = FieldSlot(state=SlotState.MANUALLY_FILLED)

    def clear_field(self, field_id: str) -> None:
        self.fields.pop(field_id, None)

    def provided_values(self) -> dict[str, str]:
        """Field values that are actually known, in insertion order."""
        return {
            field_id: slot.value
            for field_id, slot in self.fields.items()
            if slot.state == SlotState.VALUE and slot.value is not None
        }

    def manually_filled_fields(self) -> list[str]:
        return [
            field_id for field_id, slot in self.fields.items()
            if slot.state == SlotState.MANUALLY_FILLED
        ]

    def merge_values(self, values: dict[str, Any], overwrite: bool) -> dict[str, str]:
        """Merge extracted values into the slots.

        Args:
            values: Candidate values keyed by field ID; empty values are ignored.
            overwrite: If True, new values replace existing ones (create);
                otherwise the first non-empty value wins.

        Returns:
            The values that were actually applied.
        """
        applied: dict[str, str] = {}
        for field_id, value in values.items():
            if value is None or str(value).strip() == "":
                continue
            if not overwrite and self.has_value(field_id):
                continue
            self.set_value(field_id, str(value))
            applied[field_id] = str(value)
        return applied

    # -----------------------------------------------------------------
    # Missing-field resolution
    # -----------------------------------------------------------------

    def get_missing_required_fields(self, schema: RecordSchema | None = None) -> list[RecordField]:
        """Required fields not yet resolved, in schema order (identifier first)."""
        schema = schema or load_record_schema()
        return [f for f in schema.required_fields() if not self.is_resolved(f.id)]

    def get_missing_optional_fields(self, schema: RecordSchema | None = None) -> list[RecordField]:
        """Optional fields still worth asking about.

        Status-dependent fields only count once the collected status
        makes them visible.
        """
        schema = schema or load_record_schema()
        values = self.provided_values()
        return [
            f for f in schema.optional_fields()
            if not self.is_resolved(f.id) and is_field_visible(f, values)
        ]


class TurnOutcome(BaseModel):
    """Result of one dialogue or dispatch step.

    Attributes:
        pending: The pending operation to carry into the next turn (None = idle).
        actions: UI actions produced this step, in order.
        dispatch: A completed operation the response planner must execute.
    """

    pending: PendingOperation | None = None
    actions: list[dict[str, Any]] = Field(default_factory=list)
    dispatch: PendingOperation | None = None
