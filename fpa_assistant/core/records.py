"""
FPA record model and the record-store collaborator interface.

The assistant never mutates records itself. It reads them for entity
resolution and context, and asks a RecordStore to create, update or
delete. A store may also expose an editing surface (`can_open_editor`);
when it does, updates are handed off as pre-filled drafts instead of
being written directly.
"""

import logging
import threading
import uuid
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator

from fpa_assistant.core.schema import (
    ApplicationStatus,
    ApprovedActivity,
    LandownerType,
)
from fpa_assistant.core.utils import normalize_identifier, parse_date

logger = logging.getLogger(__name__)


# --- Errors ---


class RecordStoreError(Exception):
    """Base class for failures reported by a record store."""


class DuplicateRecordError(RecordStoreError):
    """Raised when creating a record whose FPA number already exists."""

    def __init__(self, fpa_number: str):
        self.fpa_number = fpa_number
        super().__init__(f"FPA number {fpa_number} already exists.")


class RecordNotFoundError(RecordStoreError):
    """Raised when updating or deleting a record that does not exist."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"FPA record '{record_id}' was not found.")


# --- Record model ---


def _check_choice(value: str, allowed: type[Any], name: str) -> str:
    if value and value not in {member.value for member in allowed}:
        raise ValueError(f"Invalid {name}: '{value}'")
    return value


class FpaRecord(BaseModel):
    """A Forest Practice Application as stored by the external record store.

    Empty strings mean "not set", matching the store's representation.
    """

    id: str
    fpa_number: str = Field(..., min_length=1)
    landowner: str = ""
    timber_sale_name: str = ""
    landowner_type: str = ""
    application_status: str = ""
    decision_deadline: str = ""
    expiration_date: str = ""
    approved_activity: str = ""
    notes: str = ""

    @field_validator("landowner_type")
    @classmethod
    def _valid_landowner_type(cls, value: str) -> str:
        return _check_choice(value, LandownerType, "landowner type")

    @field_validator("application_status")
    @classmethod
    def _valid_status(cls, value: str) -> str:
        return _check_choice(value, ApplicationStatus, "application status")

    @field_validator("approved_activity")
    @classmethod
    def _valid_activity(cls, value: str) -> str:
        return _check_choice(value, ApprovedActivity, "approved activity")

    @field_validator("decision_deadline", "expiration_date")
    @classmethod
    def _valid_date(cls, value: str) -> str:
        if value and parse_date(value) is None:
            raise ValueError(f"Invalid date: '{value}'")
        return value

    def field_values(self) -> dict[str, str]:
        """All field values keyed by field ID (excludes the store id)."""
        return self.model_dump(exclude={"id"})


def find_by_fpa_number(fpa_number: str | None, records: list[FpaRecord]) -> FpaRecord | None:
    """Return the record whose FPA number matches after normalization."""
    target = normalize_identifier(fpa_number)
    if not target:
        return None
    for record in records:
        if normalize_identifier(record.fpa_number) == target:
            return record
    return None


# --- Store interface ---


@runtime_checkable
class RecordStore(Protocol):
    """Operations the assistant consumes from the persistence layer."""

    can_open_editor: bool

    def list_records(self) -> list[FpaRecord]: ...

    def create_record(self, fields: dict[str, str]) -> FpaRecord: ...

    def update_record(self, record_id: str, fields: dict[str, str]) -> FpaRecord: ...

    def delete_record(self, record_id: str) -> None: ...

    def open_editor(self, draft: dict[str, str]) -> None: ...


class InMemoryRecordStore:
    """Thread-safe in-process record store.

    Backs the HTTP demo app and the test suite. When `editor_enabled` is
    set, `open_editor` records each handed-off draft in `opened_drafts`
    so a UI (or a test) can pick it up.
    """

    def __init__(
        self,
        records: list[FpaRecord | dict[str, Any]] | None = None,
        editor_enabled: bool = False,
    ):
        self._records: dict[str, FpaRecord] = {}
        self._lock = threading.RLock()
        self.can_open_editor = editor_enabled
        self.opened_drafts: list[dict[str, str]] = []
        for record in records or []:
            if isinstance(record, dict):
                record = FpaRecord.model_validate({"id": str(uuid.uuid4()), **record})
            self._records[record.id] = record

    def list_records(self) -> list[FpaRecord]:
        with self._lock:
            return [record.model_copy() for record in self._records.values()]

    def get_record(self, record_id: str) -> FpaRecord | None:
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy() if record else None

    def create_record(self, fields: dict[str, str]) -> FpaRecord:
        with self._lock:
            fpa_number = fields.get("fpa_number", "")
            if find_by_fpa_number(fpa_number, list(self._records.values())):
                raise DuplicateRecordError(fpa_number)
            record = FpaRecord.model_validate({**fields, "id": str(uuid.uuid4())})
            self._records[record.id] = record
        logger.info("Created FPA %s (%s)", record.fpa_number, record.id)
        return record.model_copy()

    def update_record(self, record_id: str, fields: dict[str, str]) -> FpaRecord:
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                raise RecordNotFoundError(record_id)
            merged = {**existing.model_dump(), **fields, "id": record_id}
            record = FpaRecord.model_validate(merged)
            self._records[record_id] = record
        logger.info("Updated FPA %s fields=%s", record.fpa_number, sorted(fields))
        return record.model_copy()

    def delete_record(self, record_id: str) -> None:
        with self._lock:
            if record_id not in self._records:
                raise RecordNotFoundError(record_id)
            record = self._records.pop(record_id)
        logger.info("Deleted FPA %s", record.fpa_number)

    def open_editor(self, draft: dict[str, str]) -> None:
        if not self.can_open_editor:
            raise RecordStoreError("No editing surface is available.")
        with self._lock:
            self.opened_drafts.append(dict(draft))
