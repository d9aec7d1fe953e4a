"""
Tests for the FPA record model and the in-memory record store.

Tests cover:
- Record validation (choices, dates, empty strings allowed)
- Duplicate detection on normalized FPA numbers
- Update/delete of missing records
- The optional editing surface
"""

import pytest
from pydantic import ValidationError

from fpa_assistant.core.records import (
    DuplicateRecordError,
    FpaRecord,
    InMemoryRecordStore,
    RecordNotFoundError,
    RecordStoreError,
    find_by_fpa_number,
)


class TestFpaRecord:
    """Tests for FpaRecord validation."""

    def test_defaults_are_empty(self):
        record = FpaRecord(id="1", fpa_number="500")
        assert record.landowner == ""
        assert record.application_status == ""

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            FpaRecord(id="1", fpa_number="500", application_status="Maybe")

    def test_invalid_date(self):
        with pytest.raises(ValidationError):
            FpaRecord(id="1", fpa_number="500", expiration_date="not a date")

    def test_identifier_required(self):
        with pytest.raises(ValidationError):
            FpaRecord(id="1", fpa_number="")

    def test_field_values_excludes_id(self):
        values = FpaRecord(id="1", fpa_number="500").field_values()
        assert "id" not in values
        assert values["fpa_number"] == "500"


class TestFindByFpaNumber:
    """Tests for normalized identifier lookup."""

    def test_normalized_match(self):
        records = [FpaRecord(id="1", fpa_number="FPA-2024 777")]
        assert find_by_fpa_number("fpa2024777", records) is records[0]

    def test_no_match(self):
        records = [FpaRecord(id="1", fpa_number="500")]
        assert find_by_fpa_number("5000", records) is None

    def test_blank(self):
        assert find_by_fpa_number("", [FpaRecord(id="1", fpa_number="500")]) is None


class TestInMemoryRecordStore:
    """Tests for the in-memory store."""

    def test_create_and_list(self, empty_store):
        record = empty_store.create_record({"fpa_number": "900", "landowner": "Ann"})
        assert record.id
        assert [r.fpa_number for r in empty_store.list_records()] == ["900"]

    def test_duplicate_rejected(self, store):
        with pytest.raises(DuplicateRecordError, match="FPA number 500 already exists"):
            store.create_record({"fpa_number": "500"})

    def test_duplicate_is_store_error(self, store):
        with pytest.raises(RecordStoreError):
            store.create_record({"fpa_number": " 500 "})

    def test_update(self, store, records):
        target = records[0]
        updated = store.update_record(target.id, {"application_status": "Approved"})
        assert updated.application_status == "Approved"
        assert store.get_record(target.id).application_status == "Approved"

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update_record("missing", {"landowner": "x"})

    def test_delete(self, store, records):
        store.delete_record(records[0].id)
        assert store.get_record(records[0].id) is None

    def test_delete_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            store.delete_record("missing")

    def test_editor_disabled(self, store):
        assert store.can_open_editor is False
        with pytest.raises(RecordStoreError):
            store.open_editor({"fpa_number": "500"})

    def test_editor_enabled(self, editor_store):
        editor_store.open_editor({"fpa_number": "500"})
        assert editor_store.opened_drafts == [{"fpa_number": "500"}]

    def test_seeded_records(self, records):
        seeded = InMemoryRecordStore(records)
        assert len(seeded.list_records()) == len(records)
        assert seeded.get_record(records[0].id).fpa_number == records[0].fpa_number

    def test_list_returns_copies(self, store):
        first = store.list_records()[0]
        first.landowner = "Changed"
        assert store.list_records()[0].landowner != "Changed"
