"""
Tests for pending-operation slots and the conversation log.

Tests cover:
- Tri-state slots (unset, skipped, manually filled, value)
- merge_values overwrite vs first-non-empty-wins
- Missing required/optional field resolution with visibility
- ConversationLog ordering and recent window
"""

from fpa_assistant.core.conversation import ConversationLog
from fpa_assistant.core.pending import PendingOperation, SlotState
from fpa_assistant.core.schema import Intent


class TestSlots:
    """Tests for per-field slot state."""

    def test_unset_by_default(self):
        op = PendingOperation(intent=Intent.CREATE)
        assert op.slot("landowner").state == SlotState.UNSET
        assert not op.is_resolved("landowner")
        assert op.get_value("landowner") is None

    def test_skip_resolves_without_value(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.skip("notes")
        assert op.is_resolved("notes")
        assert not op.has_value("notes")
        assert "notes" not in op.provided_values()

    def test_manually_filled(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.mark_manually_filled("landowner")
        assert op.is_resolved("landowner")
        assert op.manually_filled_fields() == ["landowner"]

    def test_clear_field(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.set_value("fpa_number", "500")
        op.clear_field("fpa_number")
        assert not op.is_resolved("fpa_number")


class TestMergeValues:
    """Tests for merging extracted values."""

    def test_overwrite(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.set_value("landowner", "Ann")
        applied = op.merge_values({"landowner": "Bob"}, overwrite=True)
        assert applied == {"landowner": "Bob"}
        assert op.get_value("landowner") == "Bob"

    def test_first_non_empty_wins(self):
        op = PendingOperation(intent=Intent.UPDATE)
        op.set_value("landowner", "Ann")
        applied = op.merge_values({"landowner": "Bob", "notes": "hi"}, overwrite=False)
        assert applied == {"notes": "hi"}
        assert op.get_value("landowner") == "Ann"

    def test_empty_values_ignored(self):
        op = PendingOperation(intent=Intent.CREATE)
        applied = op.merge_values({"landowner": "  ", "notes": None}, overwrite=True)
        assert applied == {}
        assert op.fields == {}


class TestMissingFields:
    """Tests for required/optional resolution order."""

    def test_required_in_schema_order(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.set_value("landowner", "Ann")
        assert [f.id for f in op.get_missing_required_fields()] == [
            "fpa_number",
            "timber_sale_name",
        ]

    def test_optional_without_status(self):
        op = PendingOperation(intent=Intent.CREATE)
        assert [f.id for f in op.get_missing_optional_fields()] == [
            "landowner_type",
            "application_status",
            "notes",
        ]

    def test_optional_with_approved_status(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.set_value("application_status", "Approved")
        assert [f.id for f in op.get_missing_optional_fields()] == [
            "landowner_type",
            "expiration_date",
            "approved_activity",
            "notes",
        ]

    def test_skipped_optional_not_missing(self):
        op = PendingOperation(intent=Intent.CREATE)
        op.skip("landowner_type")
        assert "landowner_type" not in [f.id for f in op.get_missing_optional_fields()]


class TestConversationLog:
    """Tests for the append-only transcript."""

    def test_append_and_order(self):
        log = ConversationLog()
        log.append("user", "hi")
        log.append("assistant", "hello")
        assert [m.text for m in log.messages()] == ["hi", "hello"]
        assert len(log) == 2

    def test_recent_window(self):
        log = ConversationLog()
        for i in range(10):
            log.append("user", str(i))
        assert [m["text"] for m in log.recent(3)] == ["7", "8", "9"]
        assert log.recent(3)[0] == {"role": "user", "text": "7"}

    def test_recent_zero(self):
        log = ConversationLog()
        log.append("user", "hi")
        assert log.recent(0) == []

    def test_clear(self):
        log = ConversationLog()
        log.append("user", "hi")
        log.clear()
        assert len(log) == 0
