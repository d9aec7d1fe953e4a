"""
Tests for the record schema definitions and visibility rules.

Tests cover:
- Loading the bundled FPA schema
- Required/optional field order
- Cross-reference validation (duplicate ids, bad visible_if references)
- Choice fields must carry options
- Status-dependent visibility of optional fields
"""

import pytest
from pydantic import ValidationError

from fpa_assistant.core.schema import (
    FieldKind,
    RecordField,
    load_record_schema,
    parse_record_schema,
)
from fpa_assistant.core.visibility import is_field_visible


@pytest.fixture
def schema():
    return load_record_schema()


class TestBundledSchema:
    """Tests for schemas/fpa_record.yaml."""

    def test_loads(self, schema):
        assert schema.record_type == "fpa"
        assert schema.field_ids()[0] == "fpa_number"

    def test_required_order(self, schema):
        assert [f.id for f in schema.required_fields()] == [
            "fpa_number",
            "landowner",
            "timber_sale_name",
        ]

    def test_optional_fields(self, schema):
        assert [f.id for f in schema.optional_fields()] == [
            "landowner_type",
            "application_status",
            "decision_deadline",
            "expiration_date",
            "approved_activity",
            "notes",
        ]

    def test_prompt_label_includes_hint(self, schema):
        assert schema.get_field("landowner_type").prompt_label == "landowner type (Small or Large)"
        assert schema.get_field("landowner").prompt_label == "landowner"

    def test_label_for_unknown_field(self, schema):
        assert schema.label_for("mystery") == "mystery"


class TestSchemaValidation:
    """Tests for schema-level validation errors."""

    def test_duplicate_ids(self):
        content = """
record_type: fpa
fields:
  - {id: a, label: A, kind: text}
  - {id: a, label: A again, kind: text}
"""
        with pytest.raises(ValidationError, match="Duplicate field ID"):
            parse_record_schema(content)

    def test_bad_visibility_reference(self):
        content = """
record_type: fpa
fields:
  - id: a
    label: A
    kind: text
    visible_if:
      all:
        - {field: missing, operator: EXISTS}
"""
        with pytest.raises(ValidationError, match="non-existent"):
            parse_record_schema(content)

    def test_choice_needs_options(self):
        with pytest.raises(ValidationError):
            RecordField(id="t", label="type", kind=FieldKind.CHOICE)

    def test_text_rejects_options(self):
        with pytest.raises(ValidationError):
            RecordField(id="t", label="name", kind=FieldKind.TEXT, options=["x"])

    def test_not_a_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            parse_record_schema("- just a list")


class TestVisibility:
    """Tests for status-dependent optional fields."""

    def test_unconditional_field_visible(self, schema):
        assert is_field_visible(schema.get_field("notes"), {})

    def test_decision_deadline_needs_decision_window(self, schema):
        field = schema.get_field("decision_deadline")
        assert not is_field_visible(field, {})
        assert not is_field_visible(field, {"application_status": "Approved"})
        assert is_field_visible(field, {"application_status": "In Decision Window"})

    def test_expiration_and_activity_need_approved(self, schema):
        for field_id in ("expiration_date", "approved_activity"):
            field = schema.get_field(field_id)
            assert is_field_visible(field, {"application_status": "Approved"})
            assert not is_field_visible(field, {"application_status": "Withdrawn"})

    def test_empty_string_counts_as_missing(self, schema):
        field = schema.get_field("expiration_date")
        assert not is_field_visible(field, {"application_status": ""})
