"""
FPA record schema and vocabulary models.

These Pydantic models are the single source of truth for the record
fields the assistant knows about: their labels, kinds, which ones are
required to create a record, and which optional fields only matter
for a given application status. Field definitions are loaded from
``schemas/fpa_record.yaml``; the closed value sets live here as enums.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "fpa_record.yaml"


# --- Field identifiers ---

FPA_NUMBER = "fpa_number"
LANDOWNER = "landowner"
TIMBER_SALE_NAME = "timber_sale_name"
LANDOWNER_TYPE = "landowner_type"
APPLICATION_STATUS = "application_status"
DECISION_DEADLINE = "decision_deadline"
EXPIRATION_DATE = "expiration_date"
APPROVED_ACTIVITY = "approved_activity"
NOTES = "notes"


# --- Enums ---


class ApplicationStatus(str, Enum):
    """Closed set of application statuses ('' means unassigned)."""

    IN_DECISION_WINDOW = "In Decision Window"
    APPROVED = "Approved"
    WITHDRAWN = "Withdrawn"
    DISAPPROVED = "Disapproved"
    CLOSED_OUT = "Closed Out"


class LandownerType(str, Enum):
    """Landowner size classes."""

    SMALL = "Small"
    LARGE = "Large"


class ApprovedActivity(str, Enum):
    """Progress of the harvest activity on an approved FPA."""

    NOT_STARTED = "Not Started"
    STARTED = "Started"
    COMPLETED = "Completed"


class Intent(str, Enum):
    """Coarse action category a turn resolves to."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    COMMENT = "comment"
    VIEW = "view"
    LIST = "list"
    NAVIGATE = "navigate"
    HELP = "help"
    SUMMARY = "summary"
    QUESTION = "question"
    UNKNOWN = "unknown"


# Intents that end in a store mutation and may need a multi-turn dialogue
MUTATING_INTENTS = frozenset({Intent.CREATE, Intent.UPDATE, Intent.DELETE, Intent.COMMENT})


class View(str, Enum):
    """Views the UI can be asked to navigate to."""

    DASHBOARD = "dashboard"
    LIST = "list"
    ADD = "add"
    EDIT = "edit"
    DETAIL = "detail"
    REPORTS = "reports"


class FieldKind(str, Enum):
    """How a field's value is extracted and normalized."""

    IDENTIFIER = "identifier"
    TEXT = "text"
    CHOICE = "choice"
    DATE = "date"
    NOTES = "notes"


class ConditionOperator(str, Enum):
    """Supported operators for visibility conditions."""

    EXISTS = "EXISTS"
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"


# --- Visibility Condition Models ---


class VisibilityCondition(BaseModel):
    """A single condition on another field's current value."""

    field: str = Field(
        ...,
        description="The field ID to evaluate (must reference an existing field)",
    )
    operator: ConditionOperator = Field(
        ...,
        description="The comparison operator to apply",
    )
    value: str | None = Field(
        default=None,
        description="Static comparison value (for EQUALS, NOT_EQUALS)",
    )


class VisibilityRule(BaseModel):
    """Visibility rule wrapping a list of conditions with AND logic."""

    all: list[VisibilityCondition] = Field(
        ...,
        min_length=1,
        description="List of conditions, all must pass",
    )


# --- Record Field ---


class RecordField(BaseModel):
    """Definition of a single FPA record field.

    Choice fields must list their options; other kinds must not.
    """

    id: str = Field(..., min_length=1, description="Unique field identifier")
    label: str = Field(..., min_length=1, description="Human-readable name used in prompts")
    kind: FieldKind = Field(..., description="Extraction/normalization kind")
    required: bool = Field(
        default=False,
        description="Whether the field must be present before a record can be created",
    )
    hint: str | None = Field(
        default=None,
        description="Short answer hint appended to prompts",
    )
    options: list[str] | None = Field(
        default=None,
        description="Allowed values (choice fields only)",
    )
    visible_if: VisibilityRule | None = Field(
        default=None,
        description="Field is only prompted for when this rule passes",
    )

    @model_validator(mode="after")
    def validate_options_for_kind(self) -> "RecordField":
        """Choice fields must have options; other kinds must not."""
        if self.kind == FieldKind.CHOICE:
            if not self.options:
                raise ValueError(f"Field '{self.id}' of kind 'choice' must have non-empty 'options'")
        elif self.options is not None:
            raise ValueError(
                f"Field '{self.id}' of kind '{self.kind.value}' should not have 'options'"
            )
        return self

    @property
    def prompt_label(self) -> str:
        """Label with the answer hint, e.g. 'landowner type (Small or Large)'."""
        if self.hint:
            return f"{self.label} ({self.hint})"
        return self.label


# --- Top-Level Record Schema ---


class RecordSchema(BaseModel):
    """Ordered field definitions for one record type."""

    record_type: str = Field(..., min_length=1)
    title: str = Field(default="Record")
    fields: list[RecordField] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_cross_field_references(self) -> "RecordSchema":
        """Validate field ID uniqueness and visibility condition references."""
        field_ids = set()

        for f in self.fields:
            if f.id in field_ids:
                raise ValueError(f"Duplicate field ID: '{f.id}'")
            field_ids.add(f.id)

        for f in self.fields:
            if f.visible_if is None:
                continue
            for condition in f.visible_if.all:
                if condition.field not in field_ids:
                    raise ValueError(
                        f"Field '{f.id}' has visible_if referencing "
                        f"non-existent field '{condition.field}'"
                    )
                if condition.field == f.id:
                    raise ValueError(f"Field '{f.id}' has visible_if referencing itself")

        return self

    def get_field(self, field_id: str) -> RecordField | None:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def field_ids(self) -> list[str]:
        return [f.id for f in self.fields]

    def required_fields(self) -> list[RecordField]:
        return [f for f in self.fields if f.required]

    def optional_fields(self) -> list[RecordField]:
        return [f for f in self.fields if not f.required]

    def label_for(self, field_id: str) -> str:
        """Return the label for a field ID, falling back to the ID itself."""
        field = self.get_field(field_id)
        return field.label if field else field_id


# --- Loading ---


def parse_record_schema(content: str) -> RecordSchema:
    """Parse and validate a YAML field-definition document.

    Args:
        content: The YAML text.

    Returns:
        A validated RecordSchema.

    Raises:
        ValueError: If the document is not a YAML mapping.
        pydantic.ValidationError: If the definitions are inconsistent.
    """
    data = yaml.safe_load(content)
    if not isinstance(data, dict):
        raise ValueError("Record schema must be a YAML mapping")
    return RecordSchema.model_validate(data)


@lru_cache(maxsize=None)
def load_record_schema(path: str | None = None) -> RecordSchema:
    """Load the FPA record schema (cached per path)."""
    schema_path = Path(path) if path else SCHEMA_PATH
    return parse_record_schema(schema_path.read_text(encoding="utf-8"))
