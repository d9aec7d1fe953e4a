"""
Dialogue state machine for multi-turn create/update/delete/comment.

States per intent:
    create:  Idle -> AwaitingField(required) -> AwaitingField(optional)
             -> ReadyToSubmit -> Idle
    delete:  Idle -> AwaitingTarget -> AwaitingConfirm -> Idle
    update / comment:
             Idle -> AwaitingTarget -> AwaitingValue -> Idle

The machine never touches the record store. Every step returns a
TurnOutcome holding the pending operation to carry forward (None when
idle), the UI actions for this turn, and, once an operation is
complete, the operation the response planner must dispatch.

`advance` works on a copy of the pending operation, so a caller that
drops the outcome (e.g. after an error) still holds a consistent state.
"""

import logging
import re

from fpa_assistant.agent.parsers import ParsedCommand, detect_field, extract_update_value
from fpa_assistant.core.actions import (
    build_highlight_action,
    build_message_action,
    build_navigate_action,
)
from fpa_assistant.core.extractors import (
    extract,
    extract_all,
    extract_fpa_number,
    extract_identifier_answer,
    leading_field_tag,
    parse_field_answer,
)
from fpa_assistant.core.pending import PendingOperation, TurnOutcome
from fpa_assistant.core.records import FpaRecord, find_by_fpa_number
from fpa_assistant.core.resolver import resolve
from fpa_assistant.core.schema import (
    FPA_NUMBER,
    NOTES,
    FieldKind,
    Intent,
    RecordSchema,
    View,
    load_record_schema,
)
from fpa_assistant.core.utils import truncate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Control phrases
# ---------------------------------------------------------------------------

CANCEL_RE = re.compile(
    r"^\s*(?:please\s+)?(?:cancel|stop|abort|quit|never\s*mind|forget\s+it)\b", re.I
)
SUBMIT_RE = re.compile(r"^\s*(?:please\s+)?(?:submit|create\s+it|save(?:\s+it)?)\b", re.I)
SKIP_RE = re.compile(
    r"^\s*(?:skip(?:\s+it)?|leave\s+(?:it\s+)?blank|blank|none|n/?a|no|nope|done|next)\s*\.?\s*$",
    re.I,
)
# Whole-answer only, so a name like "Done Right Logging" is still a value
MANUAL_RE = re.compile(
    r"^\s*(?:i\s+)?(?:already\s+(?:entered|filled|added|did)(?:\s+(?:it|that))?(?:\s+in)?"
    r"|(?:entered|filled)\s+(?:it|that)(?:\s+in)?|(?:it'?s\s+)?done)\s*[.!]?\s*$",
    re.I,
)
AFFIRM_RE = re.compile(
    r"^\s*(?:yes|y|yep|yeah|yup|confirm(?:ed)?|sure|ok(?:ay)?|delete(?:\s+it)?|do\s+it)\b", re.I
)
NEGATION_RE = re.compile(r"\b(?:no|not|don'?t|nope|cancel)\b", re.I)
# Requests that end an update still waiting to hear what to change
QUERY_RE = re.compile(
    r"^\s*(?:please\s+)?(?:show|list|display|open|view|find|go\s+to|help|delete|remove"
    r"|what|how|which|who|when)\b",
    re.I,
)

# Field kinds whose awaited answer may be taken verbatim
_FREE_TEXT_KINDS = frozenset({FieldKind.TEXT, FieldKind.NOTES})


def _join_labels(labels: list[str]) -> str:
    if len(labels) <= 1:
        return "".join(labels)
    return ", ".join(labels[:-1]) + " and " + labels[-1]


def find_target_record(entity_id: str | None, records: list[FpaRecord]) -> FpaRecord | None:
    """Exact (normalized) identifier match first, then containment."""
    if not entity_id:
        return None
    return find_by_fpa_number(entity_id, records) or resolve(entity_id, records)


class DialogueStateMachine:
    """Single-flight dialogue over one PendingOperation.

    Args:
        schema: Record field definitions (defaults to the bundled FPA schema).
    """

    def __init__(self, schema: RecordSchema | None = None):
        self.schema = schema or load_record_schema()

    # -----------------------------------------------------------------
    # Entry: a freshly parsed mutating command
    # -----------------------------------------------------------------

    def start(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> TurnOutcome:
        """Open a dialogue for a create/update/delete/comment command.

        Commands that already carry everything they need come back with
        `dispatch` set and no pending operation.
        """
        match command.intent:
            case Intent.CREATE:
                return self._start_create(command, records)
            case Intent.DELETE:
                return self._start_delete(command, records)
            case Intent.UPDATE | Intent.COMMENT:
                return self._start_targeted(command, records, context_record)
            case _:
                raise ValueError(f"Intent '{command.intent.value}' does not open a dialogue")

    def _start_create(self, command: ParsedCommand, records: list[FpaRecord]) -> TurnOutcome:
        op = PendingOperation(intent=Intent.CREATE)
        if command.entity_id:
            op.set_value(FPA_NUMBER, command.entity_id)
        op.merge_values(command.fields, overwrite=True)
        logger.info("Create dialogue started with fields=%s", sorted(op.provided_values()))
        return self._prompt_next_create(op, records, refresh_form=True)

    def _start_delete(self, command: ParsedCommand, records: list[FpaRecord]) -> TurnOutcome:
        op = PendingOperation(intent=Intent.DELETE)
        op.record = find_target_record(command.entity_id, records)
        if op.record is None:
            op.expecting_field = FPA_NUMBER
            if command.entity_id:
                text = f"I couldn't find FPA {command.entity_id}. Which FPA should I delete?"
            else:
                text = "Which FPA do you want to delete?"
            return TurnOutcome(pending=op, actions=[build_message_action(text)])
        return self._confirm_delete(op)

    def _start_targeted(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None,
    ) -> TurnOutcome:
        op = PendingOperation(intent=command.intent, target_field=command.target_field)
        op.record = find_target_record(command.entity_id, records)
        if op.record is None and not command.entity_id:
            op.record = context_record
        op.merge_values(self._fields_for(op.intent, command.fields), overwrite=False)

        if op.record is None:
            op.expecting_field = FPA_NUMBER
            verb = "add a note to" if op.intent is Intent.COMMENT else "update"
            if command.entity_id:
                text = f"I couldn't find FPA {command.entity_id}. Which FPA do you want to {verb}?"
            else:
                text = f"Which FPA do you want to {verb}?"
            return TurnOutcome(pending=op, actions=[build_message_action(text)])

        return self._next_targeted(op)

    # -----------------------------------------------------------------
    # Transition: one more utterance for an existing pending operation
    # -----------------------------------------------------------------

    def advance(
        self,
        pending: PendingOperation,
        utterance: str,
        records: list[FpaRecord],
    ) -> TurnOutcome:
        """Consume one utterance for the pending operation."""
        op = pending.model_copy(deep=True)
        text = (utterance or "").strip()

        if CANCEL_RE.search(text):
            return self.cancel(op)

        if op.intent is Intent.CREATE and SUBMIT_RE.search(text):
            return self._submit_create(op, records)

        if op.intent is Intent.DELETE:
            return self._advance_delete(op, text, records)

        if op.intent is Intent.CREATE:
            return self._advance_create(op, text, records)

        return self._advance_targeted(op, text, records)

    @staticmethod
    def yields_to(pending: PendingOperation, utterance: str) -> bool:
        """True if the utterance is a new request rather than the awaited change."""
        awaiting_change = (
            pending.intent is Intent.UPDATE
            and pending.record is not None
            and not pending.expecting_field
            and not pending.target_field
            and not pending.provided_values()
        )
        return awaiting_change and bool(QUERY_RE.search(utterance or ""))

    def cancel(self, op: PendingOperation) -> TurnOutcome:
        """Drop the pending operation and acknowledge."""
        logger.info("Dialogue cancelled (intent=%s)", op.intent.value)
        match op.intent:
            case Intent.CREATE:
                return TurnOutcome(actions=[
                    build_message_action("FPA creation cancelled."),
                    build_navigate_action(View.DASHBOARD),
                ])
            case Intent.DELETE:
                return TurnOutcome(actions=[build_message_action("Delete cancelled.")])
            case _:
                return TurnOutcome(actions=[build_message_action("Cancelled.")])

    # -----------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------

    def _advance_create(self, op: PendingOperation, text: str, records: list[FpaRecord]) -> TurnOutcome:
        cursor = op.expecting_field
        field = self.schema.get_field(cursor) if cursor else None
        tag = leading_field_tag(text)
        notes: list[str] = []
        applied: dict[str, str] = {}

        if field is not None and not field.required and SKIP_RE.match(text):
            op.skip(field.id)
            notes.append(f"Skipped {field.label}.")
        elif field is not None and field.required and MANUAL_RE.match(text):
            op.mark_manually_filled(field.id)
            notes.append(f"Okay, {field.label} marked as entered in the form.")
        elif field is not None and field.kind in _FREE_TEXT_KINDS and tag is None:
            value = parse_field_answer(field.id, text)
            if value:
                op.set_value(field.id, value)
                applied[field.id] = value
        else:
            values = extract_all(text)
            number = extract_fpa_number(text)
            if number:
                values[FPA_NUMBER] = number
            # Only the field the answer opens with may replace a collected value
            applied = op.merge_values(values, overwrite=False)
            if tag and values.get(tag) and tag not in applied:
                applied.update(op.merge_values({tag: values[tag]}, overwrite=True))
            if field is not None and not applied:
                value = parse_field_answer(field.id, text)
                if value:
                    op.set_value(field.id, value)
                    applied[field.id] = value

        if cursor and op.is_resolved(cursor):
            op.expecting_field = None

        acknowledged = [self.schema.label_for(f) for f in applied if f != cursor]
        if not applied and not notes:
            logger.info("Nothing extracted from '%s' for %s", truncate(text), cursor)
        return self._prompt_next_create(
            op, records, refresh_form=bool(applied), acknowledged=acknowledged, notes=notes
        )

    def _prompt_next_create(
        self,
        op: PendingOperation,
        records: list[FpaRecord],
        refresh_form: bool = False,
        acknowledged: list[str] | None = None,
        notes: list[str] | None = None,
    ) -> TurnOutcome:
        """Recompute what is missing and ask for the next field.

        With refresh_form, the add form is (re)opened with the values
        collected so far.
        """
        lead = list(notes or [])
        if acknowledged:
            lead.append(f"✅ Got {_join_labels(acknowledged)}!")

        number = op.get_value(FPA_NUMBER)
        if number and find_by_fpa_number(number, records):
            return self.reset_duplicate(op, number, refresh_form=refresh_form)

        actions = [self._form_draft_action(op)] if refresh_form else []

        missing = op.get_missing_required_fields(self.schema)
        if missing:
            field = missing[0]
            op.expecting_field = field.id
            text = " ".join(lead + [f"What is the {field.prompt_label}? (Required)"])
            return TurnOutcome(pending=op, actions=actions + [
                build_message_action(text),
                build_highlight_action([field.id]),
            ])

        optional = op.get_missing_optional_fields(self.schema)
        if optional:
            field = optional[0]
            op.expecting_field = field.id
            text = " ".join(lead + [
                f'What is the {field.prompt_label}? (Optional - say "leave blank" to skip, '
                f'or "submit" to create now)'
            ])
            return TurnOutcome(pending=op, actions=actions + [
                build_message_action(text),
                build_highlight_action([field.id]),
            ])

        op.expecting_field = None
        text = " ".join(lead + [
            f'✅ All fields collected! Say "submit" to create FPA {number}, or "cancel" to discard.'
        ])
        return TurnOutcome(pending=op, actions=actions + [build_message_action(text)])

    def reset_duplicate(self, op: PendingOperation, number: str, refresh_form: bool = False) -> TurnOutcome:
        """Duplicate identifier: clear it and ask again, keeping everything else."""
        logger.info("FPA number %s already exists; asking for another", number)
        op.clear_field(FPA_NUMBER)
        op.expecting_field = FPA_NUMBER
        actions = [self._form_draft_action(op)] if refresh_form else []
        return TurnOutcome(pending=op, actions=actions + [
            build_message_action(
                f"⚠️ FPA {number} already exists. Please enter a different FPA number."
            ),
            build_highlight_action([FPA_NUMBER]),
        ])

    @staticmethod
    def _form_draft_action(op: PendingOperation) -> dict:
        return build_navigate_action(View.ADD, draft=op.provided_values())

    def _submit_create(self, op: PendingOperation, records: list[FpaRecord]) -> TurnOutcome:
        missing = op.get_missing_required_fields(self.schema)
        if missing:
            op.expecting_field = missing[0].id
            labels = _join_labels([f.label for f in missing])
            return TurnOutcome(pending=op, actions=[
                build_message_action(f"❌ Can't submit yet. Still need: {labels}."),
                build_highlight_action([f.id for f in missing]),
            ])

        number = op.get_value(FPA_NUMBER)
        if number and find_by_fpa_number(number, records):
            return self.reset_duplicate(op, number)

        op.expecting_field = None
        return TurnOutcome(dispatch=op)

    # -----------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------

    def _advance_delete(self, op: PendingOperation, text: str, records: list[FpaRecord]) -> TurnOutcome:
        if op.record is None:
            record = self._resolve_answer(text, records)
            if record is None:
                return TurnOutcome(pending=op, actions=[
                    build_message_action("I couldn't find that FPA. Which FPA number should I delete?")
                ])
            op.record = record
            op.expecting_field = None
            return self._confirm_delete(op)

        if not op.needs_confirm:
            return self._confirm_delete(op)

        if AFFIRM_RE.search(text) and not NEGATION_RE.search(text):
            return TurnOutcome(dispatch=op)
        return self.cancel(op)

    def _confirm_delete(self, op: PendingOperation) -> TurnOutcome:
        op.needs_confirm = True
        number = op.record.fpa_number if op.record else ""
        return TurnOutcome(pending=op, actions=[
            build_message_action(
                f'⚠️ Are you sure you want to delete FPA {number}? Reply "yes" to confirm.'
            )
        ])

    # -----------------------------------------------------------------
    # Update / comment
    # -----------------------------------------------------------------

    def _advance_targeted(self, op: PendingOperation, text: str, records: list[FpaRecord]) -> TurnOutcome:
        if op.record is None:
            record = self._resolve_answer(text, records)
            if record is None:
                return TurnOutcome(pending=op, actions=[
                    build_message_action("I couldn't find that FPA. Which FPA number do you mean?")
                ])
            op.record = record
            op.expecting_field = None
            op.merge_values(self._fields_for(op.intent, extract_all(text)), overwrite=False)
            return self._next_targeted(op)

        cursor = op.expecting_field
        field = self.schema.get_field(cursor) if cursor else None
        if field is not None:
            if field.kind in _FREE_TEXT_KINDS and leading_field_tag(text) is None:
                value = parse_field_answer(field.id, text)
            else:
                value = extract(field.id, text) or parse_field_answer(field.id, text)
            op.merge_values({field.id: value}, overwrite=False)
        else:
            op.merge_values(self._fields_for(op.intent, extract_all(text)), overwrite=False)
            if op.intent is Intent.UPDATE and not op.target_field and not op.provided_values():
                return self._ask_for_change(op, text)
        return self._next_targeted(op)

    def _ask_for_change(self, op: PendingOperation, text: str) -> TurnOutcome:
        """Update with a target but nothing to change yet."""
        field_id = detect_field(text)
        if field_id:
            op.target_field = field_id
            op.merge_values({field_id: extract_update_value(field_id, text)}, overwrite=False)
            return self._next_targeted(op)
        return TurnOutcome(pending=op, actions=[
            build_message_action(
                f"What would you like to change on FPA {op.record.fpa_number}? "
                'For example "status approved" or "landowner Jane Doe".'
            ),
        ])

    def _next_targeted(self, op: PendingOperation) -> TurnOutcome:
        number = op.record.fpa_number if op.record else ""

        if op.intent is Intent.COMMENT and not op.has_value(NOTES):
            op.expecting_field = NOTES
            return TurnOutcome(pending=op, actions=[
                build_message_action(f"What note should I add to FPA {number}?"),
            ])

        target = op.target_field
        if op.intent is Intent.UPDATE and target and not op.has_value(target):
            op.expecting_field = target
            field = self.schema.get_field(target)
            label = field.prompt_label if field else target
            return TurnOutcome(pending=op, actions=[
                build_message_action(f"What should the {label} be for FPA {number}?"),
                build_highlight_action([target]),
            ])

        op.expecting_field = None
        return TurnOutcome(dispatch=op)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    @staticmethod
    def _fields_for(intent: Intent, values: dict[str, str]) -> dict[str, str]:
        """Comments only carry notes; updates carry anything extracted."""
        if intent is Intent.COMMENT:
            return {NOTES: values[NOTES]} if values.get(NOTES) else {}
        return dict(values)

    @staticmethod
    def _resolve_answer(text: str, records: list[FpaRecord]) -> FpaRecord | None:
        return resolve(text, records) or find_by_fpa_number(extract_identifier_answer(text), records)
