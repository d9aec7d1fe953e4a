"""
Response planner: turns completed commands into store calls and replies.

Mutating operations arrive as a dispatched PendingOperation from the
dialogue state machine. Read-only commands (view, list, navigate, help,
summary, field lookups) are answered straight from the record list.

Store failures are reported verbatim and end the operation. The one
exception is a duplicate FPA number on create, which sends the dialogue
back to the identifier prompt with everything else kept.
"""

import logging
from datetime import datetime
from typing import Callable

from fpa_assistant.agent.dialogue import find_target_record
from fpa_assistant.agent.parsers import ParsedCommand
from fpa_assistant.agent.prompts import build_help_text
from fpa_assistant.core.actions import (
    ListFilter,
    build_highlight_action,
    build_message_action,
    build_navigate_action,
)
from fpa_assistant.core.pending import PendingOperation, TurnOutcome
from fpa_assistant.core.records import (
    DuplicateRecordError,
    FpaRecord,
    RecordStore,
    RecordStoreError,
)
from fpa_assistant.core.schema import (
    APPLICATION_STATUS,
    FPA_NUMBER,
    NOTES,
    Intent,
    RecordSchema,
    View,
    load_record_schema,
)

logger = logging.getLogger(__name__)

NOTE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"

_VIEW_MESSAGES = {
    View.DASHBOARD: "Going to the dashboard.",
    View.LIST: "Showing all FPAs.",
    View.ADD: "Opening the new FPA form.",
    View.REPORTS: "Opening reports.",
}


def filter_records(records: list[FpaRecord], list_filter: ListFilter | None) -> list[FpaRecord]:
    """Records matching a list filter (all records for type 'all')."""
    if list_filter is None or list_filter.type == "all" or not list_filter.value:
        return list(records)
    value = list_filter.value
    match list_filter.type:
        case "status":
            return [r for r in records if r.application_status == value]
        case "landowner_type":
            return [r for r in records if r.landowner_type == value]
        case "landowner":
            needle = value.lower()
            return [r for r in records if needle in r.landowner.lower()]
        case _:
            return list(records)


def describe_record(record: FpaRecord) -> str:
    """One-line summary of a record for chat replies."""
    parts = [f"FPA {record.fpa_number}"]
    if record.landowner:
        parts.append(f"landowner {record.landowner}")
    if record.timber_sale_name:
        parts.append(f"timber sale {record.timber_sale_name}")
    parts.append(f"status {record.application_status or 'unassigned'}")
    if record.decision_deadline:
        parts.append(f"decision due {record.decision_deadline}")
    if record.expiration_date:
        parts.append(f"expires {record.expiration_date}")
    if record.approved_activity:
        parts.append(f"activity {record.approved_activity}")
    return ", ".join(parts) + "."


class ResponsePlanner:
    """Executes completed commands against a RecordStore.

    Args:
        store: The record-store collaborator.
        schema: Record field definitions (defaults to the bundled schema).
        clock: Returns the current time; used to stamp appended notes.
    """

    def __init__(
        self,
        store: RecordStore,
        schema: RecordSchema | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.schema = schema or load_record_schema()
        self._clock = clock or datetime.now

    # -----------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------

    def execute(self, outcome: TurnOutcome) -> TurnOutcome:
        """Run the outcome's dispatch, if any, and merge the resulting actions."""
        if outcome.dispatch is None:
            return outcome
        result = self.dispatch(outcome.dispatch)
        return TurnOutcome(pending=result.pending, actions=outcome.actions + result.actions)

    def dispatch(self, op: PendingOperation) -> TurnOutcome:
        """Perform exactly one store operation for a completed dialogue."""
        logger.info(
            "Dispatching %s for FPA %s",
            op.intent.value,
            op.record.fpa_number if op.record else op.get_value(FPA_NUMBER),
        )
        try:
            match op.intent:
                case Intent.CREATE:
                    return self._create(op)
                case Intent.UPDATE:
                    return self._update(op)
                case Intent.COMMENT:
                    return self._comment(op)
                case Intent.DELETE:
                    return self._delete(op)
                case _:
                    raise ValueError(f"Cannot dispatch intent '{op.intent.value}'")
        except DuplicateRecordError as e:
            if op.intent is not Intent.CREATE:
                return self._failure(op, e)
            logger.info("Store rejected duplicate FPA number %s", e.fpa_number)
            op.clear_field(FPA_NUMBER)
            op.expecting_field = FPA_NUMBER
            return TurnOutcome(pending=op, actions=[
                build_message_action(f"⚠️ {e} Please enter a different FPA number."),
                build_highlight_action([FPA_NUMBER]),
            ])
        except (RecordStoreError, ValueError) as e:
            return self._failure(op, e)

    def _create(self, op: PendingOperation) -> TurnOutcome:
        payload = {f.id: op.get_value(f.id) or "" for f in self.schema.fields}
        manual = op.manually_filled_fields()

        if manual:
            labels = ", ".join(self.schema.label_for(f) for f in manual)
            if self.store.can_open_editor:
                self.store.open_editor(payload)
                return TurnOutcome(actions=[
                    build_message_action(
                        f"📝 Opened the new FPA form with everything collected. "
                        f"Finish the {labels} there and save."
                    ),
                    build_highlight_action(manual),
                    build_navigate_action(View.ADD, draft=payload),
                ])
            # Nothing to type into: ask for those values in chat instead
            for field_id in manual:
                op.clear_field(field_id)
            field = self.schema.get_field(manual[0])
            op.expecting_field = manual[0]
            return TurnOutcome(pending=op, actions=[
                build_message_action(
                    f"There's no open form to enter the {labels} in. "
                    f"What is the {field.prompt_label if field else manual[0]}? (Required)"
                ),
                build_highlight_action(manual),
            ])

        record = self.store.create_record(payload)
        return TurnOutcome(actions=[
            build_message_action(f"✅ Created FPA {record.fpa_number} successfully!"),
            build_navigate_action(View.DASHBOARD),
        ])

    def _update(self, op: PendingOperation) -> TurnOutcome:
        record = op.record
        changes = op.provided_values()
        if NOTES in changes:
            changes[NOTES] = self.append_note(record.notes, changes[NOTES])

        if self.store.can_open_editor:
            draft = {**record.field_values(), **changes}
            self.store.open_editor(draft)
            if changes:
                labels = ", ".join(self.schema.label_for(f) for f in changes)
                text = f"📝 Opened FPA {record.fpa_number} for editing with the {labels} filled in. Review and save."
            else:
                text = f"📝 Opened FPA {record.fpa_number} for editing."
            actions = [build_message_action(text)]
            if changes:
                actions.append(build_highlight_action(list(changes)))
            actions.append(build_navigate_action(View.EDIT, record_id=record.id, draft=draft))
            return TurnOutcome(actions=actions)

        if not changes:
            # Stay on this record until the user says what to change
            op.expecting_field = None
            return TurnOutcome(pending=op, actions=[
                build_message_action(
                    f"Here's FPA {record.fpa_number}. What would you like to change?"
                ),
                build_navigate_action(View.DETAIL, record_id=record.id),
            ])

        updated = self.store.update_record(record.id, changes)
        summary = ", ".join(
            self.schema.label_for(f) if f == NOTES else f"{self.schema.label_for(f)} → {v}"
            for f, v in op.provided_values().items()
        )
        return TurnOutcome(actions=[
            build_message_action(f"✅ Updated FPA {updated.fpa_number}: {summary}."),
            build_highlight_action(list(changes)),
        ])

    def _comment(self, op: PendingOperation) -> TurnOutcome:
        record = op.record
        notes = self.append_note(record.notes, op.get_value(NOTES) or "")
        updated = self.store.update_record(record.id, {NOTES: notes})
        return TurnOutcome(actions=[
            build_message_action(f"💬 Added note to FPA {updated.fpa_number}."),
        ])

    def _delete(self, op: PendingOperation) -> TurnOutcome:
        self.store.delete_record(op.record.id)
        return TurnOutcome(actions=[
            build_message_action(f"🗑️ Deleted FPA {op.record.fpa_number}."),
            build_navigate_action(View.DASHBOARD),
        ])

    def _failure(self, op: PendingOperation, error: Exception) -> TurnOutcome:
        logger.warning("Store rejected %s: %s", op.intent.value, error)
        return TurnOutcome(actions=[build_message_action(str(error))])

    def append_note(self, existing: str, note: str) -> str:
        """Append a timestamped note line: '[2026-01-05 14:30] Needs paperwork'."""
        entry = f"[{self._clock().strftime(NOTE_TIMESTAMP_FORMAT)}] {note}"
        if existing and existing.strip():
            return f"{existing}\n{entry}"
        return entry

    # -----------------------------------------------------------------
    # Read-only commands
    # -----------------------------------------------------------------

    def plan_query(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> list[dict] | None:
        """Actions for a non-mutating command.

        Returns:
            The actions, or None when the command needs a free-form reply.
        """
        match command.intent:
            case Intent.HELP:
                return [build_message_action(build_help_text())]
            case Intent.NAVIGATE:
                return self._navigate(command, records, context_record)
            case Intent.VIEW:
                return self._view(command, records, context_record)
            case Intent.LIST:
                return self._list(command.list_filter, records)
            case Intent.SUMMARY:
                return [build_message_action(self._summary(command, records))]
            case Intent.QUESTION:
                return self._lookup(command, records, context_record)
            case _:
                return None

    def _navigate(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None,
    ) -> list[dict]:
        view = command.view or View.DASHBOARD
        if view in (View.DETAIL, View.EDIT):
            return self._view(command, records, context_record)
        if view is View.LIST:
            return self._list(command.list_filter, records)
        return [build_message_action(_VIEW_MESSAGES[view]), build_navigate_action(view)]

    def _view(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None,
    ) -> list[dict]:
        record = find_target_record(command.entity_id, records)
        if record is None and not command.entity_id:
            record = context_record
        if record is None:
            if command.entity_id:
                return [build_message_action(f"I couldn't find FPA {command.entity_id}.")]
            return [build_message_action('Which FPA do you want to open? Try "open fpa 123".')]
        return [
            build_message_action(describe_record(record)),
            build_navigate_action(View.DETAIL, record_id=record.id),
        ]

    def _list(self, list_filter: ListFilter | None, records: list[FpaRecord]) -> list[dict]:
        list_filter = list_filter or ListFilter(type="all", label="All FPAs")
        count = len(filter_records(records, list_filter))
        if list_filter.type == "all":
            text = f"Showing all FPAs ({count})."
        else:
            text = f"Showing {list_filter.label} ({count})."
        return [
            build_message_action(text),
            build_navigate_action(View.LIST, list_filter=list_filter),
        ]

    def _summary(self, command: ParsedCommand, records: list[FpaRecord]) -> str:
        if command.entity_id:
            record = find_target_record(command.entity_id, records)
            if record is None:
                return f"I couldn't find FPA {command.entity_id}."
            return describe_record(record)

        if not records:
            return "📊 There are no FPAs yet."

        status = command.fields.get(APPLICATION_STATUS)
        if status:
            matching = [r.fpa_number for r in records if r.application_status == status]
            if not matching:
                return f"📊 No FPAs are {status}."
            return f"📊 {len(matching)} FPA(s) are {status}: {', '.join(matching)}."

        counts: dict[str, int] = {}
        for record in records:
            key = record.application_status or "unassigned"
            counts[key] = counts.get(key, 0) + 1
        breakdown = ", ".join(f"{count} {key}" for key, count in counts.items())
        return f"📊 {len(records)} FPA(s) total: {breakdown}."

    def _lookup(
        self,
        command: ParsedCommand,
        records: list[FpaRecord],
        context_record: FpaRecord | None,
    ) -> list[dict] | None:
        if command.target_field is None or command.target_field == FPA_NUMBER:
            if command.response:
                return [build_message_action(command.response)]
            return None

        record = find_target_record(command.entity_id, records)
        if record is None and not command.entity_id:
            record = context_record
        if record is None:
            if command.entity_id:
                return [build_message_action(f"I couldn't find FPA {command.entity_id}.")]
            return None

        field_id = command.target_field
        label = self.schema.label_for(field_id)
        value = record.field_values().get(field_id, "")
        if not value:
            text = f"FPA {record.fpa_number} has no {label} set."
        elif field_id == NOTES:
            text = f"Notes for FPA {record.fpa_number}:\n{value}"
        else:
            text = f"The {label} for FPA {record.fpa_number} is {value}."
        return [
            build_message_action(text),
            build_highlight_action([field_id]),
        ]

