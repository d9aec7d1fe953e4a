"""
Command parsers: turn one utterance into a ParsedCommand.

Two independent implementations share the CommandParser interface:

- RuleBasedCommandParser: deterministic keyword/regex recognition built
  on the field extractors and entity resolver. Always available.
- AICommandParser: asks the natural-language service for a constrained
  JSON object, validates and cleans it. May fail or be unavailable.

FallbackCommandParser composes them: try the primary, and on error (or
an "unknown" verdict) use the fallback, carrying a short advisory so
the user knows the AI path was skipped.
"""

import logging
import re
from typing import Literal, Protocol

from pydantic import BaseModel, Field

from fpa_assistant.agent.language_service import LanguageService, LanguageServiceError
from fpa_assistant.agent.llm_payloads import validate_command_payload
from fpa_assistant.core.actions import ListFilter
from fpa_assistant.core.extractors import (
    extract_all,
    extract_fpa_number,
    extract_free_text,
    extract_landowner_type,
    extract_status,
    extract_target_status,
    parse_field_answer,
)
from fpa_assistant.core.records import FpaRecord
from fpa_assistant.core.resolver import resolve
from fpa_assistant.core.schema import (
    APPLICATION_STATUS,
    APPROVED_ACTIVITY,
    DECISION_DEADLINE,
    EXPIRATION_DATE,
    LANDOWNER,
    LANDOWNER_TYPE,
    NOTES,
    TIMBER_SALE_NAME,
    Intent,
    View,
)
from fpa_assistant.core.utils import collapse_whitespace, truncate

logger = logging.getLogger(__name__)


class ParsedCommand(BaseModel):
    """Normalized result of parsing one utterance.

    Attributes:
        intent: What the user wants to do.
        entity_id: FPA number the command refers to (may not exist yet).
        fields: Cleaned field values stated in the utterance.
        target_field: Field the user named without giving a value.
        view: Navigation target (navigate intent).
        list_filter: Filter for the list view (list intent).
        response: Friendly text suggested by the AI path.
        error: Set when parsing failed; the caller must fall back.
        advisory: Short note for the user about a skipped AI path.
        source: Which parser produced the command.
    """

    intent: Intent
    entity_id: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)
    target_field: str | None = None
    view: View | None = None
    list_filter: ListFilter | None = None
    response: str | None = None
    error: str | None = None
    advisory: str | None = None
    source: Literal["ai", "rules"] = "rules"


class CommandParser(Protocol):
    async def parse(
        self,
        utterance: str,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> ParsedCommand: ...


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

CREATE_REQUEST_RE = re.compile(r"\b(?:add|create|make|new|start)\s+(?:a\s+|an\s+)?(?:new\s+)?fpa\b", re.I)
_COMMENT_COMMAND_RE = re.compile(
    r"^\s*(?:please\s+)?(?:(?:add|put|leave|attach|write)\s+(?:a\s+|an\s+|the\s+)?(?:note|comment)s?|(?:note|comment)s?\s*:)",
    re.I,
)
_HELP_RE = re.compile(r"\bhelp\b|\bwhat\s+can\s+you\s+do\b", re.I)
_QUESTION_RE = re.compile(r"^\s*(?:what|what's|whats|when|who|which|is|does|has)\b|\?\s*$", re.I)
_REPORTS_RE = re.compile(r"\breports?\b", re.I)
_SUMMARY_RE = re.compile(r"\bsummary\b|\bsummari[sz]e\b|\bhow\s+many\b", re.I)
_LIST_VERB_RE = re.compile(r"\b(?:list|show|display|give\s+me|find)\b", re.I)
_PLURAL_TARGET_RE = re.compile(r"\bfpas\b|\bapplications\b|\ball\b|\beverything\b", re.I)
_FILTER_LANGUAGE_RE = re.compile(
    r"\b(?:approved|withdrawn|disapproved|closed|decision|pending|small|large|landowner)\b", re.I
)
_SAME_LANDOWNER_RE = re.compile(r"\bsame\s+landowner\b", re.I)
_LANDOWNER_FILTER_RE = re.compile(r"\blandowner\s*(?:(?:is|named)\b|=)?\s*([^,;.?]+)", re.I)
_DASHBOARD_RE = re.compile(r"\bdashboard\b|\bgo\s+home\b|\bhome\s+(?:page|screen)\b", re.I)
_LIST_NAV_RE = re.compile(r"\bgo\s+to\s+(?:the\s+)?list\b|\blist\s+fpas\b", re.I)
_DELETE_RE = re.compile(r"\b(?:delete|remove)\b", re.I)
_OPEN_RE = re.compile(r"\b(?:open|view|show|display|pull\s+up|go\s+to)\b", re.I)
_EDIT_VERB_RE = re.compile(r"\b(?:change|update|set|modify|edit|mark|correct|fix|make|add)\b", re.I)
_GENERIC_EDIT_RE = re.compile(r"\b(?:edit|update|modify|change)\b", re.I)
_NOTE_WORD_RE = re.compile(r"\bnotes?\b|\bcomments?\b", re.I)

# Field named in an edit or lookup. Order matters: specific phrases first.
FIELD_KEYWORDS: list[tuple[str, re.Pattern]] = [
    (TIMBER_SALE_NAME, re.compile(r"\btimber\s*sale(?:\s+name)?\b|\btimber\s+name\b|\bsale\s+name\b|\bts\b", re.I)),
    (LANDOWNER_TYPE, re.compile(r"\b(?:landowner|land\s+owner|owner)\s+type\b", re.I)),
    (LANDOWNER, re.compile(r"\blandowner\b|\bland\s+owner\b|\bowner\b", re.I)),
    (EXPIRATION_DATE, re.compile(r"\bexp(?:iration)?\s+date\b|\bexpiration\b|\bexpires?\b", re.I)),
    (DECISION_DEADLINE, re.compile(r"\bdecision\s+(?:deadline|date)\b|\bdec\s+date\b|\bdeadline\b", re.I)),
    (APPROVED_ACTIVITY, re.compile(r"\b(?:harvest|approved)\s+(?:status|activity)\b|\bactivity(?:\s+status)?\b", re.I)),
    (APPLICATION_STATUS, re.compile(r"\b(?:application|app|fpa)\s+status\b|\bstatus\b", re.I)),
    (NOTES, re.compile(r"\bnotes?\b|\bcomments?\b", re.I)),
]

_LEADING_TARGET_RE = re.compile(
    r"^\s*(?:(?:for|of|on|in)\s+)?(?:(?:the\s+)?fpa\s*(?:number\s*)?[#-]?\s*[a-z0-9-]+|\d[a-z0-9-]*)\b",
    re.I,
)
_TRAILING_TARGET_RE = re.compile(
    r"\s+(?:for|on|of|in)\s+(?:(?:the\s+)?fpa\s*[#-]?\s*)?[0-9][a-z0-9-]*\s*$",
    re.I,
)
_VALUE_AFTER_KEYWORD_RE = re.compile(r"^\s*(?:to|=|:|is|as|should\s+be)\s+(.+?)\s*\.?$", re.I)
_TO_VALUE_RE = re.compile(r"\bto\s+(.+?)\s*\.?$", re.I)


def is_create_request(text: str) -> bool:
    return bool(CREATE_REQUEST_RE.search(text or ""))


def detect_field(text: str) -> str | None:
    """First record field named in the utterance, per FIELD_KEYWORDS order."""
    for field_id, pattern in FIELD_KEYWORDS:
        if pattern.search(text):
            return field_id
    return None


def extract_update_value(field_id: str, text: str) -> str | None:
    """Value assigned to a named field: "set the landowner for 12 to Jane Doe".

    Returns the normalized value, or None if the utterance names the
    field without saying what it should become.
    """
    pattern = dict(FIELD_KEYWORDS).get(field_id)
    if pattern is None:
        return None
    match = pattern.search(text)
    if not match:
        return None

    after = _LEADING_TARGET_RE.sub("", text[match.end():], count=1)
    value_match = _VALUE_AFTER_KEYWORD_RE.match(after) or _TO_VALUE_RE.search(after)
    if not value_match:
        return None
    raw_value = _TRAILING_TARGET_RE.sub("", value_match.group(1)).strip().strip("\"'")
    if not raw_value:
        return None
    return parse_field_answer(field_id, raw_value)


# ---------------------------------------------------------------------------
# Rule-based parser
# ---------------------------------------------------------------------------


class RuleBasedCommandParser:
    """Deterministic command recognition.

    Checks run in a fixed order and the first hit wins, so the same
    utterance always maps to the same command.
    """

    async def parse(
        self,
        utterance: str,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> ParsedCommand:
        return self.parse_text(utterance, records)

    def parse_text(self, utterance: str, records: list[FpaRecord]) -> ParsedCommand:
        text = collapse_whitespace(utterance or "")
        if not text:
            return ParsedCommand(intent=Intent.UNKNOWN)

        if is_create_request(text):
            return ParsedCommand(
                intent=Intent.CREATE,
                entity_id=extract_fpa_number(text),
                fields=extract_all(text),
            )

        record = resolve(text, records)
        entity_id = record.fpa_number if record else extract_fpa_number(text)

        if _COMMENT_COMMAND_RE.search(text):
            return self._comment(text, entity_id)

        if _HELP_RE.search(text):
            return ParsedCommand(intent=Intent.HELP)

        field_id = detect_field(text)
        if _QUESTION_RE.search(text) and field_id and entity_id and not _EDIT_VERB_RE.search(text):
            return ParsedCommand(intent=Intent.QUESTION, entity_id=entity_id, target_field=field_id)

        if _REPORTS_RE.search(text):
            return ParsedCommand(intent=Intent.NAVIGATE, view=View.REPORTS)

        if _SUMMARY_RE.search(text):
            status = extract_status(text)
            return ParsedCommand(
                intent=Intent.SUMMARY,
                entity_id=entity_id,
                fields={APPLICATION_STATUS: status} if status else {},
            )

        list_command = self._list(text, record)
        if list_command is not None:
            return list_command

        if _DASHBOARD_RE.search(text):
            return ParsedCommand(intent=Intent.NAVIGATE, view=View.DASHBOARD)

        if _DELETE_RE.search(text):
            return ParsedCommand(intent=Intent.DELETE, entity_id=entity_id)

        if _OPEN_RE.search(text) and entity_id and not _GENERIC_EDIT_RE.search(text):
            return ParsedCommand(intent=Intent.VIEW, entity_id=entity_id)

        has_edit_verb = bool(_EDIT_VERB_RE.search(text))

        if has_edit_verb and field_id == NOTES:
            return self._comment(text, entity_id)

        if has_edit_verb and field_id:
            value = extract_update_value(field_id, text)
            if value:
                fields = {field_id: value}
            else:
                fields = extract_all(text) if entity_id else {}
                fields.pop(NOTES, None)
                fields.pop(field_id, None)
            return ParsedCommand(
                intent=Intent.UPDATE,
                entity_id=entity_id,
                fields=fields,
                target_field=None if value else field_id,
            )

        if has_edit_verb and extract_status(text):
            return ParsedCommand(
                intent=Intent.UPDATE,
                entity_id=entity_id,
                fields={APPLICATION_STATUS: extract_target_status(text)},
            )

        if _NOTE_WORD_RE.search(text) and not _QUESTION_RE.search(text):
            return self._comment(text, entity_id)

        if _GENERIC_EDIT_RE.search(text):
            fields = extract_all(text)
            fields.pop(NOTES, None)
            return ParsedCommand(intent=Intent.UPDATE, entity_id=entity_id, fields=fields)

        return ParsedCommand(intent=Intent.QUESTION, entity_id=entity_id, target_field=field_id)

    def _comment(self, text: str, entity_id: str | None) -> ParsedCommand:
        note = extract_free_text(NOTES, text)
        return ParsedCommand(
            intent=Intent.COMMENT,
            entity_id=entity_id,
            fields={NOTES: note} if note else {},
        )

    def _list(self, text: str, record: FpaRecord | None) -> ParsedCommand | None:
        if _SAME_LANDOWNER_RE.search(text) and record is not None:
            landowner = record.landowner or "Unknown"
            return ParsedCommand(
                intent=Intent.LIST,
                list_filter=ListFilter(type="landowner", value=record.landowner, label=f"Landowner: {landowner}"),
            )

        has_list_verb = bool(_LIST_VERB_RE.search(text))
        wants_list = has_list_verb and (
            _PLURAL_TARGET_RE.search(text) or _FILTER_LANGUAGE_RE.search(text)
        )
        if not wants_list and not _LIST_NAV_RE.search(text):
            return None

        status = extract_status(text)
        if status:
            list_filter = ListFilter(type="status", value=status, label=f"{status} FPAs")
        elif landowner_type := extract_landowner_type(text):
            list_filter = ListFilter(
                type="landowner_type", value=landowner_type, label=f"{landowner_type} landowner FPAs"
            )
        elif (match := _LANDOWNER_FILTER_RE.search(text)) and match.group(1).strip():
            name = collapse_whitespace(match.group(1))
            list_filter = ListFilter(type="landowner", value=name, label=f"Landowner: {name}")
        else:
            list_filter = ListFilter(type="all", label="All FPAs")
        return ParsedCommand(intent=Intent.LIST, list_filter=list_filter)


# ---------------------------------------------------------------------------
# AI parser
# ---------------------------------------------------------------------------

_AI_INTENTS = {
    "create": Intent.CREATE,
    "update": Intent.UPDATE,
    "delete": Intent.DELETE,
    "comment": Intent.COMMENT,
    "view": Intent.VIEW,
    "list": Intent.LIST,
    "navigate": Intent.NAVIGATE,
    "question": Intent.QUESTION,
    "unknown": Intent.UNKNOWN,
}


class AICommandParser:
    """Structured parse through the natural-language service.

    Never raises: service failures and invalid payloads come back as a
    ParsedCommand with `error` set.
    """

    def __init__(self, service: LanguageService):
        self.service = service

    async def parse(
        self,
        utterance: str,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> ParsedCommand:
        known = [r.fpa_number for r in records]
        try:
            raw = await self.service.parse_command(utterance, known)
        except LanguageServiceError as e:
            logger.warning("AI command parse failed for '%s': %s", truncate(utterance), e)
            return ParsedCommand(intent=Intent.UNKNOWN, error=str(e), source="ai")

        payload, error = validate_command_payload(raw)
        if error:
            logger.warning("AI payload failed validation: %s", truncate(error, 300))
            return ParsedCommand(intent=Intent.UNKNOWN, error="AI response was not understood", source="ai")

        return self._to_command(payload)

    def _to_command(self, payload: dict) -> ParsedCommand:
        intent = _AI_INTENTS[payload["intent"]]
        fields: dict[str, str] = dict(payload.get("fields", {}))
        view = View(payload["view"]) if payload.get("view") else None
        list_filter = None

        if intent is Intent.LIST:
            if status := fields.get(APPLICATION_STATUS):
                list_filter = ListFilter(type="status", value=status, label=f"{status} FPAs")
            elif landowner_type := fields.get(LANDOWNER_TYPE):
                list_filter = ListFilter(
                    type="landowner_type", value=landowner_type, label=f"{landowner_type} landowner FPAs"
                )
            elif landowner := fields.get(LANDOWNER):
                list_filter = ListFilter(type="landowner", value=landowner, label=f"Landowner: {landowner}")
            else:
                list_filter = ListFilter(type="all", label="All FPAs")

        if intent is Intent.NAVIGATE and view is None:
            view = View.DASHBOARD

        return ParsedCommand(
            intent=intent,
            entity_id=payload.get("fpa_number"),
            fields=fields,
            view=view,
            list_filter=list_filter,
            response=payload.get("response"),
            source="ai",
        )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class FallbackCommandParser:
    """Try `primary`; on error or an unknown intent, use `fallback`."""

    def __init__(self, primary: CommandParser, fallback: CommandParser):
        self.primary = primary
        self.fallback = fallback

    async def parse(
        self,
        utterance: str,
        records: list[FpaRecord],
        context_record: FpaRecord | None = None,
    ) -> ParsedCommand:
        command = await self.primary.parse(utterance, records, context_record)
        if command.error is None and command.intent is not Intent.UNKNOWN:
            return command

        fallback = await self.fallback.parse(utterance, records, context_record)
        if command.error is not None:
            logger.warning("Falling back to rule-based parsing: %s", command.error)
            fallback.advisory = "AI assistant unavailable, using built-in commands."
        return fallback


def build_command_parser(service: LanguageService | None) -> CommandParser:
    """AI-first parser when a service is configured, rule-based otherwise."""
    rules = RuleBasedCommandParser()
    if service is None:
        return rules
    return FallbackCommandParser(AICommandParser(service), rules)
