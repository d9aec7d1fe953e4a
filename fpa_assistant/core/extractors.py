"""
Pattern-based field extractors.

Each extractor pulls one typed value out of a free-form utterance and
returns None when nothing usable is present. They are pure, never raise,
and return already-normalized values (dates as YYYY-MM-DD, choices as
their canonical enum value).

Free-text fields are captured through a FIELD_PATTERNS table keyed by
field ID, so synonyms can be added without touching the dialogue logic.
"""

import re
from datetime import date

from dateutil import parser as dateutil_parser

from fpa_assistant.core.schema import (
    APPLICATION_STATUS,
    APPROVED_ACTIVITY,
    DECISION_DEADLINE,
    EXPIRATION_DATE,
    FPA_NUMBER,
    LANDOWNER,
    LANDOWNER_TYPE,
    NOTES,
    TIMBER_SALE_NAME,
    ApplicationStatus,
    ApprovedActivity,
    LandownerType,
)
from fpa_assistant.core.utils import collapse_whitespace

# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

# First match wins. Decision/pending phrases come before "approved";
# word boundaries keep "disapproved" from matching "approved".
_STATUS_RULES: list[tuple[re.Pattern, ApplicationStatus]] = [
    (re.compile(r"\b(?:in\s+)?decision\s+window\b|\bin\s+decision\b", re.I), ApplicationStatus.IN_DECISION_WINDOW),
    (re.compile(r"\bpending\b", re.I), ApplicationStatus.IN_DECISION_WINDOW),
    # A bare "decision" only counts next to a status cue, so names like
    # "Decision Creek" stay names
    (
        re.compile(
            r"^\s*decision\s*$"
            r"|\b(?:status|to|as|into)\s+(?:is\s+|of\s+)?(?:the\s+)?decision\b(?!\s+(?:deadline|date)\b)"
            r"|\bdecision\s+(?:fpas?|applications?|status|stage|phase)\b",
            re.I,
        ),
        ApplicationStatus.IN_DECISION_WINDOW,
    ),
    (re.compile(r"\bapproved\b", re.I), ApplicationStatus.APPROVED),
    (re.compile(r"\bwithdrawn\b", re.I), ApplicationStatus.WITHDRAWN),
    (re.compile(r"\bdisapproved\b", re.I), ApplicationStatus.DISAPPROVED),
    (re.compile(r"\bclosed(?:\s+out)?\b", re.I), ApplicationStatus.CLOSED_OUT),
]

_STATUS_TARGET_RE = re.compile(
    r"\bto\s+(in\s+decision(?:\s+window)?|pending|decision|approved|disapproved|withdrawn|closed(?:\s+out)?)\b",
    re.I,
)


def extract_status(text: str) -> str | None:
    """Map status phrases to the closed application-status set."""
    if not text:
        return None
    for pattern, status in _STATUS_RULES:
        if pattern.search(text):
            return status.value
    return None


def extract_target_status(text: str) -> str | None:
    """Status the user wants to change *to*.

    "change status from approved to withdrawn" -> Withdrawn. Falls back
    to extract_status when there is no "to <status>" phrase.
    """
    if not text:
        return None
    match = _STATUS_TARGET_RE.search(text)
    if match:
        return extract_status(match.group(1))
    return extract_status(text)


# ---------------------------------------------------------------------------
# Landowner type and activity
# ---------------------------------------------------------------------------


def extract_landowner_type(text: str) -> str | None:
    """'large' is checked before 'small'."""
    if not text:
        return None
    if re.search(r"\blarge\b", text, re.I):
        return LandownerType.LARGE.value
    if re.search(r"\bsmall\b", text, re.I):
        return LandownerType.SMALL.value
    return None


def extract_activity(text: str) -> str | None:
    """'not started' must win over the bare word 'started'."""
    if not text:
        return None
    if re.search(r"\bnot\s+(?:yet\s+)?started\b|\bhasn'?t\s+started\b", text, re.I):
        return ApprovedActivity.NOT_STARTED.value
    if re.search(r"\bcomplete(?:d)?\b|\bfinished\b", text, re.I):
        return ApprovedActivity.COMPLETED.value
    if re.search(r"\bstarted\b|\bin\s+progress\b", text, re.I):
        return ApprovedActivity.STARTED.value
    return None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_US_DATE_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4})\b")
_BARE_YEAR_RE = re.compile(r"^\s*(\d{4})\s*\.?\s*$")
_MONTH_NAME_RE = re.compile(
    r"\b([a-z]{3,9})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})\b", re.I
)
_YEAR_LITERAL_RE = re.compile(r"\b(\d{4})\b")


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _year_literal_present(text: str, value: date) -> bool:
    return str(value.year) in _YEAR_LITERAL_RE.findall(text)


def extract_date(text: str) -> str | None:
    """Extract a date and normalize it to YYYY-MM-DD.

    Accepted forms, first match wins: ISO (2045-06-20), M/D/YYYY or
    M-D-YYYY, a bare 4-digit year (Jan 1 of that year), and month names
    ("June 20, 2045", comma optional). Any result whose year does not
    appear literally in the input is rejected, so two-digit years are
    never guessed into the wrong century.
    """
    if not text:
        return None

    match = _ISO_DATE_RE.search(text)
    if match:
        value = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return value.isoformat() if value else None

    match = _US_DATE_RE.search(text)
    if match:
        value = _safe_date(int(match.group(3)), int(match.group(1)), int(match.group(2)))
        return value.isoformat() if value else None

    match = _BARE_YEAR_RE.match(text)
    if match:
        return f"{match.group(1)}-01-01"

    match = _MONTH_NAME_RE.search(text)
    if match:
        try:
            parsed = dateutil_parser.parse(match.group(0)).date()
        except (ValueError, OverflowError):
            parsed = None
        if parsed is not None and _year_literal_present(text, parsed):
            return parsed.isoformat()

    return None


# ---------------------------------------------------------------------------
# FPA number
# ---------------------------------------------------------------------------

_FPA_NUMBER_RE = re.compile(
    r"\bfpa\s*(?:number|num|no\.?|#)?\s*(?:is\s+)?[#:-]*\s*([0-9][a-z0-9-]*)",
    re.I,
)
_BARE_IDENTIFIER_RE = re.compile(
    r"^\s*(?:(?:the\s+)?(?:fpa\s*)?(?:number|#)?\s*(?:is|i)\s+)?#?\s*([0-9][a-z0-9-]*)\s*\.?\s*$",
    re.I,
)


def _clean_identifier(token: str) -> str:
    return token.strip().strip("-")


def extract_fpa_number(text: str) -> str | None:
    """Capture a leading-digit token following 'fpa' ("add fpa 2024-777")."""
    if not text:
        return None
    match = _FPA_NUMBER_RE.search(text)
    if not match:
        return None
    token = _clean_identifier(match.group(1))
    return token or None


def extract_identifier_answer(text: str) -> str | None:
    """Read an identifier given as a direct answer ("501", "number is 501")."""
    if not text:
        return None
    number = extract_fpa_number(text)
    if number:
        return number
    match = _BARE_IDENTIFIER_RE.match(text)
    if match:
        return _clean_identifier(match.group(1)) or None
    return None


# ---------------------------------------------------------------------------
# Free-text fields
# ---------------------------------------------------------------------------

# Lookahead marking where a captured free-text value ends
_STOP = (
    r"(?=\s*(?:[,;]|\.(?:\s|$)|\band\b|\btimber\b|\bsale\b|\bstatus\b|\btype\b"
    r"|\bexpir|\bexp\b|\bdecision\b|\bdeadline\b|\bnotes?\b|\bcomments?\b"
    r"|\blandowner\b|\bactivity\b|$))"
)

FIELD_PATTERNS: dict[str, list[re.Pattern]] = {
    LANDOWNER: [
        re.compile(
            r"\b(?:landowner|land\s+owner|owner|lo)\b(?!\s*type\b)\s*(?:name\s+)?(?:(?:is|of)\b|=|:)?\s*"
            r"(?P<value>[^,;.]+?)" + _STOP,
            re.I,
        ),
    ],
    TIMBER_SALE_NAME: [
        re.compile(
            r"\b(?:timber\s*sale|ts)\b\s*(?:name\s*)?(?:(?:is|of|called|named)\b|=|:)?\s*"
            r"(?P<value>[^,;.]+?)" + _STOP,
            re.I,
        ),
        re.compile(
            r"\bsale\s+name\s*(?:is\b|=|:)?\s*(?P<value>[^,;.]+?)" + _STOP,
            re.I,
        ),
    ],
    NOTES: [
        re.compile(
            r"\b(?:add\s+)?(?:an?\s+)?(?:notes?|comments?)\b"
            r"(?:\s+(?:to|for|on)\s+fpa\s*[#-]?\s*[a-z0-9-]+)?"
            r"\s*(?:(?:is|are|of|that|saying|says|about)\b|:|-)?\s*"
            r"(?P<value>[^;]+?)\s*(?:;|\.(?:\s|$)|$)",
            re.I,
        ),
    ],
}

# Date fields are captured by trigger phrase and then parsed by extract_date
DATE_TRIGGER_PATTERNS: dict[str, re.Pattern] = {
    EXPIRATION_DATE: re.compile(
        r"\b(?:expir(?:ation|es|y|ing)?|exp)\b\s*(?:date\s*)?(?:(?:is|of|on|to)\b|=|:)?\s*"
        r"(?P<value>.+?)(?=\s*(?:;|\.(?:\s|$)|\band\b|\bnotes?\b|\bstatus\b|\blandowner\b"
        r"|\btimber\b|\bdecision\b|\bactivity\b|$))",
        re.I,
    ),
    DECISION_DEADLINE: re.compile(
        r"\b(?:decision|dec)\b\s*(?:deadline|date)?\s*(?:(?:is|of|on|to)\b|=|:)?\s*"
        r"(?P<value>.+?)(?=\s*(?:;|\.(?:\s|$)|\band\b|\bnotes?\b|\bstatus\b|\blandowner\b"
        r"|\btimber\b|\bexpir|\bexp\b|\bactivity\b|$))",
        re.I,
    ),
}

# Prefixes stripped when the whole utterance answers the awaited field
_ANSWER_PREFIXES: dict[str, re.Pattern] = {
    LANDOWNER: re.compile(r"^(?:the\s+)?(?:landowner|land\s+owner|owner|lo)\b\s*(?:name\s+)?(?:(?:is|of)\b|=|:)?\s*", re.I),
    TIMBER_SALE_NAME: re.compile(
        r"^(?:the\s+)?(?:(?:timber\s*sale|ts)\b\s*(?:name\s*)?(?:(?:is|of)\b|=|:)?|sale\s+name\s*(?:is\b|=|:)?)\s*",
        re.I,
    ),
    NOTES: re.compile(r"^(?:notes?|comments?|n)\b\s*(?:(?:is|are|of)\b|:|-)?\s*", re.I),
}
_LEADING_FILLER_RE = re.compile(r"^(?:it'?s|it\s+is|is|named|called)\s+", re.I)

# Connector after a single-word field name: "owner is", "status:"
_TAG_CONNECTOR = r"\b\s*(?:(?:is|are)\b|[:=])"

# Answers that open by naming a field. Multi-word names count on their own;
# single words such as "owner" or "status" need a connector, so "Owner
# wants a callback" stays a plain answer. Landowner type precedes landowner.
_LEADING_TAGS: list[tuple[str, re.Pattern]] = [
    (LANDOWNER_TYPE, re.compile(r"^(?:the\s+)?(?:land\s*owner|owner)\s+type\b", re.I)),
    (LANDOWNER, re.compile(r"^(?:the\s+)?(?:land\s+owner\b|(?:landowner|owner|lo)" + _TAG_CONNECTOR + ")", re.I)),
    (TIMBER_SALE_NAME, re.compile(r"^(?:the\s+)?(?:timber\s*sale\b|sale\s+name\b|ts" + _TAG_CONNECTOR + ")", re.I)),
    (APPLICATION_STATUS, re.compile(r"^(?:the\s+)?(?:application\s+status\b|status" + _TAG_CONNECTOR + ")", re.I)),
    (DECISION_DEADLINE, re.compile(r"^(?:the\s+)?(?:decision\s+(?:deadline|date)\b|deadline" + _TAG_CONNECTOR + ")", re.I)),
    (EXPIRATION_DATE, re.compile(r"^(?:the\s+)?(?:expiration\s+date\b|(?:expiration|expires|exp)" + _TAG_CONNECTOR + ")", re.I)),
    (APPROVED_ACTIVITY, re.compile(r"^(?:the\s+)?(?:approved\s+activity\b|activity" + _TAG_CONNECTOR + ")", re.I)),
    (NOTES, re.compile(r"^(?:notes?|comments?)" + _TAG_CONNECTOR, re.I)),
    (FPA_NUMBER, re.compile(r"^(?:the\s+)?(?:fpa\s*(?:(?:number|no)\b\.?|#)|fpa" + _TAG_CONNECTOR + ")", re.I)),
]


def extract_free_text(field_id: str, text: str) -> str | None:
    """Capture a free-text field anchored on one of its trigger phrases."""
    if not text:
        return None
    for pattern in FIELD_PATTERNS.get(field_id, []):
        match = pattern.search(text)
        if match:
            value = collapse_whitespace(match.group("value"))
            if value:
                return capitalize_first(value) if field_id == NOTES else value
    return None


def _extract_triggered_date(field_id: str, text: str) -> str | None:
    pattern = DATE_TRIGGER_PATTERNS.get(field_id)
    if pattern is None or not text:
        return None
    match = pattern.search(text)
    if not match:
        return None
    return extract_date(match.group("value"))


def leading_field_tag(text: str) -> str | None:
    """Field an answer opens by naming ("landowner is Bob" -> landowner).

    Returns None for plain answers, including ones that only mention a
    field name further in ("Decision Creek Unit 4").
    """
    if not text:
        return None
    stripped = text.strip()
    for field_id, pattern in _LEADING_TAGS:
        if pattern.match(stripped):
            return field_id
    return None


def capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:] if value else value


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def extract(field_id: str, text: str) -> str | None:
    """Extract a single field from an utterance that tags it explicitly.

    Args:
        field_id: One of the record field IDs.
        text: The raw utterance.

    Returns:
        The normalized value, or None if the field is not present.
    """
    match field_id:
        case "application_status":
            return extract_status(text)
        case "landowner_type":
            return extract_landowner_type(text)
        case "approved_activity":
            return extract_activity(text)
        case "decision_deadline" | "expiration_date":
            return _extract_triggered_date(field_id, text)
        case "fpa_number":
            return extract_fpa_number(text)
        case _:
            return extract_free_text(field_id, text)


# Fields extract_all looks for (fpa_number is resolved separately)
_ALL_FIELDS = (
    LANDOWNER,
    TIMBER_SALE_NAME,
    LANDOWNER_TYPE,
    APPLICATION_STATUS,
    DECISION_DEADLINE,
    EXPIRATION_DATE,
    APPROVED_ACTIVITY,
    NOTES,
)


def extract_all(text: str) -> dict[str, str]:
    """Run every field extractor and return the values that were found."""
    found: dict[str, str] = {}
    for field_id in _ALL_FIELDS:
        value = extract(field_id, text)
        if value:
            found[field_id] = value
    return found


def parse_field_answer(field_id: str, text: str) -> str | None:
    """Interpret an utterance as the direct answer to one awaited field.

    Unlike `extract`, free-text fields take the whole answer (minus a
    restated prefix such as "landowner is"), and dates need no trigger.
    """
    if not text or not text.strip():
        return None
    stripped = text.strip()

    match field_id:
        case "fpa_number":
            return extract_identifier_answer(stripped)
        case "application_status":
            return extract_status(stripped)
        case "landowner_type":
            return extract_landowner_type(stripped)
        case "approved_activity":
            return extract_activity(stripped)
        case "decision_deadline" | "expiration_date":
            return extract_date(stripped)

    prefix = _ANSWER_PREFIXES.get(field_id)
    if prefix is not None:
        stripped = prefix.sub("", stripped, count=1)
    stripped = _LEADING_FILLER_RE.sub("", stripped)
    value = collapse_whitespace(stripped).rstrip(".")
    if not value:
        return None
    return capitalize_first(value) if field_id == NOTES else value
