"""
Shared utility functions for the FPA assistant.
"""

import re
from datetime import date, datetime

from dateutil import parser as dateutil_parser

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def parse_date(value: str) -> date | None:
    """Parse a date string into a date object.

    Returns None if the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = dateutil_parser.parse(value)
        if isinstance(parsed, datetime):
            return parsed.date()
        return parsed
    except (ValueError, TypeError, OverflowError):
        return None


def normalize_identifier(value: str | None) -> str:
    """Lowercase and strip everything but ASCII letters and digits.

    "FPA-2024 777" -> "fpa2024777". Used for duplicate detection and
    entity resolution so punctuation and spacing never matter.
    """
    if not value:
        return ""
    return _NON_ALNUM.sub("", str(value).lower())


def collapse_whitespace(value: str) -> str:
    """Collapse runs of whitespace into single spaces and trim."""
    return _WHITESPACE.sub(" ", value).strip()


def truncate(value: str, limit: int = 100) -> str:
    """Shorten text for log lines."""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."
