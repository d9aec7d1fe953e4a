"""
Entity resolver: find which known FPA record an utterance refers to.

Resolution is deliberately literal. Identifiers are compared after
normalization (lowercase, alphanumerics only) and a known identifier
only needs to appear *inside* the normalized utterance. Typos and fuzzy
references are left to the AI path.
"""

import re

from fpa_assistant.core.records import FpaRecord, find_by_fpa_number
from fpa_assistant.core.utils import normalize_identifier

_EXPLICIT_REFERENCE_RE = re.compile(r"\bfpa\s*[-#:]*\s*([a-z0-9-]+)", re.I)


def resolve(utterance: str, records: list[FpaRecord]) -> FpaRecord | None:
    """Return the record the utterance mentions, or None.

    Phase one tests containment of each normalized identifier in the
    normalized utterance, longest identifier first so "500" wins over
    "50". Phase two falls back to an explicit "fpa <token>" reference
    compared by equality.

    Args:
        utterance: Raw user text.
        records: Known records from the store.

    Returns:
        The matching record, or None if nothing matches.
    """
    normalized_text = normalize_identifier(utterance)
    if not normalized_text or not records:
        return None

    candidates = sorted(
        records,
        key=lambda record: len(normalize_identifier(record.fpa_number)),
        reverse=True,
    )
    for record in candidates:
        identifier = normalize_identifier(record.fpa_number)
        if identifier and identifier in normalized_text:
            return record

    match = _EXPLICIT_REFERENCE_RE.search(utterance)
    if match:
        return find_by_fpa_number(match.group(1), records)
    return None


def find_record_by_id(record_id: str | None, records: list[FpaRecord]) -> FpaRecord | None:
    """Lookup by store id (used for the record the UI has open)."""
    if not record_id:
        return None
    for record in records:
        if record.id == record_id:
            return record
    return None
