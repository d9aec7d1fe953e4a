"""
Prompt and canned-text builders.

The command prompt asks the model for a single JSON object with a fixed
shape so the reply can be validated deterministically. Everything the
model returns is advisory: values are re-validated and cleaned before
they reach a pending operation.
"""

import json

from fpa_assistant.core.records import FpaRecord
from fpa_assistant.core.schema import ApplicationStatus

# Cap on identifiers listed in the prompt; keeps small models on task
_MAX_KNOWN_IDENTIFIERS = 200


def build_command_prompt(known_identifiers: list[str]) -> str:
    """System prompt for structured command parsing.

    Args:
        known_identifiers: FPA numbers that already exist.

    Returns:
        The system prompt text.
    """
    known = json.dumps(known_identifiers[:_MAX_KNOWN_IDENTIFIERS])
    statuses = ", ".join(s.value for s in ApplicationStatus)

    return f"""You parse commands for a Forest Practice Application (FPA) tracking tool.
Read the user's message and return ONLY one JSON object, no prose, no markdown:

{{
  "intent": "create" | "update" | "delete" | "comment" | "view" | "list" | "navigate" | "question" | "unknown",
  "fpa_number": string or null,
  "fields": {{
    "landowner": string or null,
    "timber_sale_name": string or null,
    "landowner_type": "Small" | "Large" | null,
    "application_status": one of [{statuses}] or null,
    "approved_activity": "Not Started" | "Started" | "Completed" | null,
    "decision_deadline": "YYYY-MM-DD" or null,
    "expiration_date": "YYYY-MM-DD" or null,
    "notes": string or null
  }},
  "view": "dashboard" | "list" | "add" | "reports" | null,
  "response": short friendly confirmation for the user
}}

Rules:
- "create": the user wants a new FPA. "update": change fields of an existing FPA.
  "comment": add a note to an existing FPA. "delete": remove an FPA.
  "view": open one FPA. "list": show FPAs, optionally filtered by status or landowner type.
  "navigate": go to a screen (set "view"). "question": anything else about the data.
- Put ONLY the values the user actually stated. Never invent values. Use null otherwise.
- "pending" or "in decision" means application_status "In Decision Window".
- Dates must be full YYYY-MM-DD. If the year is missing or ambiguous, use null.
- Names: give just the name, without words like "named", "called", "is".
- Existing FPA numbers: {known}
  Match the user's reference to one of these when they clearly mean it.
"""


def build_reply_prompt(context_summary: str) -> str:
    """System prompt for free-form answers when no command was detected."""
    return (
        "You are the assistant inside a Forest Practice Application (FPA) tracking tool. "
        "Answer briefly (two or three sentences) and only from the data below. "
        "If the user seems to want an action, tell them the command to use, "
        'for example "add fpa 123" or "show approved fpas".\n\n'
        f"Current data: {context_summary}"
    )


def summarize_records(records: list[FpaRecord]) -> str:
    """One-line context summary: 'The system has 3 FPA(s): 2 Approved, 1 unassigned.'"""
    if not records:
        return "The system has no FPAs yet."

    counts: dict[str, int] = {}
    for record in records:
        status = record.application_status or "unassigned"
        counts[status] = counts.get(status, 0) + 1
    parts = ", ".join(f"{count} {status}" for status, count in counts.items())
    numbers = ", ".join(r.fpa_number for r in records[:_MAX_KNOWN_IDENTIFIERS])
    return f"The system has {len(records)} FPA(s): {parts}. FPA numbers: {numbers}."


def build_help_text() -> str:
    return (
        "I can help with FPA management! Try natural language like:\n"
        '• "Add a new FPA 256"\n'
        '• "Set the landowner for FPA 256 to John Smith"\n'
        '• "Change the timber sale name for 256 to Oak Forest"\n'
        '• "Update status for FPA 256 to approved"\n'
        '• "Add a note to FPA 256 saying needs paperwork"\n'
        '• "Open FPA 256"\n'
        '• "What\'s the expiration date for 256?"\n'
        '• "Show approved FPAs" or "summary"\n'
        'You can also say "go to dashboard", "go to list", or "go to reports".'
    )


def build_greeting(ai_enabled: bool) -> str:
    mode = "🤖 AI-powered" if ai_enabled else "📋 Rule-based"
    return (
        f"Hi! I can help you manage FPAs ({mode}). "
        "Just chat naturally - tell me what you'd like to do!"
    )
