"""
FPA assistant graph state definition.

Defines the typed state that flows through all LangGraph nodes during a
single chat turn. The per-conversation pieces (pending operation,
history, focused record) live on the ChatAssistant and are copied in at
the start of each turn and read back at the end.

Uses a LangGraph reducer for the one field several nodes write to:
- actions: append semantics (each node adds the actions it produced)
"""

from operator import add
from typing import Annotated, Any, TypedDict

from fpa_assistant.agent.parsers import ParsedCommand
from fpa_assistant.core.pending import PendingOperation
from fpa_assistant.core.records import FpaRecord


class AssistantState(TypedDict, total=False):
    """Complete state for one chat turn.

    Split into sections:
    - Input:         Set by the caller each turn
    - Collaborators: Injected per session, never serialized
    - Dialogue:      The pending operation carried between turns
    - Output:        UI actions produced this turn
    - Intermediate:  Ephemeral fields used for inter-node communication
    """

    # --- Input (set per turn) ---
    user_message: str
    records: list[FpaRecord]
    context_record: FpaRecord | None
    # Recent messages before this turn, as {"role", "text"} dicts
    conversation_history: list[dict[str, str]]

    # --- Collaborators (injected, not serialized) ---
    parser: Any  # CommandParser
    machine: Any  # DialogueStateMachine
    planner: Any  # ResponsePlanner
    language_service: Any  # LanguageService | None

    # --- Dialogue state ---
    pending: PendingOperation | None

    # --- Output ---
    actions: Annotated[list[dict[str, Any]], add]

    # --- Intermediate ---
    parsed_command: ParsedCommand | None
    # A new create request replaced the pending dialogue this turn
    superseded: bool
    # No command matched; the reply node should answer free-form
    needs_reply: bool
