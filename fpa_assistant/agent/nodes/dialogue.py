"""
Dialogue node: feeds the utterance to the pending operation.

A fresh create request ("add fpa 600") while another dialogue is in
flight supersedes it; the node then drops the pending operation and the
graph re-parses the utterance as a new command. A read-only request
("show approved fpas") does the same to an update still waiting to hear
what to change.
"""

import logging

from fpa_assistant.agent.dialogue import CANCEL_RE
from fpa_assistant.agent.parsers import is_create_request
from fpa_assistant.agent.state import AssistantState
from fpa_assistant.core.utils import truncate

logger = logging.getLogger(__name__)


def dialogue_node(state: AssistantState) -> dict:
    """Advance the pending operation by one utterance.

    Returns:
        Partial state with the new pending operation and this turn's actions.
    """
    pending = state["pending"]
    user_message = state.get("user_message", "")

    if is_create_request(user_message) and not CANCEL_RE.search(user_message):
        logger.info(
            "Create request '%s' supersedes pending %s",
            truncate(user_message),
            pending.intent.value,
        )
        return {"pending": None, "superseded": True}

    if state["machine"].yields_to(pending, user_message):
        logger.info("Request '%s' ends the open update", truncate(user_message))
        return {"pending": None, "superseded": True}

    outcome = state["machine"].advance(pending, user_message, state.get("records", []))
    outcome = state["planner"].execute(outcome)
    return {"pending": outcome.pending, "actions": outcome.actions}
