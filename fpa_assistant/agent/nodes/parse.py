"""
Parse node: run the command parser on a fresh utterance.

With the AI path configured this tries the language service first and
falls back to the rule-based parser. When the AI path was skipped, a
short advisory goes out ahead of the turn's other messages.
"""

import logging

from fpa_assistant.agent.state import AssistantState
from fpa_assistant.core.actions import build_message_action
from fpa_assistant.core.utils import truncate

logger = logging.getLogger(__name__)


async def parse_node(state: AssistantState) -> dict:
    user_message = state.get("user_message", "")
    command = await state["parser"].parse(
        user_message,
        state.get("records", []),
        state.get("context_record"),
    )
    logger.info(
        "Parsed '%s' -> intent=%s entity=%s fields=%s (%s)",
        truncate(user_message),
        command.intent.value,
        command.entity_id,
        sorted(command.fields),
        command.source,
    )

    updates: dict = {"parsed_command": command}
    if command.advisory:
        updates["actions"] = [build_message_action(f"ℹ️ {command.advisory}")]
    return updates
