"""
Reply node: free-form answer when no command intent was detected.

Uses the language service with the last few messages and a one-line
summary of the records. Without a service, or when it fails, the user
gets the help text instead.
"""

import logging

from fpa_assistant.agent.language_service import LanguageServiceError
from fpa_assistant.agent.prompts import build_help_text, summarize_records
from fpa_assistant.agent.state import AssistantState
from fpa_assistant.agent.utils import MAX_HISTORY_MESSAGES
from fpa_assistant.core.actions import build_message_action

logger = logging.getLogger(__name__)

FALLBACK_REPLY_PREFIX = "I'm not sure how to help with that."


async def reply_node(state: AssistantState) -> dict:
    service = state.get("language_service")
    user_message = state.get("user_message", "")

    if service is not None:
        history = state.get("conversation_history", [])[-MAX_HISTORY_MESSAGES:]
        try:
            text = await service.free_form_reply(
                user_message,
                history,
                summarize_records(state.get("records", [])),
            )
            return {"actions": [build_message_action(text)]}
        except LanguageServiceError as e:
            logger.warning("Free-form reply unavailable, sending help text: %s", e)

    return {"actions": [build_message_action(f"{FALLBACK_REPLY_PREFIX}\n\n{build_help_text()}")]}
