"""
Greeting node: the message shown when the chat panel opens.
"""

from fpa_assistant.agent.prompts import build_greeting
from fpa_assistant.agent.state import AssistantState
from fpa_assistant.core.actions import build_message_action


def greeting_node(state: AssistantState) -> dict:
    """Greet the user, naming whether the AI path is active."""
    ai_enabled = state.get("language_service") is not None
    return {"actions": [build_message_action(build_greeting(ai_enabled))]}
