"""
Graph nodes for the FPA assistant turn pipeline.

Each node is a focused function that takes AssistantState and returns
a partial state update dict. Nodes communicate through the shared state.
"""

from fpa_assistant.agent.nodes.dialogue import dialogue_node
from fpa_assistant.agent.nodes.greeting import greeting_node
from fpa_assistant.agent.nodes.parse import parse_node
from fpa_assistant.agent.nodes.plan import plan_node
from fpa_assistant.agent.nodes.reply import reply_node

__all__ = [
    "greeting_node",
    "dialogue_node",
    "parse_node",
    "plan_node",
    "reply_node",
]
