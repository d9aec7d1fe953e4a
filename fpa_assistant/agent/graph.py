"""
LangGraph definition for one FPA assistant chat turn.

Models the turn as an explicit, inspectable state machine.

Flow:
    START -> route_input -> {greeting, dialogue, parse}
    greeting -> END
    dialogue -> {parse, END} (conditional; parse when a new create
                request superseded the pending dialogue)
    parse    -> plan
    plan     -> {reply, END} (conditional; reply when no command matched)
    reply    -> END
"""

import logging
from typing import Any

from langgraph.graph import END, START, StateGraph

from fpa_assistant.agent.nodes.dialogue import dialogue_node
from fpa_assistant.agent.nodes.greeting import greeting_node
from fpa_assistant.agent.nodes.parse import parse_node
from fpa_assistant.agent.nodes.plan import plan_node
from fpa_assistant.agent.nodes.reply import reply_node
from fpa_assistant.agent.state import AssistantState
from fpa_assistant.core.pending import PendingOperation
from fpa_assistant.core.records import FpaRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Routing functions: decide which node to enter next
# ---------------------------------------------------------------------------


def route_input(state: AssistantState) -> str:
    """Determine which node to enter based on the current input.

    Routing priority:
    1. Empty message -> greeting
    2. A dialogue is pending -> dialogue (the AI path is not consulted)
    3. Default -> parse
    """
    if not state.get("user_message", "").strip():
        return "greeting"
    if state.get("pending") is not None:
        return "dialogue"
    return "parse"


def route_after_dialogue(state: AssistantState) -> str:
    if state.get("superseded"):
        return "parse"
    return END


def route_after_plan(state: AssistantState) -> str:
    if state.get("needs_reply"):
        return "reply"
    return END


# ---------------------------------------------------------------------------
# Graph construction
# ---------------------------------------------------------------------------


def build_graph() -> StateGraph:
    """Build the assistant turn graph (uncompiled).

    Returns:
        A StateGraph instance ready to be compiled.
    """
    graph = StateGraph(AssistantState)

    graph.add_node("greeting", greeting_node)
    graph.add_node("dialogue", dialogue_node)
    graph.add_node("parse", parse_node)
    graph.add_node("plan", plan_node)
    graph.add_node("reply", reply_node)

    graph.add_conditional_edges(START, route_input, {
        "greeting": "greeting",
        "dialogue": "dialogue",
        "parse": "parse",
    })

    graph.add_edge("greeting", END)

    graph.add_conditional_edges("dialogue", route_after_dialogue, {
        "parse": "parse",
        END: END,
    })

    graph.add_edge("parse", "plan")

    graph.add_conditional_edges("plan", route_after_plan, {
        "reply": "reply",
        END: END,
    })

    graph.add_edge("reply", END)

    return graph


def compile_graph():
    """Build and compile the assistant graph.

    Returns:
        A compiled graph ready for invocation via ainvoke().
    """
    return build_graph().compile()


# ---------------------------------------------------------------------------
# State initialization helper
# ---------------------------------------------------------------------------


def create_turn_state(
    user_message: str,
    *,
    parser: Any,
    machine: Any,
    planner: Any,
    language_service: Any = None,
    records: list[FpaRecord] | None = None,
    context_record: FpaRecord | None = None,
    conversation_history: list[dict[str, str]] | None = None,
    pending: PendingOperation | None = None,
) -> AssistantState:
    """Create the input state for one turn.

    Ephemeral per-turn fields start cleared; the pending operation and
    history are carried in from the session.
    """
    return AssistantState(
        user_message=user_message,
        records=records or [],
        context_record=context_record,
        conversation_history=conversation_history or [],
        parser=parser,
        machine=machine,
        planner=planner,
        language_service=language_service,
        pending=pending,
        actions=[],
        parsed_command=None,
        superseded=False,
        needs_reply=False,
    )
