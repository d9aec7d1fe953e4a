"""
Tests for the turn graph wiring.

Tests cover:
- route_input priority (greeting, dialogue, parse)
- Conditional edges after dialogue and plan
- Initial turn state defaults
"""

from langgraph.graph import END

from fpa_assistant.agent.graph import (
    compile_graph,
    create_turn_state,
    route_after_dialogue,
    route_after_plan,
    route_input,
)
from fpa_assistant.core.pending import PendingOperation
from fpa_assistant.core.schema import Intent


class TestRouting:
    """Tests for the routing functions."""

    def test_empty_message_greets(self):
        assert route_input({"user_message": "  "}) == "greeting"

    def test_empty_message_greets_even_with_pending(self):
        pending = PendingOperation(intent=Intent.DELETE)
        assert route_input({"user_message": "", "pending": pending}) == "greeting"

    def test_pending_goes_to_dialogue(self):
        pending = PendingOperation(intent=Intent.DELETE)
        assert route_input({"user_message": "yes", "pending": pending}) == "dialogue"

    def test_default_parse(self):
        assert route_input({"user_message": "help", "pending": None}) == "parse"

    def test_superseded_reparses(self):
        assert route_after_dialogue({"superseded": True}) == "parse"
        assert route_after_dialogue({"superseded": False}) == END

    def test_reply_when_needed(self):
        assert route_after_plan({"needs_reply": True}) == "reply"
        assert route_after_plan({}) == END


class TestTurnState:
    """Tests for graph construction and initial state."""

    def test_compiles(self):
        assert compile_graph() is not None

    def test_defaults(self):
        state = create_turn_state("hi", parser=None, machine=None, planner=None)
        assert state["records"] == []
        assert state["conversation_history"] == []
        assert state["actions"] == []
        assert state["pending"] is None
        assert state["superseded"] is False
        assert state["needs_reply"] is False
