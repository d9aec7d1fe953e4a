"""
Plan node: act on a freshly parsed command.

Mutating intents open (or, when complete, immediately dispatch) a
dialogue. Everything else is answered by the response planner, unless
it needs a free-form reply.
"""

from fpa_assistant.agent.state import AssistantState
from fpa_assistant.core.schema import MUTATING_INTENTS


def plan_node(state: AssistantState) -> dict:
    """Route the parsed command to the dialogue machine or the planner.

    Returns:
        Partial state with pending operation, actions and the reply flag.
    """
    command = state["parsed_command"]
    records = state.get("records", [])
    context_record = state.get("context_record")
    planner = state["planner"]

    if command.intent in MUTATING_INTENTS:
        outcome = state["machine"].start(command, records, context_record)
        outcome = planner.execute(outcome)
        return {"pending": outcome.pending, "actions": outcome.actions, "needs_reply": False}

    actions = planner.plan_query(command, records, context_record)
    if actions is None:
        return {"needs_reply": True}
    return {"actions": actions, "needs_reply": False}
