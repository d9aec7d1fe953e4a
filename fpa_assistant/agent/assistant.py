"""
Per-conversation chat assistant: the entry point the UI talks to.

One ChatAssistant owns one conversation: its log, its pending dialogue
operation and the record the UI currently has open. Each utterance runs
through the turn graph once; turns are single-flight, so a second
utterance submitted while one is still being processed is rejected
rather than interleaved against the same pending operation.
"""

import asyncio
import logging
from typing import Any, Callable

from fpa_assistant.agent.dialogue import DialogueStateMachine
from fpa_assistant.agent.graph import compile_graph, create_turn_state
from fpa_assistant.agent.language_service import LanguageService
from fpa_assistant.agent.parsers import CommandParser, build_command_parser
from fpa_assistant.agent.planner import ResponsePlanner
from fpa_assistant.agent.utils import MAX_HISTORY_MESSAGES
from fpa_assistant.core.actions import ActionType, messages_from
from fpa_assistant.core.conversation import ConversationLog
from fpa_assistant.core.pending import PendingOperation
from fpa_assistant.core.records import RecordStore
from fpa_assistant.core.resolver import find_record_by_id
from fpa_assistant.core.schema import RecordSchema, View
from fpa_assistant.core.utils import truncate

logger = logging.getLogger(__name__)


class AssistantBusyError(RuntimeError):
    """An utterance arrived while the previous turn was still running."""


class ChatAssistant:
    """Chat surface for one conversation.

    Args:
        store: Record store collaborator.
        language_service: Optional natural-language service. Without it
            only the rule-based parser runs.
        schema: Record field definitions (defaults to the bundled schema).
        parser: Override the command parser (defaults to AI-then-rules).
    """

    def __init__(
        self,
        store: RecordStore,
        language_service: LanguageService | None = None,
        schema: RecordSchema | None = None,
        parser: CommandParser | None = None,
    ):
        self.store = store
        self.language_service = language_service
        self.parser = parser or build_command_parser(language_service)
        self.machine = DialogueStateMachine(schema)
        self.planner = ResponsePlanner(store, schema)
        self.graph = compile_graph()
        self.log = ConversationLog()
        self.pending: PendingOperation | None = None
        self.context_record_id: str | None = None
        self._lock = asyncio.Lock()
        self._listeners: dict[ActionType, list[Callable[[Any], None]]] = {
            ActionType.MESSAGE: [],
            ActionType.HIGHLIGHT_FIELDS: [],
            ActionType.NAVIGATE: [],
        }

    @property
    def ai_enabled(self) -> bool:
        return self.language_service is not None

    @property
    def busy(self) -> bool:
        """True while a turn is in flight; the UI should disable input."""
        return self._lock.locked()

    # -----------------------------------------------------------------
    # Listener registration
    # -----------------------------------------------------------------

    def on_assistant_message(self, callback: Callable[[str], None]) -> None:
        self._listeners[ActionType.MESSAGE].append(callback)

    def on_highlight_fields(self, callback: Callable[[list[str]], None]) -> None:
        self._listeners[ActionType.HIGHLIGHT_FIELDS].append(callback)

    def on_navigate(self, callback: Callable[[View], None]) -> None:
        self._listeners[ActionType.NAVIGATE].append(callback)

    def _emit(self, actions: list[dict]) -> None:
        for action in actions:
            action_type = ActionType(action["action"])
            match action_type:
                case ActionType.MESSAGE:
                    payload: Any = action["text"]
                case ActionType.HIGHLIGHT_FIELDS:
                    payload = list(action["fields"])
                case ActionType.NAVIGATE:
                    payload = View(action["view"])
            for callback in self._listeners[action_type]:
                callback(payload)

    # -----------------------------------------------------------------
    # Turns
    # -----------------------------------------------------------------

    async def greet(self) -> list[dict]:
        """Opening message for a freshly opened chat panel."""
        return await self._run_turn("")

    async def submit_utterance(self, text: str) -> list[dict]:
        """Process one user utterance.

        Returns:
            The UI actions for this turn, in order (also emitted to listeners).

        Raises:
            AssistantBusyError: If the previous turn has not finished.
        """
        if not text or not text.strip():
            return []
        return await self._run_turn(text.strip())

    async def _run_turn(self, text: str) -> list[dict]:
        if self._lock.locked():
            raise AssistantBusyError("Still working on the previous message.")

        async with self._lock:
            records = self.store.list_records()
            state = create_turn_state(
                text,
                parser=self.parser,
                machine=self.machine,
                planner=self.planner,
                language_service=self.language_service,
                records=records,
                context_record=find_record_by_id(self.context_record_id, records),
                conversation_history=self.log.recent(MAX_HISTORY_MESSAGES),
                pending=self.pending,
            )
            result = await self.graph.ainvoke(state)

            self.pending = result.get("pending")
            actions = result.get("actions", [])
            if text:
                self.log.append("user", text)
            for message in messages_from(actions):
                self.log.append("assistant", message)

        logger.info(
            "Turn '%s' -> %d action(s), pending=%s",
            truncate(text),
            len(actions),
            self.pending.intent.value if self.pending else None,
        )
        self._emit(actions)
        return actions

    # -----------------------------------------------------------------
    # Session controls
    # -----------------------------------------------------------------

    def focus_record(self, record_id: str | None) -> None:
        """Tell the assistant which record the UI has open (None to clear)."""
        self.context_record_id = record_id

    def close(self) -> None:
        """Chat panel closed: forget the transcript and any pending dialogue."""
        self.log.clear()
        self.pending = None
        self.context_record_id = None
