"""
Conversation log: ordered, append-only transcript of a chat session.

Used for display and to give the natural-language service a short
window of recent context. Cleared when the chat panel closes.
"""

from typing import Literal

from pydantic import BaseModel


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class ConversationLog:
    """Append-only list of role-tagged messages."""

    def __init__(self):
        self._messages: list[ConversationMessage] = []

    def append(self, role: Literal["user", "assistant"], text: str) -> ConversationMessage:
        message = ConversationMessage(role=role, text=text)
        self._messages.append(message)
        return message

    def messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    def recent(self, limit: int) -> list[dict[str, str]]:
        """The last `limit` messages as plain dicts."""
        if limit <= 0:
            return []
        return [m.model_dump() for m in self._messages[-limit:]]

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
