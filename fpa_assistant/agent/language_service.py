"""
Natural-language service backed by a LangChain chat model.

Two operations, both bounded by an explicit timeout:
- parse_command: constrained JSON parse of a command utterance
- free_form_reply: short answer when no command intent was detected

Any failure (network, timeout, non-JSON output) surfaces as
LanguageServiceError so callers can fall back deterministically.
"""

import logging
from typing import Any

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from fpa_assistant.agent.llm_provider import DEFAULT_LLM_TIMEOUT_SECONDS
from fpa_assistant.agent.prompts import build_command_prompt, build_reply_prompt
from fpa_assistant.agent.utils import (
    MAX_HISTORY_MESSAGES,
    LLMTimeoutError,
    call_llm_with_retry,
    invoke_with_timeout,
)
from fpa_assistant.core.utils import truncate

logger = logging.getLogger(__name__)


class LanguageServiceError(Exception):
    """The natural-language service could not produce a usable answer."""


class LanguageService:
    """Wraps a chat model with the two calls the assistant needs.

    Args:
        llm: A LangChain BaseChatModel (anything exposing `ainvoke`).
        timeout_seconds: Bound on every model round trip.
    """

    def __init__(self, llm: Any, timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS):
        self.llm = llm
        self.timeout_seconds = timeout_seconds

    async def parse_command(self, utterance: str, known_identifiers: list[str]) -> dict:
        """Ask the model for the structured command JSON.

        Raises:
            LanguageServiceError: If no JSON object could be obtained in time.
        """
        messages = [
            SystemMessage(content=build_command_prompt(known_identifiers)),
            HumanMessage(content=utterance),
        ]
        parsed = await call_llm_with_retry(self.llm, messages, self.timeout_seconds)
        if parsed is None:
            raise LanguageServiceError("AI parser unavailable or returned no usable answer")
        logger.info("AI parse of '%s' -> intent=%s", truncate(utterance), parsed.get("intent"))
        return parsed

    async def free_form_reply(
        self,
        utterance: str,
        short_history: list[dict[str, str]],
        context_summary: str,
    ) -> str:
        """Answer a non-command message using recent history and record context.

        Raises:
            LanguageServiceError: On timeout, failure, or an empty answer.
        """
        messages: list = [SystemMessage(content=build_reply_prompt(context_summary))]
        for entry in short_history[-MAX_HISTORY_MESSAGES:]:
            if entry.get("role") == "assistant":
                messages.append(AIMessage(content=entry.get("text", "")))
            else:
                messages.append(HumanMessage(content=entry.get("text", "")))
        messages.append(HumanMessage(content=utterance))

        try:
            text = await invoke_with_timeout(self.llm, messages, self.timeout_seconds)
        except LLMTimeoutError as e:
            raise LanguageServiceError(str(e)) from e
        except Exception as e:
            logger.warning("Free-form reply failed: %s", e)
            raise LanguageServiceError(str(e)) from e

        if not text:
            raise LanguageServiceError("Empty reply from AI service")
        return text
