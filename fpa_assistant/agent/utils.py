"""
Shared utilities for talking to the chat model.

Contains JSON extraction from raw model output and the bounded
call-with-retry helper used by the natural-language service.
"""

import asyncio
import json
import logging
from typing import Any

from langchain_core.messages import HumanMessage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Extra attempts when the model answers with something that is not JSON.
# Kept low: every attempt costs a full round trip inside the user's turn.
MAX_JSON_RETRIES = 1

JSON_RETRY_PROMPT = (
    "Your response was NOT valid JSON. Respond with ONLY the JSON object "
    "described in the instructions. No explanations, no markdown."
)

# Messages of recent history handed to free-form replies
MAX_HISTORY_MESSAGES = 6


class LLMTimeoutError(Exception):
    """The chat model did not answer within the configured timeout."""


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------


def extract_json(content: str) -> dict | None:
    """Extract a JSON object from model output.

    Handles bare JSON, JSON wrapped in markdown code fences, and JSON
    embedded in surrounding prose.

    Args:
        content: Raw model output string.

    Returns:
        Parsed dict, or None if extraction fails.
    """
    if not content:
        return None

    try:
        parsed = json.loads(content)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    if "```" in content:
        for part in content.split("```"):
            stripped = part.strip()
            if stripped.startswith("json"):
                stripped = stripped[4:].strip()
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                return parsed

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(content[start : end + 1])
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            pass

    return None


def response_text(response: Any) -> str:
    """Text content of a chat model response."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
        return "".join(parts).strip()
    return str(content).strip()


# ---------------------------------------------------------------------------
# LLM calls
# ---------------------------------------------------------------------------


async def invoke_with_timeout(llm: Any, messages: list, timeout_seconds: float) -> str:
    """Invoke the model once and return its text.

    Raises:
        LLMTimeoutError: If the model does not answer in time.
    """
    try:
        response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise LLMTimeoutError(f"No response within {timeout_seconds:g}s") from e
    return response_text(response)


async def call_llm_with_retry(
    llm: Any,
    messages: list,
    timeout_seconds: float,
) -> dict | None:
    """Call the model and parse a JSON object from its answer.

    A non-JSON answer gets one corrective follow-up. A timeout ends the
    attempt immediately, since the user is waiting on this turn.

    Args:
        llm: A LangChain BaseChatModel (or anything with `ainvoke`).
        messages: The message list to send (mutated with retry prompts).
        timeout_seconds: Bound on each model round trip.

    Returns:
        Parsed JSON dict, or None if every attempt failed.
    """
    for attempt in range(MAX_JSON_RETRIES + 1):
        try:
            logger.info(
                "Calling LLM (attempt %d/%d, %d messages)...",
                attempt + 1,
                MAX_JSON_RETRIES + 1,
                len(messages),
            )
            content = await invoke_with_timeout(llm, messages, timeout_seconds)
        except LLMTimeoutError as e:
            logger.warning("LLM call timed out: %s", e)
            return None
        except Exception as e:
            logger.error("LLM call failed (attempt %d): %s", attempt + 1, e)
            continue

        logger.debug("LLM raw response (first 500 chars): %s", content[:500])
        parsed = extract_json(content)
        if parsed is not None:
            return parsed

        logger.warning(
            "LLM returned invalid JSON (attempt %d/%d): %s",
            attempt + 1,
            MAX_JSON_RETRIES + 1,
            content[:300],
        )
        messages.append(HumanMessage(content=JSON_RETRY_PROMPT))

    logger.error("All %d LLM attempts failed to produce valid JSON", MAX_JSON_RETRIES + 1)
    return None
