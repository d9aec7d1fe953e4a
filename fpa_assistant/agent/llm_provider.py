"""
LLM provider factory.

Creates a LangChain BaseChatModel for any OpenAI-compatible chat
completions endpoint, configured from environment variables. The
assistant works without it: when no endpoint is configured the AI path
is simply unavailable and commands go through the rule-based parser.
"""

import logging
import os

import httpx
from dotenv import load_dotenv
from langchain_core.language_models import BaseChatModel

load_dotenv()

logger = logging.getLogger(__name__)

# Bound on a single AI round trip; expiry counts as a parse failure
DEFAULT_LLM_TIMEOUT_SECONDS = 10.0


def is_truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_llm_timeout() -> float:
    """Timeout in seconds from LLM_TIMEOUT_SECONDS (default 10)."""
    raw = os.getenv("LLM_TIMEOUT_SECONDS")
    if not raw:
        return DEFAULT_LLM_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid LLM_TIMEOUT_SECONDS=%r", raw)
        return DEFAULT_LLM_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_LLM_TIMEOUT_SECONDS


def _build_safe_curl(request: httpx.Request) -> str:
    """Build a debug curl command with sensitive headers redacted."""
    curl = f"curl -X {request.method} '{request.url}'"
    for key, value in request.headers.items():
        if key.lower() in {"authorization", "x-api-key", "api-key"}:
            value = "[REDACTED]"
        curl += f" -H '{key}: {value}'"

    if request.content:
        body = request.content.decode(errors="ignore")
        if len(body) > 2000:
            body = body[:2000] + "... [TRUNCATED]"
        curl += f" -d '{body}'"
    return curl


class CurlLoggingClient(httpx.Client):
    """httpx client that logs each request as curl when LOG_LLM_CURL is set."""

    def send(self, request, *args, **kwargs):
        if is_truthy(os.getenv("LOG_LLM_CURL")):
            logger.info("LLM request: %s", _build_safe_curl(request))
        return super().send(request, *args, **kwargs)


class CurlLoggingAsyncClient(httpx.AsyncClient):
    async def send(self, request, *args, **kwargs):
        if is_truthy(os.getenv("LOG_LLM_CURL")):
            logger.info("LLM request: %s", _build_safe_curl(request))
        return await super().send(request, *args, **kwargs)


def get_llm(**kwargs) -> BaseChatModel:
    """Create an LLM instance for an OpenAI-compatible endpoint.

    Environment variables (keyword arguments override them):
        FPA_LLM_API_ENDPOINT: Chat completions URL (required).
        FPA_LLM_API_KEY: API key / bearer token.
        FPA_LLM_MODEL_NAME: Model identifier (defaults to "default").

    Args:
        **kwargs: Extra keyword arguments for the ChatOpenAI constructor.

    Returns:
        A LangChain BaseChatModel instance.

    Raises:
        ValueError: If no endpoint is configured.
    """
    from langchain_openai import ChatOpenAI

    # Structured parsing wants deterministic, short answers
    defaults = {"temperature": 0, "max_tokens": 512, "request_timeout": get_llm_timeout()}
    merged = {**defaults, **kwargs}

    endpoint = merged.pop("api_endpoint", os.getenv("FPA_LLM_API_ENDPOINT"))
    if not endpoint:
        raise ValueError(
            "FPA_LLM_API_ENDPOINT env var (or api_endpoint kwarg) is required "
            "to enable the AI command parser."
        )

    # ChatOpenAI appends /chat/completions itself
    base_url = endpoint.rstrip("/")
    for suffix in ["/chat/completions", "/completions"]:
        if base_url.endswith(suffix):
            base_url = base_url[: -len(suffix)]
            break

    verify_ssl = is_truthy(os.getenv("LLM_SSL_VERIFY"), default=True)

    api_key = merged.pop("api_key", os.getenv("FPA_LLM_API_KEY"))
    model = merged.pop("model", os.getenv("FPA_LLM_MODEL_NAME", "default"))

    return ChatOpenAI(
        api_key=api_key,
        model=model,
        base_url=base_url,
        http_client=CurlLoggingClient(verify=verify_ssl),
        http_async_client=CurlLoggingAsyncClient(verify=verify_ssl),
        **merged,
    )
