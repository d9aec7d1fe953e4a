"""
FastAPI application factory for the FPA assistant.

Creates and configures the FastAPI app, initializes the natural-language
service (when an LLM endpoint is configured), the record store, the
session store, and routes.

Run with:
    uvicorn fpa_assistant.api.app:app --reload
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fpa_assistant.agent.assistant import ChatAssistant
from fpa_assistant.agent.language_service import LanguageService
from fpa_assistant.agent.llm_provider import get_llm, get_llm_timeout, is_truthy
from fpa_assistant.api.routes import configure_routes, router
from fpa_assistant.core.records import InMemoryRecordStore, RecordStore
from fpa_assistant.core.session import SessionStore

# Load environment variables from .env
load_dotenv()

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_language_service() -> LanguageService | None:
    """The AI path, or None when it is disabled or not configured."""
    if not is_truthy(os.getenv("FPA_AI_ENABLED"), default=True):
        logger.info("AI path disabled by FPA_AI_ENABLED; using rule-based parsing only")
        return None
    try:
        llm = get_llm()
    except Exception as e:
        logger.warning(
            "Failed to initialize LLM: %s. Falling back to rule-based parsing only.",
            e,
        )
        return None
    logger.info("LLM initialized: %s", os.getenv("FPA_LLM_API_ENDPOINT", "not set"))
    return LanguageService(llm, timeout_seconds=get_llm_timeout())


def create_app(
    record_store: RecordStore | None = None,
    language_service: LanguageService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        record_store: Store to serve (defaults to an in-memory store).
        language_service: AI path override; built from the environment if None.
    """
    application = FastAPI(
        title="FPA Assistant",
        description="Conversational command interpreter for Forest Practice Applications",
        version="0.1.0",
    )

    # CORS: allow all origins in development
    allowed_origins = os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if record_store is None:
        record_store = InMemoryRecordStore(
            editor_enabled=is_truthy(os.getenv("FPA_EDITOR_ENABLED"), default=False)
        )
    if language_service is None:
        language_service = build_language_service()

    session_timeout = int(os.getenv("SESSION_TIMEOUT_SECONDS", "1800"))
    session_store = SessionStore(
        assistant_factory=lambda: ChatAssistant(record_store, language_service),
        timeout_seconds=session_timeout,
    )

    configure_routes(session_store, record_store)
    application.include_router(router, prefix="/api")

    logger.info(
        "FPA assistant ready (AI path: %s, editor: %s, session timeout: %ds)",
        "on" if language_service else "off",
        "on" if record_store.can_open_editor else "off",
        session_timeout,
    )
    return application


# Create the app instance (used by uvicorn)
app = create_app()
