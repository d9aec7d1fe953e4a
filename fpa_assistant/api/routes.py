"""
FastAPI routes for the FPA assistant.

Endpoints:
- POST /chat           : process a user message in a conversation
- POST /sessions/reset : reset/delete a conversation session
- GET  /records        : list the records in the store
- GET  /health         : health check
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from fpa_assistant.agent.assistant import AssistantBusyError

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected by the app factory
_session_store = None
_record_store = None


def configure_routes(session_store, record_store):
    """Inject the session store and record store into the routes module.

    Called by the app factory during startup.
    """
    global _session_store, _record_store
    _session_store = session_store
    _record_store = record_store


# --- Request / Response Models ---


class ChatRequest(BaseModel):
    """Request body for the /chat endpoint.

    An empty message on a new conversation returns the greeting.
    """

    message: str = ""
    conversation_id: str | None = None
    context_record_id: str | None = None


class ChatResponse(BaseModel):
    """Response body for the /chat endpoint."""

    conversation_id: str
    actions: list[dict[str, Any]]
    pending: dict[str, Any] | None = None


class ResetRequest(BaseModel):
    """Request body for the /sessions/reset endpoint."""

    conversation_id: str


# --- Endpoints ---


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Process a user message in a conversation.

    If conversation_id is provided, resumes an existing session.
    Otherwise a new session is created. A new session with an empty
    message gets the greeting; an empty message otherwise is rejected.
    """
    if _session_store is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")

    session = None
    conversation_id = request.conversation_id
    if conversation_id:
        session = _session_store.get_session(conversation_id)

    is_new = session is None
    if is_new:
        conversation_id, session = _session_store.create_session(conversation_id)

    assistant = session.assistant
    if request.context_record_id is not None:
        assistant.focus_record(request.context_record_id or None)

    message = request.message.strip()
    if not message and not is_new:
        raise HTTPException(status_code=400, detail="message cannot be empty")

    try:
        if message:
            actions = await assistant.submit_utterance(message)
        else:
            actions = await assistant.greet()
    except AssistantBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error("Error processing message: %s", e, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error processing message: {str(e)}",
        )

    pending = assistant.pending.model_dump(mode="json") if assistant.pending else None
    return ChatResponse(conversation_id=conversation_id, actions=actions, pending=pending)


@router.post("/sessions/reset")
async def reset_session(request: ResetRequest):
    """Delete a conversation session and start fresh."""
    if _session_store is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")

    deleted = _session_store.delete_session(request.conversation_id)
    return {
        "success": deleted,
        "message": "Session reset" if deleted else "Session not found",
    }


@router.get("/records")
async def list_records():
    """All records currently in the store."""
    if _record_store is None:
        raise HTTPException(status_code=500, detail="Server not properly configured")
    return {"records": [r.model_dump() for r in _record_store.list_records()]}


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    session_count = _session_store.count() if _session_store else 0
    return {
        "status": "healthy",
        "active_sessions": session_count,
    }
