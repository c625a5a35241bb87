"""
Conversation REST Endpoints.
Open chat sessions, send typed messages and read the message history.
"""

import logging
import time

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import ConfigurationException, SessionNotFoundException
from gadget_scout.core.session import ChatSession

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class MessageRequest(BaseModel):
    """Request model for sending a message."""
    text: str = Field(..., max_length=4000)


async def get_session_or_404(request: Request, session_id: str) -> ChatSession:
    session = await request.app.state.session_manager.get_session(session_id)
    if session is None:
        raise SessionNotFoundException(session_id)
    return session


@router.post("/sessions", status_code=201)
async def create_session(request: Request):
    """
    Open a chat session.
    The assistant greets first, so the response already carries its opening message.
    """
    session_manager = request.app.state.session_manager
    orchestrator = request.app.state.orchestrator

    session = await session_manager.create_session()
    try:
        await orchestrator.start_session(session)
    except ConfigurationException:
        await session_manager.delete_session(session.session_id)
        raise

    return session.to_dict()


@router.post("/sessions/{session_id}/messages")
async def send_message(request: Request, session_id: str, body: MessageRequest):
    """
    Send a typed message and get the assistant's reply.

    `message` is null when the model answered with nothing renderable.
    """
    session = await get_session_or_404(request, session_id)
    orchestrator = request.app.state.orchestrator

    start_time = time.time()
    reply = await orchestrator.submit(session, body.text)
    latency_ms = (time.time() - start_time) * 1000

    return {
        "session_id": session.session_id,
        "message": reply.to_dict() if reply else None,
        "latency_ms": round(latency_ms, 2)
    }


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str):
    """Get session state and full message history."""
    session = await get_session_or_404(request, session_id)
    return session.to_dict()


@router.delete("/sessions/{session_id}")
async def delete_session(request: Request, session_id: str):
    """Close a session, releasing any voice resources it holds."""
    deleted = await request.app.state.session_manager.delete_session(session_id)
    if not deleted:
        raise SessionNotFoundException(session_id)
    return {"status": "deleted", "session_id": session_id}
