"""
Session Management for Gadget Scout.
Holds chat sessions, their messages, and the handles each session owns.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4
import logging

from gadget_scout.catalog.models import Product
from gadget_scout.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class ChatMode(str, Enum):
    TEXT = "text"
    VOICE = "voice"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Recommendation:
    """A product the model recommended, with its reasoning."""
    product: Product
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product.to_display(),
            "reasoning": self.reasoning
        }


@dataclass
class Message:
    """Single chat message. Carries at most one recommendation."""
    role: Role
    content: str = ""
    recommendation: Optional[Recommendation] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_empty(self) -> bool:
        return not self.content.strip() and self.recommendation is None

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary."""
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "recommendation": self.recommendation.to_dict() if self.recommendation else None
        }


@dataclass
class ChatSession:
    """
    One open chat widget.

    Messages are append-only; list order is conversational order. The model
    conversation handle is created lazily by the orchestrator.
    """
    session_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)

    messages: List[Message] = field(default_factory=list)
    mode: ChatMode = ChatMode.TEXT
    conversation: Optional[Any] = None
    voice: Optional[Any] = None

    is_busy: bool = False
    greeted: bool = False
    is_active: bool = True

    def add_message(self, message: Message):
        """Append a message. Only the orchestrator calls this."""
        self.messages.append(message)
        self.last_activity = datetime.now()

    def touch(self):
        self.last_activity = datetime.now()

    def is_expired(self) -> bool:
        """
        Check if session has expired due to inactivity.

        A session with a live voice call is never idle; it ends only when voice mode is closed.
        """
        if self.voice is not None and self.voice.is_active:
            return False
        timeout = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
        return datetime.now() - self.last_activity > timeout

    def to_dict(self) -> Dict[str, Any]:
        """Convert session to dictionary."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "mode": self.mode.value,
            "is_busy": self.is_busy,
            "messages": [m.to_dict() for m in self.messages]
        }


SessionCloser = Callable[[ChatSession], Awaitable[None]]


class SessionManager:
    """
    Manages chat sessions with automatic cleanup.

    Removing a session (explicitly, by expiry or by eviction) runs the
    closer so voice devices and channels are released.
    """

    def __init__(self, closer: Optional[SessionCloser] = None, max_sessions: Optional[int] = None):
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._closer = closer
        self._max_sessions = max_sessions or settings.MAX_SESSIONS

    async def start(self):
        """Start the session manager and cleanup task."""
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info("Session manager started")

    async def stop(self):
        """Stop the session manager and close every session."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
        async with self._lock:
            for session_id in list(self._sessions):
                await self._remove_session(session_id)
        logger.info("Session manager stopped")

    async def create_session(self) -> ChatSession:
        """Create a new session."""
        async with self._lock:
            if len(self._sessions) >= self._max_sessions:
                await self._evict_oldest()

            session = ChatSession()
            self._sessions[session.session_id] = session

            logger.info(f"Created new session: {session.session_id}")
            return session

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get an existing session."""
        async with self._lock:
            session = self._sessions.get(session_id)

            if session and session.is_expired() and not session.is_busy:
                await self._remove_session(session_id)
                return None

            return session

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session."""
        async with self._lock:
            if session_id not in self._sessions:
                return False
            await self._remove_session(session_id)
            return True

    async def get_active_session_count(self) -> int:
        """Get count of active sessions."""
        async with self._lock:
            return sum(1 for s in self._sessions.values() if s.is_active and not s.is_expired())

    async def _remove_session(self, session_id: str):
        """Remove session (must be called with lock held)."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.is_active = False
        if self._closer:
            try:
                await self._closer(session)
            except Exception as e:
                logger.error(f"Error closing session {session_id}: {e}")
        logger.info(f"Removed session: {session_id}")

    async def _evict_oldest(self):
        """Evict least recently active session (must be called with lock held)."""
        if not self._sessions:
            return

        oldest_session = min(
            self._sessions.values(),
            key=lambda s: s.last_activity
        )

        await self._remove_session(oldest_session.session_id)

    async def _cleanup_loop(self):
        """Periodically clean up expired sessions."""
        while True:
            try:
                await asyncio.sleep(60)

                async with self._lock:
                    expired = [
                        sid for sid, session in self._sessions.items()
                        if session.is_expired() and not session.is_busy
                    ]

                    for sid in expired:
                        await self._remove_session(sid)

                    if expired:
                        logger.info(f"Cleaned up {len(expired)} expired sessions")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")
