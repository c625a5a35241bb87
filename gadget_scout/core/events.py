"""
Session Events.
State transitions the orchestrator emits for the presentation layer to observe.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)


class SessionEventType(str, Enum):
    TURN_STARTED = "turn_started"
    TURN_COMPLETED = "turn_completed"
    MODE_CHANGED = "mode_changed"
    VOICE_STATE = "voice_state"
    MESSAGE_APPENDED = "message_appended"
    NOTICE = "notice"


@dataclass
class SessionEvent:
    type: SessionEventType
    session_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "session_id": self.session_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat()
        }


EventListener = Callable[[SessionEvent], Awaitable[None]]


class EventBus:
    """Fan-out of session events to async listeners."""

    def __init__(self):
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def emit(self, event: SessionEvent):
        # A failing listener must not break the turn that emitted the event
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {event.type.value}: {e}")
