"""
Conversation Orchestrator.
Drives each chat turn end to end and owns the per-session voice pipeline.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional

from gadget_scout.audio.devices import AudioSource
from gadget_scout.audio.pipeline import RealtimeAudioPipeline, VoiceState
from gadget_scout.audio.playback import AudioSink
from gadget_scout.catalog.repository import CatalogRepository
from gadget_scout.config import (
    GREETING_FALLBACK_TEXT,
    TURN_FALLBACK_TEXT,
    VOICE_UNAVAILABLE_NOTICE,
    get_settings
)
from gadget_scout.core.events import EventBus, SessionEvent, SessionEventType
from gadget_scout.core.exceptions import (
    ConfigurationException,
    EmptyMessageException,
    TurnInProgressException,
    VoiceException,
    VoiceStateException
)
from gadget_scout.core.prompts import PromptComposer
from gadget_scout.core.session import ChatMode, ChatSession, Message, Role
from gadget_scout.logging.agent_logger import AgentLogger
from gadget_scout.retrieval.ranker import RetrievalResult
from gadget_scout.retrieval.retriever import Retriever
from gadget_scout.services.llm import LLMService, ModelConversation, ModelReply
from gadget_scout.services.realtime import LiveService
from gadget_scout.tools.recommend import RecommendationProtocol
from gadget_scout.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)
settings = get_settings()


class ConversationOrchestrator:
    """
    Hub of the chat engine.

    Text turn: retrieve -> augment -> send -> interpret -> append.
    Voice mode: a RealtimeAudioPipeline per activation, whose recommendations
    flow through the same `append_message` entry point as text replies.

    Presentation layers observe the session through the event bus
    (turn started/completed, mode changes, appended messages, notices).
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        retriever: Retriever,
        composer: PromptComposer,
        llm_service: LLMService,
        protocol: RecommendationProtocol,
        registry: ToolRegistry,
        live_service: Optional[LiveService] = None,
        events: Optional[EventBus] = None,
        agent_logger: Optional[AgentLogger] = None
    ):
        self.catalog = catalog
        self.retriever = retriever
        self.composer = composer
        self.llm = llm_service
        self.protocol = protocol
        self.registry = registry
        self.live = live_service
        self.events = events or EventBus()
        self.agent_logger = agent_logger
        self._append_locks: Dict[str, asyncio.Lock] = {}

    # =========================
    # Messages and events
    # =========================

    async def _emit(self, session: ChatSession, event_type: SessionEventType, **data):
        await self.events.emit(SessionEvent(type=event_type, session_id=session.session_id, data=data))

    async def append_message(self, session: ChatSession, message: Message) -> bool:
        """
        The only way messages enter a session.

        Empty assistant messages (no text, no recommendation) are dropped.
        Returns True when the message was appended.
        """
        if message.role == Role.ASSISTANT and message.is_empty:
            logger.debug(f"Suppressed empty assistant message in {session.session_id}")
            return False

        lock = self._append_locks.setdefault(session.session_id, asyncio.Lock())
        async with lock:
            session.add_message(message)
            await self._emit(session, SessionEventType.MESSAGE_APPENDED, message=message.to_dict())
        return True

    async def _set_busy(self, session: ChatSession, busy: bool):
        if session.is_busy == busy:
            return
        session.is_busy = busy
        event_type = SessionEventType.TURN_STARTED if busy else SessionEventType.TURN_COMPLETED
        await self._emit(session, event_type)

    async def _set_mode(self, session: ChatSession, mode: ChatMode):
        if session.mode == mode:
            return
        previous, session.mode = session.mode, mode
        logger.info(f"Session {session.session_id} mode: {previous.value} -> {mode.value}")
        await self._emit(session, SessionEventType.MODE_CHANGED, mode=mode.value, previous=previous.value)

    # =========================
    # Text mode
    # =========================

    async def _ensure_conversation(self, session: ChatSession) -> ModelConversation:
        """Create the session's model conversation on first use."""
        if session.conversation is None:
            session.conversation = await self.llm.create_conversation(
                self.composer.system_instruction(),
                self.registry
            )
            logger.info(f"Opened model conversation for {session.session_id}")
        return session.conversation

    async def _deliver(self, session: ChatSession, conversation: ModelConversation, reply: ModelReply) -> Optional[Message]:
        interpretation = self.protocol.interpret(reply)

        for call, result in interpretation.acknowledgements:
            conversation.acknowledge(call, result)
            if self.agent_logger:
                await self.agent_logger.log_tool_call(
                    session.session_id,
                    call.name,
                    call.arguments if isinstance(call.arguments, dict) else {},
                    result
                )

        if self.agent_logger:
            await self.agent_logger.log_llm_response(session.session_id, reply.text, reply.processing_time_ms)

        message = interpretation.message
        if message is not None and await self.append_message(session, message):
            return message
        return None

    async def start_session(self, session: ChatSession) -> Optional[Message]:
        """First activation of a chat widget: log it and send the greeting."""
        if self.agent_logger:
            await self.agent_logger.log_session_start(
                session.session_id,
                len(self.catalog),
                self.retriever.kind
            )
        return await self.ensure_greeting(session)

    async def ensure_greeting(self, session: ChatSession) -> Optional[Message]:
        """
        Send the system-initiated greeting once per session.

        Only runs while the session has no messages and the catalog is loaded.

        Raises:
            ConfigurationException: no model credential is configured
        """
        if session.greeted or session.messages or not self.catalog:
            return None
        if session.is_busy:
            raise TurnInProgressException(session.session_id)

        session.greeted = True
        await self._set_busy(session, True)
        try:
            conversation = await self._ensure_conversation(session)
            reply = await conversation.send(self.composer.greeting_prompt())
            return await self._deliver(session, conversation, reply)

        except ConfigurationException:
            raise

        except Exception as e:
            logger.error(f"Greeting failed for {session.session_id}: {e}")
            if self.agent_logger:
                await self.agent_logger.log_error(session.session_id, type(e).__name__, str(e))
            message = Message(role=Role.ASSISTANT, content=GREETING_FALLBACK_TEXT)
            await self.append_message(session, message)
            return message

        finally:
            await self._set_busy(session, False)

    async def _retrieve(self, session: ChatSession, text: str) -> List[RetrievalResult]:
        try:
            return await self.retriever.retrieve(text)
        except Exception as e:
            logger.warning(f"Retrieval failed for {session.session_id}, continuing without context: {e}")
            return []

    async def submit(self, session: ChatSession, text: str) -> Optional[Message]:
        """
        Run one text turn.

        Returns the assistant message appended for this turn (the fallback
        message when the model call failed), or None when the reply was empty.

        Raises:
            EmptyMessageException: blank input
            TurnInProgressException: a turn is already in flight
            ConfigurationException: no model credential is configured
        """
        if not text or not text.strip():
            raise EmptyMessageException()
        if session.is_busy:
            raise TurnInProgressException(session.session_id)

        await self._set_busy(session, True)
        start_time = time.time()
        metrics = {}
        recommended = None

        try:
            await self.append_message(session, Message(role=Role.USER, content=text))

            results = await self._retrieve(session, text)
            metrics["retrieval_latency_ms"] = (time.time() - start_time) * 1000
            if self.agent_logger:
                await self.agent_logger.log_retrieval(
                    session.session_id,
                    text,
                    [r.to_dict() for r in results],
                    metrics["retrieval_latency_ms"]
                )

            prompt = self.composer.augment(text, results)
            conversation = await self._ensure_conversation(session)

            llm_start = time.time()
            reply = await conversation.send(prompt)
            metrics["llm_latency_ms"] = (time.time() - llm_start) * 1000

            message = await self._deliver(session, conversation, reply)
            if message is not None and message.recommendation is not None:
                recommended = message.recommendation.product.id
            return message

        except ConfigurationException:
            raise

        except Exception as e:
            logger.error(f"Turn failed for {session.session_id}: {e}")
            if self.agent_logger:
                await self.agent_logger.log_error(session.session_id, type(e).__name__, str(e))
            message = Message(role=Role.ASSISTANT, content=TURN_FALLBACK_TEXT)
            await self.append_message(session, message)
            return message

        finally:
            metrics["total_latency_ms"] = (time.time() - start_time) * 1000
            if self.agent_logger:
                await self.agent_logger.log_turn_complete(session.session_id, text, recommended, metrics)
            await self._set_busy(session, False)

    # =========================
    # Voice mode
    # =========================

    def _open_channel(self):
        return self.live.connect(self.composer.system_instruction(), self.registry)

    async def enter_voice_mode(self, session: ChatSession, source: AudioSource, sink: AudioSink) -> bool:
        """
        Start a fresh voice pipeline for the session.

        Returns True once streaming. A device or channel failure reverts the
        session to text mode with a notice and returns False; so does a close
        that raced the connection attempt.

        Raises:
            VoiceStateException: voice mode is already active
            ConfigurationException: no live-model credential is configured
        """
        if session.voice is not None and session.voice.is_active:
            raise VoiceStateException(session.voice.state.value, VoiceState.CONNECTING.value)
        if self.live is None:
            await self._voice_unavailable(session, "live model not available")
            return False

        pipeline = RealtimeAudioPipeline(
            channel_factory=self._open_channel,
            source=source,
            sink=sink,
            protocol=self.protocol,
            on_message=lambda message: self.append_message(session, message),
            on_state_change=lambda old, new: self._emit(
                session, SessionEventType.VOICE_STATE, previous=old.value, state=new.value
            ),
            on_failure=lambda error: self._on_voice_failure(session, pipeline, error),
            agent_logger=self.agent_logger,
            session_id=session.session_id
        )
        session.voice = pipeline
        await self._set_mode(session, ChatMode.VOICE)

        try:
            started = await pipeline.start()
        except VoiceException as e:
            await self._detach_voice(session, pipeline)
            await self._voice_unavailable(session, e.message)
            return False
        except ConfigurationException:
            await self._detach_voice(session, pipeline)
            raise

        if not started:
            await self._detach_voice(session, pipeline)
        return started

    async def exit_voice_mode(self, session: ChatSession):
        """Close the session's voice pipeline (if any) and return to text mode."""
        pipeline = session.voice
        if pipeline is None:
            await self._set_mode(session, ChatMode.TEXT)
            return
        await self._detach_voice(session, pipeline)
        await pipeline.close()

    async def _detach_voice(self, session: ChatSession, pipeline: RealtimeAudioPipeline):
        if session.voice is pipeline:
            session.voice = None
            await self._set_mode(session, ChatMode.TEXT)

    async def _voice_unavailable(self, session: ChatSession, reason: str):
        logger.warning(f"Voice mode unavailable for {session.session_id}: {reason}")
        await self._emit(session, SessionEventType.NOTICE, message=VOICE_UNAVAILABLE_NOTICE, reason=reason)

    async def _on_voice_failure(self, session: ChatSession, pipeline: RealtimeAudioPipeline, error: Exception):
        """A live session broke mid-stream: apologise, close it and fall back to text."""
        if session.voice is not pipeline:
            return
        await self.append_message(session, Message(role=Role.ASSISTANT, content=TURN_FALLBACK_TEXT))
        await self._detach_voice(session, pipeline)
        await self._voice_unavailable(session, str(error))
        await pipeline.close()

    # =========================
    # Teardown
    # =========================

    async def close_session(self, session: ChatSession):
        """Release everything a session owns. Used as the session manager's closer."""
        await self.exit_voice_mode(session)
        session.conversation = None
        self._append_locks.pop(session.session_id, None)
        logger.info(f"Closed session {session.session_id}")
