"""
Realtime Audio Pipeline.
Runs one live voice session: microphone uplink, scheduled downlink playback,
mid-stream recommendations and barge-in handling.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from gadget_scout.audio.devices import AudioSource
from gadget_scout.audio.pcm import FrameBuffer, float_to_pcm16, pcm16_to_float
from gadget_scout.audio.playback import AudioSink, PlaybackScheduler
from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import (
    ConfigurationException,
    VoiceChannelException,
    VoiceException,
    VoiceStateException
)
from gadget_scout.core.session import Message
from gadget_scout.services.realtime import (
    AudioChunk,
    Interrupted,
    LiveChannel,
    ToolCallEvent,
    TurnComplete
)
from gadget_scout.tools.recommend import RecommendationProtocol

logger = logging.getLogger(__name__)
settings = get_settings()


class VoiceState(str, Enum):
    """Lifecycle of a voice session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    INTERRUPTED = "interrupted"
    CLOSING = "closing"
    CLOSED = "closed"


TRANSITIONS: Dict[VoiceState, set] = {
    VoiceState.IDLE: {VoiceState.CONNECTING, VoiceState.CLOSING},
    VoiceState.CONNECTING: {VoiceState.STREAMING, VoiceState.CLOSING},
    VoiceState.STREAMING: {VoiceState.INTERRUPTED, VoiceState.CLOSING},
    VoiceState.INTERRUPTED: {VoiceState.STREAMING, VoiceState.CLOSING},
    VoiceState.CLOSING: {VoiceState.CLOSED},
    VoiceState.CLOSED: set(),
}

ChannelFactory = Callable[[], Awaitable[LiveChannel]]
MessageHandler = Callable[[Message], Awaitable[None]]
StateListener = Callable[[VoiceState, VoiceState], Awaitable[None]]
FailureHandler = Callable[[Exception], Awaitable[None]]


class RealtimeAudioPipeline:
    """
    One-shot voice session state machine.

    Idle -> Connecting -> Streaming <-> Interrupted -> Closing -> Closed.
    A pipeline is never restarted; reopening voice mode builds a new one.

    Uplink (source frames -> channel) and downlink (channel events ->
    playback / messages) run as independent tasks; each preserves its own
    order and they carry no ordering relationship to each other.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        source: AudioSource,
        sink: AudioSink,
        protocol: RecommendationProtocol,
        on_message: MessageHandler,
        on_state_change: Optional[StateListener] = None,
        on_failure: Optional[FailureHandler] = None,
        frame_size: Optional[int] = None,
        agent_logger=None,
        session_id: str = ""
    ):
        self.channel_factory = channel_factory
        self.source = source
        self.sink = sink
        self.protocol = protocol
        self.on_message = on_message
        self.on_state_change = on_state_change
        self.on_failure = on_failure
        self.frame_size = frame_size or settings.INPUT_FRAME_SIZE
        self.agent_logger = agent_logger
        self.session_id = session_id

        self.state = VoiceState.IDLE
        self.scheduler = PlaybackScheduler(sink)
        self._channel: Optional[LiveChannel] = None
        self._tasks: List[asyncio.Task] = []
        self._cancelled = False
        self._closed = asyncio.Event()

        self._handlers = {
            AudioChunk: self._on_audio,
            ToolCallEvent: self._on_tool_call,
            Interrupted: self._on_interrupted,
            TurnComplete: self._on_turn_complete,
        }

    @property
    def is_active(self) -> bool:
        return self.state in (VoiceState.CONNECTING, VoiceState.STREAMING, VoiceState.INTERRUPTED)

    # =========================
    # Lifecycle
    # =========================

    async def start(self) -> bool:
        """
        Acquire devices, open the channel and begin streaming.

        Returns:
            True when streaming, False when a concurrent close cancelled the attempt

        Raises:
            VoiceException: a device or the channel could not be opened (the
                pipeline is already closed when this propagates)
            ConfigurationException: no credential for the live model
        """
        if self.state != VoiceState.IDLE:
            raise VoiceStateException(self.state.value, VoiceState.CONNECTING.value)
        await self._transition(VoiceState.CONNECTING)
        if self._cancelled:
            return False

        try:
            await self.source.open()
            if self._cancelled:
                return await self._abandon()

            await self.sink.open()
            if self._cancelled:
                return await self._abandon()

            channel = await self.channel_factory()
            if self._cancelled:
                await channel.close()
                return await self._abandon()
        except (VoiceException, ConfigurationException):
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise VoiceChannelException(str(e))

        self._channel = channel
        await self._transition(VoiceState.STREAMING)
        if self._cancelled:
            # close() ran while the transition was being reported
            logger.info(f"Voice session for {self.session_id or 'session'} closed before streaming began")
            return False
        self._tasks = [
            asyncio.create_task(self._run_uplink()),
            asyncio.create_task(self._run_downlink()),
        ]
        return True

    async def wait_closed(self):
        """Wait until the pipeline reaches Closed."""
        await self._closed.wait()

    async def _abandon(self) -> bool:
        # close() already ran; anything acquired after it must be released here
        await self._release_devices()
        logger.info(f"Voice connection for {self.session_id or 'session'} abandoned after close")
        return False

    async def close(self):
        """Stop playback, close the channel and release both devices. Idempotent."""
        if self.state in (VoiceState.CLOSING, VoiceState.CLOSED):
            await self._closed.wait()
            return

        self._cancelled = True
        await self._transition(VoiceState.CLOSING)

        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"Voice task ended with error during close: {e}")

        self.scheduler.interrupt()
        if self._channel is not None:
            await self._channel.close()
        await self._release_devices()

        await self._transition(VoiceState.CLOSED)
        self._closed.set()

    async def _release_devices(self):
        for name, device in (("microphone", self.source), ("speaker", self.sink)):
            try:
                await device.close()
            except Exception as e:
                logger.error(f"Failed to release {name}: {e}")

    async def _transition(self, new_state: VoiceState):
        old_state = self.state
        if new_state not in TRANSITIONS[old_state]:
            raise VoiceStateException(old_state.value, new_state.value)

        self.state = new_state
        logger.debug(f"Voice state: {old_state.value} -> {new_state.value}")

        if self.agent_logger:
            await self.agent_logger.log_voice_state(self.session_id, old_state.value, new_state.value)
        if self.on_state_change:
            await self.on_state_change(old_state, new_state)

    # =========================
    # Uplink
    # =========================

    async def _run_uplink(self):
        buffer = FrameBuffer(self.frame_size)
        try:
            async for samples in self.source.frames():
                for frame in buffer.push(samples):
                    await self._channel.send_audio(float_to_pcm16(frame))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(e)

    # =========================
    # Downlink
    # =========================

    async def _run_downlink(self):
        try:
            async for event in self._channel.events():
                handler = self._handlers.get(type(event))
                if handler:
                    await handler(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(e)

    async def _on_audio(self, event: AudioChunk):
        if self.state == VoiceState.INTERRUPTED:
            await self._transition(VoiceState.STREAMING)
        self.scheduler.schedule(pcm16_to_float(event.data))

    async def _on_tool_call(self, event: ToolCallEvent):
        for call in event.calls:
            interpretation = self.protocol.interpret_call(call)
            if interpretation.message is not None:
                await self.on_message(interpretation.message)

            for acked_call, result in interpretation.acknowledgements:
                if self.agent_logger:
                    await self.agent_logger.log_tool_call(
                        self.session_id,
                        acked_call.name,
                        acked_call.arguments if isinstance(acked_call.arguments, dict) else {},
                        result
                    )
                await self._channel.send_tool_response(acked_call, result)

    async def _on_interrupted(self, event: Interrupted):
        stopped = self.scheduler.interrupt()
        logger.info(f"Barge-in: stopped {stopped} scheduled segments")
        if self.state == VoiceState.STREAMING:
            await self._transition(VoiceState.INTERRUPTED)

    async def _on_turn_complete(self, event: TurnComplete):
        if self.state == VoiceState.INTERRUPTED:
            await self._transition(VoiceState.STREAMING)

    async def _fail(self, error: Exception):
        if self._cancelled:
            return
        logger.error(f"Voice session failed: {error}")
        if self.agent_logger:
            await self.agent_logger.log_error(self.session_id, "voice_error", str(error))
        if self.on_failure:
            await self.on_failure(error)
        else:
            await self.close()
