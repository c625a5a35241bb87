"""
Realtime Model Channel using the Gemini Live API.
Bidirectional audio session with tool calling, normalised into typed events.
"""

import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterator, List, Optional, Union

from gadget_scout.audio.pcm import decode_audio_payload, pcm_mime_type
from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import MissingCredentialException, VoiceChannelException
from gadget_scout.services.llm import ToolCall
from gadget_scout.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class AudioChunk:
    """Encoded 16-bit PCM from the model (output sample rate, mono)."""
    data: bytes


@dataclass
class ToolCallEvent:
    calls: List[ToolCall] = field(default_factory=list)


@dataclass
class Interrupted:
    """The user started speaking over the assistant."""


@dataclass
class TurnComplete:
    """The model finished its turn."""


LiveEvent = Union[AudioChunk, ToolCallEvent, Interrupted, TurnComplete]


def translate_message(message) -> Iterator[LiveEvent]:
    """Map one google-genai LiveServerMessage onto zero or more events."""
    if message.tool_call is not None and message.tool_call.function_calls:
        yield ToolCallEvent(calls=[
            ToolCall(name=fc.name, arguments=fc.args, id=fc.id)
            for fc in message.tool_call.function_calls
        ])

    content = message.server_content
    if content is None:
        return

    if content.model_turn and content.model_turn.parts:
        for part in content.model_turn.parts:
            if part.inline_data and part.inline_data.data:
                yield AudioChunk(data=decode_audio_payload(part.inline_data.data))

    if content.interrupted:
        yield Interrupted()

    if content.turn_complete:
        yield TurnComplete()


class LiveChannel:
    """An open live session. Created by `LiveService.connect`."""

    def __init__(self, session, exit_stack: AsyncExitStack, input_sample_rate: int):
        self._session = session
        self._exit_stack = exit_stack
        self._input_mime_type = pcm_mime_type(input_sample_rate)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_audio(self, pcm: bytes):
        """Transmit one uplink frame of 16-bit PCM."""
        from google.genai import types

        await self._session.send_realtime_input(
            audio=types.Blob(data=pcm, mime_type=self._input_mime_type)
        )

    async def send_tool_response(self, call: ToolCall, result: dict):
        """Acknowledge a tool invocation so the remote session can continue."""
        from google.genai import types

        await self._session.send_tool_response(
            function_responses=types.FunctionResponse(
                id=call.id,
                name=call.name,
                response=result
            )
        )

    async def events(self) -> AsyncIterator[LiveEvent]:
        """
        Downlink events in arrival order until the channel closes.

        Raises:
            VoiceChannelException: the connection broke while open
        """
        try:
            while not self._closed:
                # receive() ends after each completed model turn
                async for message in self._session.receive():
                    for event in translate_message(message):
                        yield event
        except Exception as e:
            if self._closed:
                return
            raise VoiceChannelException(str(e))

    async def close(self):
        if self._closed:
            return
        self._closed = True
        try:
            await self._exit_stack.aclose()
        except Exception as e:
            logger.warning(f"Error closing live channel: {e}")
        logger.info("Live channel closed")


class LiveService:
    """Opens live channels configured for audio replies, the persona and the tools."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        voice_name: Optional[str] = None
    ):
        self._api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self._model = model or settings.LIVE_MODEL_ID
        self._voice_name = voice_name or settings.VOICE_NAME
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def build_config(self, system_instruction: str, tools: ToolRegistry) -> dict:
        return {
            "response_modalities": ["AUDIO"],
            "system_instruction": system_instruction,
            "tools": [{"function_declarations": tools.get_declarations()}],
            "speech_config": {
                "voice_config": {"prebuilt_voice_config": {"voice_name": self._voice_name}}
            },
        }

    async def connect(self, system_instruction: str, tools: ToolRegistry) -> LiveChannel:
        """
        Open a live channel.

        Raises:
            MissingCredentialException, VoiceChannelException
        """
        if not self._api_key:
            raise MissingCredentialException("GEMINI_API_KEY", "live audio")

        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self._api_key)

        exit_stack = AsyncExitStack()
        try:
            session = await exit_stack.enter_async_context(
                self._client.aio.live.connect(
                    model=self._model,
                    config=self.build_config(system_instruction, tools)
                )
            )
        except Exception as e:
            await exit_stack.aclose()
            raise VoiceChannelException(str(e))

        logger.info(f"Live channel open: {self._model} (voice {self._voice_name})")
        return LiveChannel(session, exit_stack, settings.INPUT_SAMPLE_RATE)


__all__ = [
    "AudioChunk",
    "ToolCallEvent",
    "Interrupted",
    "TurnComplete",
    "LiveEvent",
    "LiveChannel",
    "LiveService",
    "translate_message"
]
