"""
WebSocket audio bridge.
Lets a browser act as microphone and speaker for a voice session.

Client -> server: binary frames of float32 little-endian mono samples at the
capture rate, or the JSON control message {"type": "end"}.
Server -> client: JSON messages
    {"type": "audio", "segment_id", "start_at", "sample_rate", "data"}  (base64 PCM16)
    {"type": "stop", "segment_id"}
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

import numpy as np

from gadget_scout.audio.devices import AudioSource
from gadget_scout.audio.pcm import encode_audio_payload, float_to_pcm16
from gadget_scout.audio.playback import AudioSink, PlaybackHandle
from gadget_scout.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

SendJson = Callable[[dict], Awaitable[None]]

_END = object()


class WebSocketAudioSource(AudioSource):
    """Queue-fed source; the route pushes client frames in arrival order."""

    def __init__(self, sample_rate: Optional[int] = None):
        self.sample_rate = sample_rate or settings.INPUT_SAMPLE_RATE
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def feed(self, data: bytes):
        if self._closed:
            return
        usable = len(data) - (len(data) % 4)
        if usable:
            self._queue.put_nowait(np.frombuffer(data[:usable], dtype="<f4").astype(np.float32))

    def end(self):
        if not self._closed:
            self._queue.put_nowait(_END)

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item

    async def close(self):
        if self._closed:
            return
        self.end()
        self._closed = True


class WebSocketAudioSink(AudioSink):
    """
    Forwards scheduled segments to the client, which plays each one at its
    `start_at` offset on its own audio clock. The server-side clock is the
    event loop time since the sink was opened.
    """

    def __init__(self, send_json: SendJson, sample_rate: Optional[int] = None):
        self.sample_rate = sample_rate or settings.OUTPUT_SAMPLE_RATE
        self._send_json = send_json
        self._origin: Optional[float] = None
        self._next_id = 0
        self._handles: Dict[int, PlaybackHandle] = {}
        self._pending: set = set()

    @property
    def current_time(self) -> float:
        if self._origin is None:
            return 0.0
        return asyncio.get_running_loop().time() - self._origin

    async def open(self):
        self._origin = asyncio.get_running_loop().time()

    def play(self, samples: np.ndarray, start_time: float) -> PlaybackHandle:
        self._next_id += 1
        segment_id = self._next_id
        handle = PlaybackHandle(
            samples,
            start_time,
            self.sample_rate,
            on_stop=lambda h: self._stop_segment(segment_id)
        )
        self._handles[segment_id] = handle

        loop = asyncio.get_running_loop()
        loop.call_at(self._origin + handle.end_time, self._segment_done, segment_id)

        self._dispatch({
            "type": "audio",
            "segment_id": segment_id,
            "start_at": start_time,
            "sample_rate": self.sample_rate,
            "data": encode_audio_payload(float_to_pcm16(samples)),
        })
        return handle

    def _segment_done(self, segment_id: int):
        handle = self._handles.pop(segment_id, None)
        if handle is not None:
            handle.finish()

    def _stop_segment(self, segment_id: int):
        if self._handles.pop(segment_id, None) is not None:
            self._dispatch({"type": "stop", "segment_id": segment_id})

    def _dispatch(self, payload: dict):
        task = asyncio.ensure_future(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, payload: dict):
        try:
            await self._send_json(payload)
        except Exception as e:
            logger.debug(f"Dropped {payload['type']} message for closed socket: {e}")

    async def close(self):
        for handle in list(self._handles.values()):
            handle.stop()
        self._handles.clear()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
