"""
Local Audio Devices.
Microphone capture and speaker playback backed by PyAudio.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator, List, Optional

import numpy as np

from gadget_scout.audio.pcm import float_to_pcm16
from gadget_scout.audio.playback import AudioSink, PlaybackHandle
from gadget_scout.config import get_settings
from gadget_scout.core.exceptions import AudioDeviceException

logger = logging.getLogger(__name__)
settings = get_settings()


class AudioSource:
    """
    Input device contract.

    `frames` yields float32 mono frames in capture order until the source is
    closed.
    """

    sample_rate: int = 16000

    async def open(self):
        """Acquire the device."""

    def frames(self) -> AsyncIterator[np.ndarray]:
        raise NotImplementedError

    async def close(self):
        """Release the device."""


class PyAudioMicrophone(AudioSource):
    """Default input device, float32 mono at the capture rate."""

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        frame_size: Optional[int] = None,
        device_index: Optional[int] = None
    ):
        self.sample_rate = sample_rate or settings.INPUT_SAMPLE_RATE
        self.frame_size = frame_size or settings.INPUT_FRAME_SIZE
        self.device_index = device_index
        self._pya = None
        self._stream = None
        self._io_lock = threading.Lock()

    async def open(self):
        try:
            import pyaudio

            self._pya = pyaudio.PyAudio()
            self._stream = await asyncio.to_thread(
                self._pya.open,
                format=pyaudio.paFloat32,
                channels=1,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.frame_size,
            )
        except Exception as e:
            await self.close()
            raise AudioDeviceException("microphone", str(e))

        logger.info(f"Microphone opened at {self.sample_rate} Hz, {self.frame_size}-sample frames")

    def _read_frame(self) -> Optional[bytes]:
        with self._io_lock:
            if self._stream is None:
                return None
            return self._stream.read(self.frame_size, exception_on_overflow=False)

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            data = await asyncio.to_thread(self._read_frame)
            if data is None:
                return
            yield np.frombuffer(data, dtype=np.float32)

    def _close_stream(self):
        with self._io_lock:
            if self._stream is not None:
                self._stream.stop_stream()
                self._stream.close()
                self._stream = None
            if self._pya is not None:
                self._pya.terminate()
                self._pya = None

    async def close(self):
        await asyncio.to_thread(self._close_stream)
        logger.info("Microphone released")


class PyAudioSpeaker(AudioSink):
    """
    Default output device, 16-bit mono at the playback rate.

    A writer task drains scheduled segments in start-time order, padding
    silence up to each segment's start. The output clock is the number of
    frames written so far divided by the sample rate.
    """

    def __init__(self, sample_rate: Optional[int] = None, chunk_frames: Optional[int] = None):
        self.sample_rate = sample_rate or settings.OUTPUT_SAMPLE_RATE
        self.chunk_frames = chunk_frames or settings.OUTPUT_CHUNK_FRAMES
        self._pya = None
        self._stream = None
        self._frames_written = 0
        self._queue: List[PlaybackHandle] = []
        self._wakeup = asyncio.Event()
        self._writer_task: Optional[asyncio.Task] = None
        self._io_lock = threading.Lock()

    @property
    def current_time(self) -> float:
        return self._frames_written / float(self.sample_rate)

    async def open(self):
        try:
            import pyaudio

            self._pya = pyaudio.PyAudio()
            self._stream = await asyncio.to_thread(
                self._pya.open,
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.chunk_frames,
            )
        except Exception as e:
            await self.close()
            raise AudioDeviceException("speaker", str(e))

        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info(f"Speaker opened at {self.sample_rate} Hz")

    def play(self, samples: np.ndarray, start_time: float) -> PlaybackHandle:
        handle = PlaybackHandle(samples, start_time, self.sample_rate, on_stop=self._discard)
        self._queue.append(handle)
        self._queue.sort(key=lambda h: h.start_time)
        self._wakeup.set()
        return handle

    def _discard(self, handle: PlaybackHandle):
        if handle in self._queue:
            self._queue.remove(handle)

    def _write(self, pcm: bytes) -> bool:
        with self._io_lock:
            if self._stream is None:
                return False
            self._stream.write(pcm)
            return True

    async def _write_samples(self, samples: np.ndarray, handle: Optional[PlaybackHandle] = None) -> bool:
        for start in range(0, len(samples), self.chunk_frames):
            if handle is not None and handle.stopped:
                return False
            chunk = samples[start:start + self.chunk_frames]
            if not await asyncio.to_thread(self._write, float_to_pcm16(chunk)):
                return False
            self._frames_written += len(chunk)
        return True

    async def _write_loop(self):
        while True:
            try:
                if not self._queue:
                    self._wakeup.clear()
                    await self._wakeup.wait()
                    continue

                handle = self._queue[0]
                gap = int(round((handle.start_time - self.current_time) * self.sample_rate))
                if gap > 0:
                    await self._write_samples(np.zeros(gap, dtype=np.float32))

                if not handle.stopped:
                    await self._write_samples(handle.samples, handle)
                self._discard(handle)
                handle.finish()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Speaker writer error: {e}")
                for handle in list(self._queue):
                    handle.stop()

    def _close_stream(self):
        with self._io_lock:
            if self._stream is not None:
                self._stream.stop_stream()
                self._stream.close()
                self._stream = None
            if self._pya is not None:
                self._pya.terminate()
                self._pya = None

    async def close(self):
        for handle in list(self._queue):
            handle.stop()
        if self._writer_task:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None
        await asyncio.to_thread(self._close_stream)
        logger.info("Speaker released")
