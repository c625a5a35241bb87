"""
PCM helpers.
Conversions between float sample buffers and 16-bit little-endian PCM.
"""

import base64
import binascii
from typing import Iterator, Union

import numpy as np

PCM_DTYPE = np.dtype("<i2")
BYTES_PER_SAMPLE = PCM_DTYPE.itemsize


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Float samples in [-1, 1] to 16-bit little-endian PCM bytes. Out-of-range input is clipped."""
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767.0).astype(PCM_DTYPE).tobytes()


def pcm16_to_float(data: bytes) -> np.ndarray:
    """16-bit little-endian PCM bytes to float32 samples in [-1, 1)."""
    if len(data) % BYTES_PER_SAMPLE:
        data = data[:-(len(data) % BYTES_PER_SAMPLE)]
    return np.frombuffer(data, dtype=PCM_DTYPE).astype(np.float32) / 32768.0


def decode_audio_payload(payload: Union[str, bytes, bytearray]) -> bytes:
    """
    Downlink audio arrives either as raw bytes or as base64 text.

    Raises:
        ValueError: the text is not valid base64
    """
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 audio payload: {e}")


def encode_audio_payload(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class FrameBuffer:
    """Re-chunks arbitrarily sized capture buffers into fixed-size frames, in order."""

    def __init__(self, frame_size: int):
        self.frame_size = frame_size
        self._pending = np.zeros(0, dtype=np.float32)

    def push(self, samples: np.ndarray) -> Iterator[np.ndarray]:
        """Add samples; yield every complete frame now available."""
        data = np.asarray(samples, dtype=np.float32)
        if len(self._pending):
            data = np.concatenate([self._pending, data])
        complete = len(data) - (len(data) % self.frame_size)
        self._pending = data[complete:].copy()
        for start in range(0, complete, self.frame_size):
            yield data[start:start + self.frame_size]

    def flush(self) -> np.ndarray:
        """Whatever is left over (shorter than one frame)."""
        remaining, self._pending = self._pending, np.zeros(0, dtype=np.float32)
        return remaining


def pcm_mime_type(sample_rate: int) -> str:
    return f"audio/pcm;rate={sample_rate}"
