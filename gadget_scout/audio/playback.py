"""
Playback Scheduling.
Gapless, in-order scheduling of downlink audio segments with en-masse cancellation.
"""

import logging
from typing import Callable, List, Optional, Set

import numpy as np

logger = logging.getLogger(__name__)


class PlaybackHandle:
    """One scheduled segment on an output device."""

    def __init__(
        self,
        samples: np.ndarray,
        start_time: float,
        sample_rate: int,
        on_stop: Optional[Callable[["PlaybackHandle"], None]] = None
    ):
        self.samples = samples
        self.start_time = start_time
        self.sample_rate = sample_rate
        self.stopped = False
        self.finished = False
        self._on_stop = on_stop
        self._done_callbacks: List[Callable[["PlaybackHandle"], None]] = []

    @property
    def duration(self) -> float:
        return len(self.samples) / float(self.sample_rate)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def add_done_callback(self, callback: Callable[["PlaybackHandle"], None]):
        if self.finished:
            callback(self)
        else:
            self._done_callbacks.append(callback)

    def stop(self):
        """Stop immediately; finishing callbacks still run."""
        if self.finished:
            return
        self.stopped = True
        if self._on_stop:
            self._on_stop(self)
        self.finish()

    def finish(self):
        if self.finished:
            return
        self.finished = True
        callbacks, self._done_callbacks = self._done_callbacks, []
        for callback in callbacks:
            callback(self)


class AudioSink:
    """
    Output device contract.

    `current_time` is the device's output clock in seconds; `play` schedules
    samples to start at a given clock time and returns the segment's handle.
    """

    sample_rate: int = 24000

    @property
    def current_time(self) -> float:
        raise NotImplementedError

    async def open(self):
        """Acquire the device."""

    def play(self, samples: np.ndarray, start_time: float) -> PlaybackHandle:
        raise NotImplementedError

    async def close(self):
        """Release the device."""


class PlaybackScheduler:
    """
    Downlink playback state: the next-start cursor and the live segment set.

    Each segment starts at max(output clock, cursor) and advances the cursor
    by its duration, so segments play back to back in arrival order.
    """

    def __init__(self, sink: AudioSink):
        self.sink = sink
        self.cursor = 0.0
        self.active: Set[PlaybackHandle] = set()

    def schedule(self, samples: np.ndarray) -> PlaybackHandle:
        """Schedule a decoded segment after everything already scheduled."""
        start_time = max(self.sink.current_time, self.cursor)
        handle = self.sink.play(samples, start_time)
        self.cursor = start_time + handle.duration
        if not handle.finished:
            self.active.add(handle)
            handle.add_done_callback(self.active.discard)
        return handle

    def interrupt(self) -> int:
        """Stop every scheduled segment, clear the live set, reset the cursor to zero."""
        handles = list(self.active)
        for handle in handles:
            handle.stop()
        self.active.clear()
        self.cursor = 0.0
        if handles:
            logger.debug(f"Interrupted {len(handles)} scheduled segments")
        return len(handles)
