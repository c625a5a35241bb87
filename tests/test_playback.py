"""Tests for gapless playback scheduling and barge-in cancellation."""

import numpy as np
import pytest

from gadget_scout.audio.playback import PlaybackHandle, PlaybackScheduler

from conftest import FakeSink


def seconds(duration, sample_rate=24000):
    return np.zeros(int(duration * sample_rate), dtype=np.float32)


def test_segments_play_back_to_back():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)

    first = scheduler.schedule(seconds(0.5))
    second = scheduler.schedule(seconds(0.25))
    third = scheduler.schedule(seconds(0.1))

    assert first.start_time == 0.0
    assert second.start_time == pytest.approx(first.start_time + first.duration)
    assert third.start_time == pytest.approx(second.end_time)
    assert scheduler.cursor == pytest.approx(0.85)


def test_segment_never_starts_in_the_past():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)

    scheduler.schedule(seconds(1.0))
    sink.clock = 2.5
    late = scheduler.schedule(seconds(0.5))

    assert late.start_time == 2.5
    assert scheduler.cursor == pytest.approx(3.0)


def test_cursor_ahead_of_clock_wins():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)

    first = scheduler.schedule(seconds(1.0))
    sink.clock = 0.4
    second = scheduler.schedule(seconds(0.2))

    assert second.start_time >= first.start_time + first.duration


def test_interrupt_stops_everything_and_resets_cursor():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    handles = [scheduler.schedule(seconds(0.3)) for _ in range(3)]

    stopped = scheduler.interrupt()

    assert stopped == 3
    assert scheduler.active == set()
    assert scheduler.cursor == 0.0
    assert all(h.stopped and h.finished for h in handles)


def test_schedule_after_interrupt_starts_at_clock():
    sink = FakeSink()
    scheduler = PlaybackScheduler(sink)
    scheduler.schedule(seconds(2.0))
    sink.clock = 0.7

    scheduler.interrupt()
    fresh = scheduler.schedule(seconds(0.1))

    assert fresh.start_time == 0.7


def test_finished_segments_leave_the_live_set():
    scheduler = PlaybackScheduler(FakeSink())
    first = scheduler.schedule(seconds(0.1))
    second = scheduler.schedule(seconds(0.1))

    first.finish()

    assert scheduler.active == {second}
    assert scheduler.interrupt() == 1
    assert first.stopped is False


def test_stop_calls_hook_once():
    stops = []
    handle = PlaybackHandle(seconds(0.1), 0.0, 24000, on_stop=stops.append)

    handle.stop()
    handle.stop()

    assert stops == [handle]
    assert handle.finished


def test_done_callback_after_finish_runs_immediately():
    handle = PlaybackHandle(seconds(0.1), 0.0, 24000)
    handle.finish()
    seen = []

    handle.add_done_callback(seen.append)

    assert seen == [handle]
