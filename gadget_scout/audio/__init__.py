"""
Audio package - PCM codec, playback scheduling, devices and the realtime pipeline.
"""

from gadget_scout.audio.pcm import FrameBuffer, float_to_pcm16, pcm16_to_float
from gadget_scout.audio.playback import AudioSink, PlaybackHandle, PlaybackScheduler
from gadget_scout.audio.devices import AudioSource, PyAudioMicrophone, PyAudioSpeaker

__all__ = [
    "FrameBuffer",
    "float_to_pcm16",
    "pcm16_to_float",
    "AudioSink",
    "AudioSource",
    "PlaybackHandle",
    "PlaybackScheduler",
    "PyAudioMicrophone",
    "PyAudioSpeaker",
]
