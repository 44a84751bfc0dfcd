"""Real-time playback — event timeline, scheduler and audio output."""

from scoresynth.playback.output import AudioOutput, SoundDeviceOutput
from scoresynth.playback.scheduler import PlaybackScheduler
from scoresynth.playback.timeline import EventKind, Timeline, TimelineEvent

__all__ = [
    "AudioOutput",
    "EventKind",
    "PlaybackScheduler",
    "SoundDeviceOutput",
    "Timeline",
    "TimelineEvent",
]
