"""Media tracks and their notifications."""

from dubsync.playback.events import EventChannel, Subscription, TrackEvent, TrackEventType
from dubsync.playback.track import AudioTrack, MediaTrack, VideoTrack

__all__ = [
    "AudioTrack",
    "EventChannel",
    "MediaTrack",
    "Subscription",
    "TrackEvent",
    "TrackEventType",
    "VideoTrack",
]
