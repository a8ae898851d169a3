"""Data models for dubsync."""

from dubsync.models.media import MediaInfo
from dubsync.models.sync import DurationPair, SyncRates, SyncState, SyncTelemetry
from dubsync.models.track import TrackType

__all__ = [
    # Media
    "MediaInfo",
    # Track
    "TrackType",
    # Sync
    "DurationPair",
    "SyncRates",
    "SyncState",
    "SyncTelemetry",
]
