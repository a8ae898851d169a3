"""Track-related data models."""

from enum import Enum


class TrackType(str, Enum):
    """Type of media track."""

    VIDEO = "video"
    AUDIO = "audio"
