"""Services module for dubsync."""

from dubsync.services.frames import FrameReader
from dubsync.services.interfaces import IFrameReader, IMediaService
from dubsync.services.media import MediaService

__all__ = [
    "IFrameReader",
    "IMediaService",
    "FrameReader",
    "MediaService",
]
