"""Service interfaces (Protocols) for dubsync.

These protocols define the contracts that service implementations must follow.
This allows for easy swapping of implementations and better testability.
"""

from pathlib import Path
from typing import Protocol

import numpy as np

from dubsync.models.media import MediaInfo


class IMediaService(Protocol):
    """Interface for media operations (FFmpeg wrapper)."""

    async def get_media_info(self, path: Path) -> MediaInfo:
        """Extract media information from a file.

        Args:
            path: Path to the media file

        Returns:
            MediaInfo with duration, resolution, fps, etc.
        """
        ...

    async def decode_audio(
        self,
        data: bytes,
        sample_rate: int,
        channels: int = 1,
    ) -> np.ndarray:
        """Decode encoded audio bytes into int16 PCM samples.

        Args:
            data: Complete encoded audio file
            sample_rate: Output sample rate
            channels: Output channel count

        Returns:
            int16 array shaped ``(frames, channels)``
        """
        ...


class IFrameReader(Protocol):
    """Interface for sequential video frame decoding."""

    async def frame_at(self, position: float) -> np.ndarray | None:
        """Return the latest frame whose timestamp is <= *position*."""
        ...

    async def close(self) -> None:
        """Release the decoder."""
        ...
