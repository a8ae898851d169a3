"""Drift correction between the video and dub audio tracks."""

from __future__ import annotations

import logging

from dubsync.config import settings
from dubsync.playback.track import MediaTrack

logger = logging.getLogger(__name__)


class DriftCorrector:
    """Pull the audio back to the video's fractional progress.

    Both tracks run at different rates, so they are compared by percent of
    their own duration. Audio always follows video.
    """

    def __init__(self, tolerance: float | None = None) -> None:
        self.tolerance = settings.drift_tolerance if tolerance is None else tolerance
        self.corrections = 0

    @staticmethod
    def divergence(
        video_position: float,
        video_duration: float,
        audio_position: float,
        audio_duration: float,
    ) -> float:
        """Absolute difference in fractional progress (0.0 - 1.0)."""
        return abs(video_position / video_duration - audio_position / audio_duration)

    def correct(self, video: MediaTrack, audio: MediaTrack) -> bool:
        """Resync *audio* if it diverges from *video* beyond tolerance.

        Returns:
            True if the audio position was changed
        """
        video_duration = video.duration
        audio_duration = audio.duration
        if not video_duration or not audio_duration:
            return False

        video_position = video.current_time
        audio_position = audio.current_time
        drift = self.divergence(
            video_position, video_duration, audio_position, audio_duration
        )
        if drift <= self.tolerance:
            return False

        target = video_position / video_duration * audio_duration
        audio.current_time = target
        self.corrections += 1
        logger.info(
            "Drift %.1f%% exceeds %.1f%%: audio %.3fs -> %.3fs",
            drift * 100, self.tolerance * 100, audio_position, target,
        )
        return True
