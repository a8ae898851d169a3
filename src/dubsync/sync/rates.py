"""Playback-rate reconciliation for a video and its dub audio."""

import logging
import math

from dubsync.config import settings
from dubsync.models.sync import SyncRates

logger = logging.getLogger(__name__)


def compute_rates(
    video_duration: float,
    audio_duration: float,
    epsilon: float | None = None,
) -> SyncRates:
    """Compute rates so both tracks finish at the same wall-clock instant.

    The shorter track is sped up; the longer one keeps its natural pace, so no
    rate is ever below 1.0 and ``video_duration / video_rate`` equals
    ``audio_duration / audio_rate``.

    Args:
        video_duration: Video length in seconds
        audio_duration: Dub audio length in seconds
        epsilon: Durations closer than this are treated as equal

    Returns:
        SyncRates(video_rate, audio_rate)

    Raises:
        ValueError: If either duration is not a finite positive number
    """
    for name, value in (("video", video_duration), ("audio", audio_duration)):
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{name} duration must be finite and positive, got {value}")

    if epsilon is None:
        epsilon = settings.rate_epsilon

    if abs(audio_duration - video_duration) <= epsilon:
        return SyncRates(1.0, 1.0)

    if audio_duration > video_duration:
        rates = SyncRates(video_rate=1.0, audio_rate=audio_duration / video_duration)
        logger.debug("Audio longer: speeding up audio by %.2fx", rates.audio_rate)
    else:
        rates = SyncRates(video_rate=video_duration / audio_duration, audio_rate=1.0)
        logger.debug("Audio shorter: speeding up video by %.2fx", rates.video_rate)
    return rates
