"""Synchronization state models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from pydantic import BaseModel, Field

from dubsync.models.track import TrackType


class SyncRates(NamedTuple):
    """Playback-rate multipliers for the video and dub audio tracks."""

    video_rate: float = 1.0
    audio_rate: float = 1.0


class DurationPair(NamedTuple):
    """Probed durations. ``None`` means absent or never resolved."""

    video_duration: float | None
    audio_duration: float | None = None


class SyncTelemetry(BaseModel):
    """Display-only snapshot of the current synchronization."""

    video_rate: float = Field(1.0, description="Video playback rate")
    audio_rate: float = Field(1.0, description="Dub audio playback rate")
    accelerated_track: TrackType | None = Field(
        None, description="Track running faster than 1.0x, if any"
    )
    dubbed: bool = Field(False, description="Whether a dub audio track is active")
    label: str = Field("", description="Human-readable sync summary")


@dataclass
class SyncState:
    """Derived synchronization state, owned by a PlaybackController.

    When both durations are known, ``video_duration / video_rate`` equals
    ``audio_duration / audio_rate``.
    """

    video_duration: float | None = None
    audio_duration: float | None = None
    video_rate: float = 1.0
    audio_rate: float = 1.0
    is_muted: bool = False
    is_playing: bool = False

    @property
    def has_dub(self) -> bool:
        return self.audio_duration is not None

    @property
    def rates(self) -> SyncRates:
        return SyncRates(self.video_rate, self.audio_rate)

    @property
    def accelerated_track(self) -> TrackType | None:
        if self.video_rate > 1.0:
            return TrackType.VIDEO
        if self.audio_rate > 1.0:
            return TrackType.AUDIO
        return None

    @property
    def reference_track(self) -> TrackType:
        """The track that is not sped up. Video when neither is."""
        if self.accelerated_track is TrackType.VIDEO:
            return TrackType.AUDIO
        return TrackType.VIDEO

    @property
    def total_duration(self) -> float | None:
        """Synchronized wall-clock length of the pair."""
        if self.video_duration is None:
            return None
        return self.video_duration / self.video_rate

    def apply(self, rates: SyncRates) -> None:
        self.video_rate, self.audio_rate = rates

    def telemetry(self) -> SyncTelemetry:
        if not self.has_dub:
            label = "Original"
        elif self.accelerated_track is TrackType.VIDEO:
            label = f"Sync: Video {self.video_rate:.2f}x"
        else:
            label = f"Sync: Audio {self.audio_rate:.2f}x"
        return SyncTelemetry(
            video_rate=self.video_rate,
            audio_rate=self.audio_rate,
            accelerated_track=self.accelerated_track,
            dubbed=self.has_dub,
            label=label,
        )
