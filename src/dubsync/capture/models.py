"""Capture domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4


class CaptureStatus(str, Enum):
    """Lifecycle of one export attempt."""

    IDLE = "idle"
    PRIMING = "priming"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CaptureStatus.COMPLETED, CaptureStatus.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (
            CaptureStatus.PRIMING,
            CaptureStatus.RECORDING,
            CaptureStatus.FINALIZING,
        )


@dataclass
class CaptureArtifact:
    """A finished export: one container with video and audio muxed."""

    data: bytes
    filename: str
    container: str = "webm"
    video_codec: str = "vp9"
    audio_codec: str = "opus"

    @property
    def mime_type(self) -> str:
        return f"video/{self.container}"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class CaptureJob:
    """State of one export in flight."""

    id: str = field(default_factory=lambda: str(uuid4()))
    status: CaptureStatus = CaptureStatus.IDLE
    elapsed_seconds: float = 0.0
    target_duration_seconds: float = 0.0
    progress: float = 0.0
    frames_recorded: int = 0
    artifact: CaptureArtifact | None = None
    error: str | None = None
    error_kind: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def update_progress(self, elapsed: float) -> float:
        """Record elapsed time; progress is clamped and never decreases."""
        self.elapsed_seconds = elapsed
        if self.target_duration_seconds > 0:
            percent = elapsed / self.target_duration_seconds * 100
        else:
            percent = 100.0
        self.progress = max(self.progress, min(100.0, max(0.0, percent)))
        return self.progress

    def complete(self, artifact: CaptureArtifact) -> None:
        self.status = CaptureStatus.COMPLETED
        self.artifact = artifact
        self.completed_at = datetime.now(timezone.utc)

    def fail(self, error: Exception) -> None:
        self.status = CaptureStatus.FAILED
        self.artifact = None
        self.error = str(error) or type(error).__name__
        self.error_kind = type(error).__name__
        self.completed_at = datetime.now(timezone.utc)
