"""Export job models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobType(str, Enum):
    EXPORT_VIDEO = "export_video"


@dataclass
class JobResult:
    """Files an export wrote, keyed by role (``video``)."""

    output_files: dict[str, str] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass
class Job:
    """One export of a video/dub pair, tracked by the JobManager.

    ``progress`` mirrors the capture session's percent and ``message`` its
    current phase; ``error_kind`` is the failing exception's class name.
    """

    video_path: Path
    audio_path: Path
    name: str
    id: str = field(default_factory=lambda: str(uuid4()))
    type: JobType = JobType.EXPORT_VIDEO
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    message: str = ""
    result: JobResult | None = None
    error: str | None = None
    error_kind: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def report(self, progress: float, phase: str) -> None:
        self.progress = max(self.progress, int(progress))
        self.message = phase.capitalize()

    def succeed(self, result: JobResult) -> None:
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.message = "Complete"
        self.result = result
        self.completed_at = datetime.now(timezone.utc)

    def fail(self, error: str | None, error_kind: str | None, message: str = "Failed") -> None:
        self.status = JobStatus.FAILED
        self.error = error
        self.error_kind = error_kind
        self.message = message
        self.completed_at = datetime.now(timezone.utc)
