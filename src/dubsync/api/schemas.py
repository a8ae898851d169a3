"""Request and response schemas for the dubsync API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dubsync.models.sync import SyncTelemetry


# ------------------------------------------------------------------
# Job creation requests
# ------------------------------------------------------------------


class ExportRequest(BaseModel):
    video_path: str = Field(..., description="Path to the original video")
    audio_path: str = Field(..., description="Path to the dub audio file")
    name: str | None = Field(None, description="Source name for the output file")


# ------------------------------------------------------------------
# Job responses
# ------------------------------------------------------------------


class JobCreateResponse(BaseModel):
    job_id: str
    status: str
    type: str


class JobResultResponse(BaseModel):
    output_files: dict[str, str] = Field(default_factory=dict)
    summary: dict[str, Any] = Field(default_factory=dict)


class JobStatusResponse(BaseModel):
    job_id: str
    type: str
    status: str
    progress: int = 0
    message: str = ""
    result: JobResultResponse | None = None
    error: str | None = None
    error_kind: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class JobListItem(BaseModel):
    job_id: str
    type: str
    status: str
    created_at: datetime


# ------------------------------------------------------------------
# Media / sync responses
# ------------------------------------------------------------------


class MediaInfoResponse(BaseModel):
    duration_seconds: float | None = None
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    sample_rate: int | None = None


class SyncRatesResponse(BaseModel):
    video_duration: float | None = None
    audio_duration: float | None = None
    total_duration: float | None = None
    telemetry: SyncTelemetry
