"""Health check endpoint."""

import shutil

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dubsync.api.deps import get_job_manager
from dubsync.config import settings
from dubsync.jobs.manager import JobManager

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    ffmpeg: bool
    ffprobe: bool
    active_exports: list[str]


@router.get("/health", response_model=HealthResponse)
async def health_check(mgr: JobManager = Depends(get_job_manager)) -> HealthResponse:
    """Report version, external binary availability and running exports."""
    from dubsync import __version__

    ffmpeg = shutil.which(settings.ffmpeg_bin) is not None
    ffprobe = shutil.which(settings.ffprobe_bin) is not None
    return HealthResponse(
        status="healthy" if ffmpeg and ffprobe else "degraded",
        version=__version__,
        ffmpeg=ffmpeg,
        ffprobe=ffprobe,
        active_exports=mgr.targets.active(),
    )
