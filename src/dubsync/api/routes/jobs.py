"""Export job endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from dubsync.api.deps import get_job_manager
from dubsync.api.schemas import (
    ExportRequest,
    JobCreateResponse,
    JobListItem,
    JobResultResponse,
    JobStatusResponse,
)
from dubsync.errors import CaptureInProgressError
from dubsync.jobs.manager import JobManager
from dubsync.jobs.models import Job

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])


def _validate_file(path_str: str, label: str) -> None:
    """Raise 422 if the file does not exist."""
    if not Path(path_str).exists():
        raise HTTPException(status_code=422, detail=f"{label} not found: {path_str}")


# ------------------------------------------------------------------
# Export creation
# ------------------------------------------------------------------


@router.post("/export", response_model=JobCreateResponse, status_code=202)
async def create_export_job(
    req: ExportRequest,
    mgr: JobManager = Depends(get_job_manager),
) -> JobCreateResponse:
    _validate_file(req.video_path, "video_path")
    _validate_file(req.audio_path, "audio_path")
    try:
        job = mgr.create_export_job(Path(req.video_path), Path(req.audio_path), req.name)
    except CaptureInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return JobCreateResponse(job_id=job.id, status=job.status.value, type=job.type.value)


@router.delete("/{job_id}", response_model=JobStatusResponse)
async def cancel_job(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> JobStatusResponse:
    """Stop a running export early. It finishes as failed/CaptureCancelled."""
    job = _require_job(mgr, job_id)
    if not mgr.cancel_job(job_id):
        raise HTTPException(status_code=409, detail=f"Job is already {job.status.value}")
    return _status_response(job)


# ------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------


def _require_job(mgr: JobManager, job_id: str) -> Job:
    job = mgr.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def _status_response(job: Job) -> JobStatusResponse:
    result = None
    if job.result is not None:
        result = JobResultResponse(
            output_files=job.result.output_files,
            summary=job.result.summary,
        )
    return JobStatusResponse(
        job_id=job.id,
        type=job.type.value,
        status=job.status.value,
        progress=job.progress,
        message=job.message,
        result=result,
        error=job.error,
        error_kind=job.error_kind,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


@router.get("", response_model=list[JobListItem])
async def list_jobs(
    mgr: JobManager = Depends(get_job_manager),
) -> list[JobListItem]:
    return [
        JobListItem(job_id=j.id, type=j.type.value, status=j.status.value, created_at=j.created_at)
        for j in mgr.list_jobs()
    ]


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> JobStatusResponse:
    return _status_response(_require_job(mgr, job_id))


@router.get("/{job_id}/files/{name}")
async def download_job_file(
    job_id: str,
    name: str,
    mgr: JobManager = Depends(get_job_manager),
) -> FileResponse:
    """Download an export output. ``video`` is the muxed WebM."""
    job = _require_job(mgr, job_id)
    outputs = job.result.output_files if job.result else {}
    path_str = outputs.get(name)
    if path_str is None:
        raise HTTPException(
            status_code=404,
            detail=f"No output '{name}' for job {job_id} (status {job.status.value})",
        )

    file_path = Path(path_str)
    if not file_path.is_file():
        raise HTTPException(status_code=404, detail=f"Output was removed: {file_path.name}")

    media_type = f"video/{file_path.suffix.lstrip('.')}" if name == "video" else None
    return FileResponse(path=file_path, filename=file_path.name, media_type=media_type)
