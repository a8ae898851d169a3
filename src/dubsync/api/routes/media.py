"""Media info and audio-only download endpoints."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse

from dubsync.api.schemas import MediaInfoResponse
from dubsync.config import settings
from dubsync.errors import FFmpegError

router = APIRouter(prefix="/api/v1/media", tags=["media"])


@router.get("/info", response_model=MediaInfoResponse)
async def get_media_info(
    path: str = Query(..., description="Path to media file"),
) -> MediaInfoResponse:
    from dubsync.services.media import MediaService

    file_path = Path(path)
    if not file_path.exists():
        raise HTTPException(status_code=422, detail=f"File not found: {path}")

    service = MediaService()
    try:
        info = await service.get_media_info(file_path)
    except FFmpegError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return MediaInfoResponse(
        duration_seconds=info.duration_seconds,
        width=info.width,
        height=info.height,
        fps=info.fps,
        sample_rate=info.sample_rate,
    )


@router.get("/audio")
async def download_dub_audio(
    path: str = Query(..., description="Path to the dub audio file"),
    name: str = Query(..., description="Source video name"),
) -> FileResponse:
    """Serve the dub audio unmodified as ``audio_only_<name>.wav``."""
    file_path = Path(path)
    if not file_path.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {path}")

    return FileResponse(
        path=file_path,
        filename=f"{settings.audio_only_prefix}{name}.wav",
        media_type="audio/wav",
    )
