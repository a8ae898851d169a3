"""Sync telemetry endpoint."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException, Query

from dubsync.api.schemas import SyncRatesResponse
from dubsync.models.sync import SyncState
from dubsync.playback.track import AudioTrack, VideoTrack
from dubsync.sync.probe import DurationProbe
from dubsync.sync.rates import compute_rates

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.get("/rates", response_model=SyncRatesResponse)
async def get_sync_rates(
    video_path: str = Query(..., description="Path to the original video"),
    audio_path: str | None = Query(None, description="Path to the dub audio"),
) -> SyncRatesResponse:
    """Probe both durations and report the playback rates that align them."""
    if not Path(video_path).exists():
        raise HTTPException(status_code=422, detail=f"File not found: {video_path}")
    if audio_path and not Path(audio_path).exists():
        raise HTTPException(status_code=422, detail=f"File not found: {audio_path}")

    video = VideoTrack()
    audio = AudioTrack()
    try:
        await video.load(Path(video_path))
        await audio.load(Path(audio_path) if audio_path else None)
        pair = await DurationProbe(video, audio).resolve()
    finally:
        await video.close()
        await audio.close()

    state = SyncState(video_duration=pair.video_duration, audio_duration=pair.audio_duration)
    if pair.video_duration and pair.audio_duration:
        state.apply(compute_rates(pair.video_duration, pair.audio_duration))

    return SyncRatesResponse(
        video_duration=pair.video_duration,
        audio_duration=pair.audio_duration,
        total_duration=state.total_duration,
        telemetry=state.telemetry(),
    )
