"""Tests for JobManager export jobs."""

import asyncio
from pathlib import Path

import pytest

from dubsync.errors import CaptureInProgressError, FFmpegError
from dubsync.jobs.manager import JobManager
from dubsync.jobs.models import JobStatus, JobType

from conftest import (
    AudioContextFactory,
    FakeFrameReader,
    FakeMediaService,
    RecorderFactory,
    audio_info,
    video_info,
)


def _manager(tmp_path: Path, media: FakeMediaService, **recorder_options: bool) -> JobManager:
    return JobManager(
        max_concurrent=2,
        output_dir=tmp_path / "outputs",
        media_service=media,
        session_options={
            "fps": 30,
            "sample_rate": 8000,
            "poll_interval": 0.02,
            "recorder_factory": RecorderFactory(**recorder_options),
            "audio_context_factory": AudioContextFactory(media),
        },
        frame_reader_factory=FakeFrameReader,
    )


def _media(video_duration: float = 0.3, audio_duration: float = 0.2) -> FakeMediaService:
    return FakeMediaService({
        "clip.mp4": video_info(video_duration),
        "dub.wav": audio_info(audio_duration),
    })


class TestCreateExportJob:
    @pytest.mark.asyncio
    async def test_export_completes(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media())

        job = mgr.create_export_job(video_path, audio_path)
        assert job.type is JobType.EXPORT_VIDEO
        assert job.status is JobStatus.PENDING
        await mgr.wait()

        assert job.status is JobStatus.COMPLETED, job.error
        assert job.progress == 100
        output = Path(job.result.output_files["video"])
        assert output == tmp_path / "outputs" / "dubbed_clip.mp4.webm"
        assert output.exists()
        assert job.result.summary["video_rate"] == pytest.approx(1.5)
        assert job.result.summary["codecs"] == "vp9/opus"
        assert job.completed_at is not None
        assert mgr.targets.active() == []

    @pytest.mark.asyncio
    async def test_same_target_rejected_while_running(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media(1.0, 1.0))

        first = mgr.create_export_job(video_path, audio_path)
        with pytest.raises(CaptureInProgressError):
            mgr.create_export_job(video_path, audio_path)
        assert [j.id for j in mgr.list_jobs()] == [first.id]

        other = mgr.create_export_job(video_path, audio_path, name="other.mp4")
        await mgr.wait()
        assert first.status is JobStatus.COMPLETED
        assert other.status is JobStatus.COMPLETED

        again = mgr.create_export_job(video_path, audio_path)
        await mgr.wait()
        assert again.status is JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_decode_failure_marks_job_failed(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        media = _media()
        media.decode_error = FFmpegError("ffmpeg decode failed")
        mgr = _manager(tmp_path, media)

        job = mgr.create_export_job(video_path, audio_path)
        await mgr.wait()

        assert job.status is JobStatus.FAILED
        assert job.error_kind == "DecodeFailure"
        assert job.result is None
        assert mgr.targets.active() == []

    @pytest.mark.asyncio
    async def test_recorder_failure_marks_job_failed(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media(), fail_on_finalize=True)
        job = mgr.create_export_job(video_path, audio_path)
        await mgr.wait()
        assert job.status is JobStatus.FAILED
        assert job.error_kind == "RecorderFailure"

    @pytest.mark.asyncio
    async def test_get_and_list(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media())
        job = mgr.create_export_job(video_path, audio_path)
        assert mgr.get_job(job.id) is job
        assert mgr.get_job("missing") is None
        await mgr.wait()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_exports(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media(5.0, 5.0))
        job = mgr.create_export_job(video_path, audio_path)
        await asyncio.sleep(0.1)

        await asyncio.wait_for(mgr.shutdown(), timeout=2.0)

        assert job.status is JobStatus.FAILED
        assert job.error_kind == "CaptureCancelled"
        assert mgr.targets.active() == []

    @pytest.mark.asyncio
    async def test_cancel_job(self, tmp_path: Path, media_files) -> None:
        video_path, audio_path = media_files
        mgr = _manager(tmp_path, _media(5.0, 5.0))
        job = mgr.create_export_job(video_path, audio_path)
        await asyncio.sleep(0.1)

        assert mgr.cancel_job(job.id) is True
        await asyncio.wait_for(mgr.wait(), timeout=2.0)

        assert job.status is JobStatus.FAILED
        assert job.error_kind == "CaptureCancelled"
        assert mgr.cancel_job(job.id) is False
        assert mgr.cancel_job("missing") is False
