"""Job manager with in-memory storage and background execution."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dubsync.capture.models import CaptureStatus
from dubsync.capture.session import CaptureSession
from dubsync.capture.target import CaptureTargetRegistry
from dubsync.config import settings
from dubsync.jobs.models import Job, JobResult, JobStatus
from dubsync.playback.track import AudioTrack, FrameReaderFactory, VideoTrack
from dubsync.services.frames import FrameReader
from dubsync.services.interfaces import IMediaService
from dubsync.services.media import MediaService
from dubsync.sync.probe import DurationProbe
from dubsync.sync.rates import compute_rates

logger = logging.getLogger(__name__)


class JobManager:
    """Manages background export jobs with concurrency control.

    Jobs are stored in-memory (dict). Background execution uses
    asyncio.create_task with a semaphore for concurrency limiting. An export
    whose output target is already being captured is rejected at creation.
    """

    def __init__(
        self,
        max_concurrent: int = 2,
        output_dir: Path | None = None,
        media_service: IMediaService | None = None,
        session_options: dict[str, Any] | None = None,
        frame_reader_factory: FrameReaderFactory = FrameReader,
    ) -> None:
        self._jobs: dict[str, Job] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._sessions: dict[str, CaptureSession] = {}
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._output_dir = output_dir or settings.output_dir
        self._media = media_service or MediaService()
        self._session_options = session_options or {}
        self._frame_reader_factory = frame_reader_factory
        self.targets = CaptureTargetRegistry()

    def create_export_job(
        self,
        video_path: Path,
        audio_path: Path,
        name: str | None = None,
    ) -> Job:
        """Create an export job and schedule it for background execution.

        Args:
            video_path: Original video file.
            audio_path: Dub audio file.
            name: Source name used for the output file (defaults to the
                video's file name).

        Returns:
            The created Job (status=pending).

        Raises:
            CaptureInProgressError: If an export of the same target is running.
        """
        video_path = Path(video_path)
        job = Job(
            video_path=video_path,
            audio_path=Path(audio_path),
            name=name or video_path.name,
        )

        session = CaptureSession(
            VideoTrack(
                media_service=self._media,
                frame_reader_factory=self._frame_reader_factory,
            ),
            AudioTrack(media_service=self._media),
            self.targets.get(job.name),
            progress_callback=job.report,
            **self._session_options,
        )
        session.claim()

        self._jobs[job.id] = job
        self._sessions[job.id] = session
        task = asyncio.create_task(self._run_job(job, session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    def get_job(self, job_id: str) -> Job | None:
        """Get a job by ID."""
        return self._jobs.get(job_id)

    def cancel_job(self, job_id: str) -> bool:
        """Stop a pending or running export.

        Returns:
            False if the job is unknown or already finished
        """
        session = self._sessions.get(job_id)
        if session is None:
            return False
        session.cancel()
        logger.info("Cancel requested for job %s", job_id)
        return True

    def list_jobs(self) -> list[Job]:
        """List all jobs, most recent first."""
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)

    async def wait(self) -> None:
        """Wait for all scheduled jobs to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel unfinished jobs and wait for their cleanup."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for job in self._jobs.values():
            if not job.status.is_finished:
                job.fail("server shutting down", "CaptureCancelled", message="Cancelled")
        if tasks:
            logger.info("Cancelled %d export job(s) on shutdown", len(tasks))

    async def _run_job(self, job: Job, session: CaptureSession) -> None:
        """Execute a job with semaphore-based concurrency control."""
        try:
            async with self._semaphore:
                job.status = JobStatus.PROCESSING
                job.message = "Loading media..."
                try:
                    result = await self._exec_export(job, session)
                except Exception as e:
                    logger.exception("Job %s failed", job.id)
                    job.fail(str(e), type(e).__name__)
                else:
                    if result is None:
                        job.fail(session.job.error, session.job.error_kind)
                    else:
                        job.succeed(result)
        finally:
            session.release()
            self._sessions.pop(job.id, None)

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------

    async def _exec_export(self, job: Job, session: CaptureSession) -> JobResult | None:
        """Load the pair, derive rates, capture, and write the artifact."""
        video, audio = session.video, session.audio
        try:
            await asyncio.gather(video.load(job.video_path), audio.load(job.audio_path))
            pair = await DurationProbe(video, audio).resolve()
            if pair.video_duration and pair.audio_duration:
                session.rates = compute_rates(pair.video_duration, pair.audio_duration)
            capture = await session.run()
        finally:
            await video.close()
            await audio.close()

        if capture.status is not CaptureStatus.COMPLETED or capture.artifact is None:
            return None

        artifact = capture.artifact
        self._output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self._output_dir / artifact.filename
        await asyncio.to_thread(output_path.write_bytes, artifact.data)
        logger.info("Export written: %s (%d bytes)", output_path, artifact.size)

        rates = session.rates
        return JobResult(
            output_files={"video": str(output_path)},
            summary={
                "duration_seconds": round(capture.target_duration_seconds, 3),
                "elapsed_seconds": round(capture.elapsed_seconds, 3),
                "frames": capture.frames_recorded,
                "video_rate": rates.video_rate if rates else 1.0,
                "audio_rate": rates.audio_rate if rates else 1.0,
                "container": artifact.container,
                "codecs": f"{artifact.video_codec}/{artifact.audio_codec}",
            },
        )
