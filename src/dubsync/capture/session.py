"""Export of a synchronized video + dub audio pair into one file."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from typing import Any

from dubsync.capture.audio import AudioBuffer, AudioBufferSource, AudioContext, AudioDestination
from dubsync.capture.models import CaptureArtifact, CaptureJob, CaptureStatus
from dubsync.capture.raster import CaptureStream, RasterTarget
from dubsync.capture.recorder import MediaRecorder, RecorderState
from dubsync.capture.target import CaptureTarget
from dubsync.config import settings
from dubsync.errors import (
    CaptureCancelled,
    CaptureError,
    DecodeFailure,
    FFmpegError,
    MetadataUnavailable,
    RecorderFailure,
)
from dubsync.models.sync import SyncRates
from dubsync.playback.track import AudioTrack, Clock, VideoTrack
from dubsync.sync.rates import compute_rates

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]
RecorderFactory = Callable[[CaptureStream, AudioDestination], Any]
AudioContextFactory = Callable[[int], Any]

_CODEC_NAMES = {"libvpx-vp9": "vp9", "libvpx": "vp8", "libopus": "opus", "libvorbis": "vorbis"}


def artifact_filename(source_name: str, container: str | None = None) -> str:
    """Name of the exported file for a source such as ``clip.mp4``."""
    return f"{settings.export_prefix}{source_name}.{container or settings.export_container}"


class CaptureSession:
    """Render, decode, record and mux one export.

    IDLE -> PRIMING -> RECORDING -> FINALIZING -> COMPLETED | FAILED.

    The session owns its raster target, audio context and recorder; the
    tracks are borrowed and left paused at position 0 on every exit path.
    Only one session may hold a given ``CaptureTarget`` at a time.
    """

    def __init__(
        self,
        video: VideoTrack,
        audio: AudioTrack,
        target: CaptureTarget,
        rates: SyncRates | None = None,
        fps: int | None = None,
        sample_rate: int | None = None,
        poll_interval: float | None = None,
        recorder_factory: RecorderFactory = MediaRecorder,
        audio_context_factory: AudioContextFactory = AudioContext,
        clock: Clock = time.monotonic,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.video = video
        self.audio = audio
        self.target = target
        self.rates = rates
        self.fps = fps or settings.capture_fps
        self.sample_rate = sample_rate or settings.capture_sample_rate
        self.poll_interval = poll_interval or settings.capture_poll_interval
        self.job = CaptureJob()
        self._recorder_factory = recorder_factory
        self._audio_context_factory = audio_context_factory
        self._clock = clock
        self._progress_callback = progress_callback

        # Shared by the draw loop and the stop poll.
        self._stop = asyncio.Event()
        self._cancelled = False
        self._started_at = 0.0

        self._raster: RasterTarget | None = None
        self._context: AudioContext | None = None
        self._buffer: AudioBuffer | None = None
        self._source: AudioBufferSource | None = None
        self._recorder: MediaRecorder | None = None
        self._draw_task: asyncio.Task[None] | None = None

    @property
    def status(self) -> CaptureStatus:
        return self.job.status

    def claim(self) -> None:
        """Take exclusive hold of the output target.

        Raises:
            CaptureInProgressError: If another session holds it
        """
        self.target.acquire(self)

    def release(self) -> None:
        self.target.release(self)

    def cancel(self) -> None:
        """Stop recording early. The job ends FAILED with CaptureCancelled."""
        self._cancelled = True
        self._stop.set()

    async def run(self) -> CaptureJob:
        """Execute the export.

        Returns:
            The finished CaptureJob (COMPLETED or FAILED)

        Raises:
            CaptureInProgressError: If the target is already being captured.
                The job stays IDLE.
        """
        if self.job.status is not CaptureStatus.IDLE:
            raise RuntimeError("capture session can only run once")
        self.claim()
        try:
            await self._prime()
            await self._record()
            artifact = await self._finalize()
            self.job.complete(artifact)
            logger.info(
                "Capture %s completed: %s (%d bytes)",
                self.job.id, artifact.filename, artifact.size,
            )
        except (CaptureError, MetadataUnavailable) as e:
            logger.warning("Capture %s failed: %s: %s", self.job.id, type(e).__name__, e)
            self.job.fail(e)
        except BaseException as e:
            # Unexpected errors and task cancellation still end the job.
            logger.exception("Capture %s aborted", self.job.id)
            self.job.fail(e)
            raise
        finally:
            await self._cleanup()
            self.release()
        return self.job

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _prime(self) -> None:
        self._set_status(CaptureStatus.PRIMING)

        self.video.pause()
        self.audio.pause()
        self.video.current_time = 0.0
        self.audio.current_time = 0.0

        video_duration = self.video.duration
        if video_duration is None:
            raise MetadataUnavailable("video duration unknown")
        if not self.video.width or not self.video.height:
            raise MetadataUnavailable("video resolution unknown")
        if self.rates is None:
            if self.audio.duration is None:
                raise MetadataUnavailable("dub audio duration unknown")
            self.rates = compute_rates(video_duration, self.audio.duration)

        self.job.target_duration_seconds = video_duration / self.rates.video_rate
        self._raster = RasterTarget(self.video.width, self.video.height)
        self._context = self._audio_context_factory(self.sample_rate)

        try:
            data = await self.audio.fetch_bytes()
        except OSError as e:
            raise DecodeFailure(f"could not fetch dub audio: {e}") from e
        self._buffer = await self._context.decode_audio_data(data)
        logger.info(
            "Capture %s primed: target %.3fs, video %.2fx, audio %.2fx, %.3fs of samples",
            self.job.id, self.job.target_duration_seconds,
            self.rates.video_rate, self.rates.audio_rate, self._buffer.duration,
        )

    async def _record(self) -> None:
        assert self._context is not None and self._raster is not None
        assert self._buffer is not None and self.rates is not None
        self._set_status(CaptureStatus.RECORDING)

        destination = self._context.create_media_stream_destination()
        self._source = self._context.create_buffer_source(self._buffer)
        self._source.playback_rate = self.rates.audio_rate
        self._source.connect(destination)
        self._source.start()

        self._recorder = self._recorder_factory(
            self._raster.capture_stream(self.fps), destination
        )
        await self._recorder.start()

        self.video.playback_rate = self.rates.video_rate
        self.video.play()
        self._started_at = self._clock()
        self._draw_task = asyncio.get_running_loop().create_task(self._draw_loop())

        try:
            await self._poll_until_target()
            self._stop.set()
            await asyncio.wait([self._draw_task])
            error = self._draw_task.exception()
            if error is not None:
                raise error
            if self._cancelled:
                raise CaptureCancelled(
                    f"cancelled after {self.job.elapsed_seconds:.2f}s "
                    f"of {self.job.target_duration_seconds:.2f}s"
                )
            await self._write_remaining_frames()
        finally:
            await self._stop_recording()

    async def _finalize(self) -> CaptureArtifact:
        assert self._recorder is not None
        self._set_status(CaptureStatus.FINALIZING)
        try:
            data = await self._recorder.finalize()
        except OSError as e:
            raise RecorderFailure(str(e)) from e

        recorder = self._recorder
        return CaptureArtifact(
            data=data,
            filename=artifact_filename(self.target.name, recorder.container),
            container=recorder.container,
            video_codec=_CODEC_NAMES.get(recorder.video_codec, recorder.video_codec),
            audio_codec=_CODEC_NAMES.get(recorder.audio_codec, recorder.audio_codec),
        )

    # ------------------------------------------------------------------
    # Loops
    # ------------------------------------------------------------------

    async def _poll_until_target(self) -> None:
        """Fixed-interval stop check against the synchronized duration."""
        target = self.job.target_duration_seconds
        while True:
            elapsed = self._clock() - self._started_at
            progress = self.job.update_progress(elapsed)
            self._report_progress(progress)
            if elapsed >= target or self._stop.is_set():
                return
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue

    @property
    def frame_quota(self) -> int:
        """Frames that make up the synchronized duration at the capture rate."""
        return math.ceil(self.job.target_duration_seconds * self.fps)

    async def _draw_loop(self) -> None:
        """Draw video frames each tick while the recorder is active.

        Frames are pushed at a fixed cadence: each tick writes as many frames
        as needed to keep ``frames / fps`` level with elapsed wall-clock time.
        Frame ``n`` always shows the video at ``n / fps`` of output time, so
        an encoder that falls behind delays frames without shifting them.
        """
        assert self._recorder is not None
        frame_interval = 1.0 / self.fps
        try:
            while not self._stop.is_set() and self._recorder.state is RecorderState.RECORDING:
                elapsed = self._clock() - self._started_at
                due = min(math.floor(elapsed * self.fps) + 1, self.frame_quota)
                while self.job.frames_recorded < due and not self._stop.is_set():
                    await self._write_next_frame()

                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=frame_interval)
                except asyncio.TimeoutError:
                    continue
        except FFmpegError as e:
            self._stop.set()
            raise RecorderFailure(f"frame decode failed: {e}") from e
        except BaseException:
            # Wake the stop poll so the failure surfaces promptly.
            self._stop.set()
            raise

    async def _write_remaining_frames(self) -> None:
        """Bring the frame stream up to the full synchronized duration.

        The muxer trims audio to the video stream, whose length is its frame
        count. Frames the encoder could not take in real time are written
        here before the recorder stops.
        """
        missing = self.frame_quota - self.job.frames_recorded
        if missing <= 0:
            return
        logger.info(
            "Capture %s: encoder behind by %d frames, writing them before stop",
            self.job.id, missing,
        )
        try:
            while self.job.frames_recorded < self.frame_quota:
                await self._write_next_frame()
        except FFmpegError as e:
            raise RecorderFailure(f"frame decode failed: {e}") from e

    async def _write_next_frame(self) -> None:
        assert self._raster is not None and self._recorder is not None
        assert self.rates is not None
        position = self.job.frames_recorded / self.fps * self.rates.video_rate
        frame = await self.video.read_frame(position)
        if frame is not None:
            self._raster.draw(frame)
        await self._recorder.write_frame(self._raster.to_bytes())
        self.job.frames_recorded += 1

    async def _stop_recording(self) -> None:
        """Cancel the draw loop, stop the recorder and audio, pause video."""
        self._stop.set()
        if self._draw_task is not None:
            await asyncio.wait([self._draw_task])
        if self._recorder is not None:
            self._recorder.stop()
        if self._source is not None:
            self._source.stop()
        self.video.pause()
        logger.debug(
            "Capture %s stopped at %.3fs (%d frames)",
            self.job.id, self.job.elapsed_seconds, self.job.frames_recorded,
        )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def _cleanup(self) -> None:
        """Release everything the job owns. Runs on every exit path."""
        self._stop.set()
        if self._draw_task is not None and not self._draw_task.done():
            self._draw_task.cancel()
            await asyncio.wait([self._draw_task])
        if self._source is not None:
            self._source.stop()
        self.video.pause()
        self.audio.pause()

        if self._recorder is not None:
            await self._recorder.close()
        await self.video.release_frames()
        if self._context is not None:
            await self._context.close()

        self.video.current_time = 0.0
        self.audio.current_time = 0.0
        self._raster = None
        self._buffer = None
        self._source = None
        self._recorder = None
        self._context = None

    def _set_status(self, status: CaptureStatus) -> None:
        logger.debug("Capture %s: %s -> %s", self.job.id, self.job.status.value, status.value)
        self.job.status = status
        self._report_progress(self.job.progress)

    def _report_progress(self, progress: float) -> None:
        if self._progress_callback:
            self._progress_callback(progress, self.job.status.value)
