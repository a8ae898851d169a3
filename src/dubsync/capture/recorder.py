"""Multiplexing recorder backed by an ffmpeg process.

Raw frames are written to ffmpeg's stdin at the capture stream's fixed
cadence; the audio destination's PCM file is muxed alongside with its
playback rate applied as an ``atempo`` chain.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from enum import Enum
from pathlib import Path

from dubsync.capture.audio import AudioDestination
from dubsync.capture.raster import CaptureStream
from dubsync.config import settings
from dubsync.errors import RecorderFailure

logger = logging.getLogger(__name__)


class RecorderState(str, Enum):
    INACTIVE = "inactive"
    RECORDING = "recording"
    STOPPED = "stopped"


def atempo_chain(rate: float) -> str:
    """Build an atempo filter chain for *rate*.

    A single atempo stage only accepts 0.5-2.0, so larger factors are split.
    """
    if rate <= 0:
        raise ValueError(f"tempo must be positive, got {rate}")
    if abs(rate - 1.0) < 1e-9:
        return "anull"

    parts = []
    remaining = rate
    while remaining > 2.0:
        parts.append("atempo=2.0")
        remaining /= 2.0
    while remaining < 0.5:
        parts.append("atempo=0.5")
        remaining /= 0.5
    parts.append(f"atempo={remaining:.6f}")
    return ",".join(parts)


class MediaRecorder:
    """Record a frame stream and an audio destination into one container."""

    def __init__(
        self,
        stream: CaptureStream,
        audio: AudioDestination,
        container: str | None = None,
        video_codec: str | None = None,
        audio_codec: str | None = None,
        ffmpeg_bin: str | None = None,
    ) -> None:
        self.stream = stream
        self.audio = audio
        self.container = container or settings.export_container
        self.video_codec = video_codec or settings.export_video_codec
        self.audio_codec = audio_codec or settings.export_audio_codec
        self.ffmpeg_bin = ffmpeg_bin or settings.ffmpeg_bin
        self.state = RecorderState.INACTIVE
        self.frames_written = 0
        self._workdir = Path(tempfile.mkdtemp(prefix="dubsync-rec-"))
        self.output_path = self._workdir / f"capture.{self.container}"
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[bytes] | None = None

    def build_command(self) -> list[str]:
        """Build the ffmpeg mux command."""
        return [
            self.ffmpeg_bin, "-y",
            "-v", "error",
            "-nostats",
            # Video: raw frames on stdin
            "-f", "rawvideo",
            "-pix_fmt", self.stream.pix_fmt,
            "-s", f"{self.stream.width}x{self.stream.height}",
            "-r", str(self.stream.fps),
            "-i", "pipe:0",
            # Audio: decoded dub samples
            "-f", "s16le",
            "-ar", str(self.audio.sample_rate),
            "-ac", str(self.audio.channels),
            "-i", str(self.audio.path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-filter:a", atempo_chain(self.audio.playback_rate),
            "-c:v", self.video_codec,
            "-pix_fmt", "yuv420p",
            "-c:a", self.audio_codec,
            "-shortest",
            "-f", self.container,
            str(self.output_path),
        ]

    async def start(self) -> None:
        if self.state is not RecorderState.INACTIVE:
            raise RecorderFailure(f"recorder cannot start from {self.state.value}")
        if not self.audio.ready:
            raise RecorderFailure("audio destination has no samples")

        cmd = self.build_command()
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RecorderFailure(f"ffmpeg could not be started: {e}") from e

        assert self._process.stderr is not None
        self._stderr_task = asyncio.get_running_loop().create_task(
            self._process.stderr.read()
        )
        self.state = RecorderState.RECORDING
        logger.info(
            "Recorder started: %dx%d@%dfps, audio tempo %.3f",
            self.stream.width, self.stream.height, self.stream.fps,
            self.audio.playback_rate,
        )

    async def write_frame(self, frame: bytes) -> None:
        if self.state is not RecorderState.RECORDING or self._process is None:
            raise RecorderFailure("recorder is not recording")
        assert self._process.stdin is not None
        try:
            self._process.stdin.write(frame)
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise RecorderFailure(f"ffmpeg stopped accepting frames: {e}") from e
        self.frames_written += 1

    def stop(self) -> None:
        """Stop accepting frames. ``finalize()`` collects the output."""
        if self.state is not RecorderState.RECORDING:
            return
        self.state = RecorderState.STOPPED
        if self._process is not None and self._process.stdin is not None:
            self._process.stdin.close()

    async def finalize(self) -> bytes:
        """Wait for ffmpeg to flush and return the muxed container bytes.

        Raises:
            RecorderFailure: If ffmpeg exits with an error or writes nothing
        """
        if self._process is None:
            raise RecorderFailure("recorder was never started")
        self.stop()
        returncode = await self._process.wait()
        stderr = b""
        if self._stderr_task is not None:
            stderr = await self._stderr_task
        if returncode != 0:
            message = stderr.decode("utf-8", errors="replace")[-1000:]
            raise RecorderFailure(f"ffmpeg mux failed ({returncode}): {message}")
        if not self.output_path.exists() or self.output_path.stat().st_size == 0:
            raise RecorderFailure("ffmpeg produced an empty recording")

        data = await asyncio.to_thread(self.output_path.read_bytes)
        logger.info(
            "Recorder finalized: %d frames, %d bytes", self.frames_written, len(data)
        )
        return data

    async def close(self) -> None:
        """Kill ffmpeg if still running and delete the working directory."""
        process = self._process
        if process is not None and process.returncode is None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            process.kill()
            await process.wait()
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
        self.state = RecorderState.STOPPED
        shutil.rmtree(self._workdir, ignore_errors=True)
