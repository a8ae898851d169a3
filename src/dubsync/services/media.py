"""Media service implementation using FFmpeg."""

import asyncio
import json
import logging
import math
import subprocess
from pathlib import Path

import numpy as np

from dubsync.config import settings
from dubsync.errors import FFmpegError
from dubsync.models.media import MediaInfo

logger = logging.getLogger(__name__)


def _parse_float(value: object) -> float | None:
    """Parse an ffprobe numeric field; 'N/A', inf and NaN become None."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _parse_frame_rate(rate: str) -> float | None:
    """Parse an ffprobe frame rate such as '30/1' or '30000/1001'."""
    if "/" not in rate:
        return _parse_float(rate)
    num, den = rate.split("/", 1)
    numerator = _parse_float(num)
    denominator = _parse_float(den)
    if numerator is None or denominator is None:
        return None
    return numerator / denominator


class MediaService:
    """FFmpeg-based media operations service."""

    def __init__(
        self,
        ffmpeg_bin: str | None = None,
        ffprobe_bin: str | None = None,
    ) -> None:
        self.ffmpeg_bin = ffmpeg_bin or settings.ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin or settings.ffprobe_bin

    async def get_media_info(self, path: Path) -> MediaInfo:
        """Extract media information using ffprobe.

        Args:
            path: Path to the media file

        Returns:
            MediaInfo with duration, resolution, fps, etc. ``duration_seconds``
            is None when the container does not report a finite duration.

        Raises:
            FFmpegError: If ffprobe cannot read the file
        """
        cmd = [
            self.ffprobe_bin,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run, cmd, capture_output=True, text=True
            )
        except OSError as e:
            raise FFmpegError(f"ffprobe could not be started: {e}") from e

        if result.returncode != 0:
            raise FFmpegError(f"ffprobe failed: {result.stderr}")

        data = json.loads(result.stdout or "{}")

        duration = _parse_float(data.get("format", {}).get("duration"))

        width = None
        height = None
        fps = None
        sample_rate = None

        for stream in data.get("streams", []):
            if stream.get("codec_type") == "video" and width is None:
                width = stream.get("width")
                height = stream.get("height")
                fps = _parse_frame_rate(stream.get("r_frame_rate", "0/1"))
                if duration is None:
                    duration = _parse_float(stream.get("duration"))
            elif stream.get("codec_type") == "audio" and sample_rate is None:
                sample_rate = int(stream.get("sample_rate", 0)) or None
                if duration is None:
                    duration = _parse_float(stream.get("duration"))

        return MediaInfo(
            duration_seconds=duration,
            width=width,
            height=height,
            fps=fps,
            sample_rate=sample_rate,
        )

    async def decode_audio(
        self,
        data: bytes,
        sample_rate: int,
        channels: int = 1,
    ) -> np.ndarray:
        """Decode an encoded audio file held in memory into PCM samples.

        Args:
            data: Complete encoded audio file (wav, mp3, ogg, ...)
            sample_rate: Output sample rate
            channels: Output channel count

        Returns:
            int16 array shaped ``(frames, channels)``

        Raises:
            FFmpegError: If ffmpeg rejects the input or produces no samples
        """
        cmd = [
            self.ffmpeg_bin,
            "-v", "error",
            "-i", "pipe:0",
            "-vn",
            "-f", "s16le",
            "-acodec", "pcm_s16le",
            "-ar", str(sample_rate),
            "-ac", str(channels),
            "pipe:1",
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run, cmd, input=data, capture_output=True
            )
        except OSError as e:
            raise FFmpegError(f"ffmpeg could not be started: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise FFmpegError(f"ffmpeg decode failed: {stderr[-1000:]}")
        if not result.stdout:
            raise FFmpegError("ffmpeg decode produced no samples")

        samples = np.frombuffer(result.stdout, dtype=np.int16)
        usable = len(samples) - len(samples) % channels
        logger.debug(
            "Decoded %d bytes into %d frames at %d Hz",
            len(data), usable // channels, sample_rate,
        )
        return samples[:usable].reshape(-1, channels)
