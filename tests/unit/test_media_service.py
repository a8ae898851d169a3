"""Tests for MediaService ffprobe/ffmpeg wrappers."""

import json
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import numpy as np
import pytest

from dubsync.errors import FFmpegError
from dubsync.services.media import MediaService, _parse_frame_rate


def _completed(stdout, returncode: int = 0, stderr="") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def _probe_json(format_duration="12.5", streams=None) -> str:
    return json.dumps({
        "format": {"duration": format_duration},
        "streams": streams if streams is not None else [
            {"codec_type": "video", "width": 1280, "height": 720, "r_frame_rate": "30000/1001"},
            {"codec_type": "audio", "sample_rate": "48000"},
        ],
    })


class TestGetMediaInfo:
    @pytest.mark.asyncio
    async def test_parses_video(self) -> None:
        with patch("asyncio.to_thread", new=AsyncMock(return_value=_completed(_probe_json()))):
            info = await MediaService(ffprobe_bin="ffprobe").get_media_info(Path("/m/clip.mp4"))

        assert info.duration_seconds == 12.5
        assert info.resolution == "1280x720"
        assert info.fps == pytest.approx(29.97, abs=0.01)
        assert info.sample_rate == 48000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["N/A", "inf", "0", None])
    async def test_unreported_duration_is_none(self, raw) -> None:
        stdout = _probe_json(format_duration=raw, streams=[{"codec_type": "audio", "sample_rate": "24000"}])
        with patch("asyncio.to_thread", new=AsyncMock(return_value=_completed(stdout))):
            info = await MediaService().get_media_info(Path("/m/dub.webm"))
        assert info.duration_seconds is None
        assert not info.has_duration

    @pytest.mark.asyncio
    async def test_falls_back_to_stream_duration(self) -> None:
        stdout = _probe_json(
            format_duration="N/A",
            streams=[{"codec_type": "audio", "sample_rate": "24000", "duration": "3.25"}],
        )
        with patch("asyncio.to_thread", new=AsyncMock(return_value=_completed(stdout))):
            info = await MediaService().get_media_info(Path("/m/dub.wav"))
        assert info.duration_seconds == 3.25

    @pytest.mark.asyncio
    async def test_ffprobe_failure(self) -> None:
        result = _completed("", returncode=1, stderr="Invalid data found")
        with patch("asyncio.to_thread", new=AsyncMock(return_value=result)):
            with pytest.raises(FFmpegError, match="Invalid data"):
                await MediaService().get_media_info(Path("/m/bad.mp4"))

    @pytest.mark.asyncio
    async def test_missing_binary(self) -> None:
        with patch("asyncio.to_thread", new=AsyncMock(side_effect=FileNotFoundError("ffprobe"))):
            with pytest.raises(FFmpegError):
                await MediaService().get_media_info(Path("/m/clip.mp4"))


class TestDecodeAudio:
    @pytest.mark.asyncio
    async def test_returns_frames_by_channels(self) -> None:
        pcm = np.arange(10, dtype=np.int16).tobytes()
        mock = AsyncMock(return_value=_completed(pcm, stderr=b""))
        with patch("asyncio.to_thread", new=mock):
            samples = await MediaService(ffmpeg_bin="ffmpeg").decode_audio(b"RIFF", 8000, channels=2)

        assert samples.shape == (5, 2)
        assert samples.dtype == np.int16
        cmd = mock.call_args.args[1]
        assert cmd[cmd.index("-ar") + 1] == "8000"
        assert mock.call_args.kwargs["input"] == b"RIFF"

    @pytest.mark.asyncio
    async def test_decode_failure(self) -> None:
        result = _completed(b"", returncode=1, stderr=b"Invalid data found")
        with patch("asyncio.to_thread", new=AsyncMock(return_value=result)):
            with pytest.raises(FFmpegError):
                await MediaService().decode_audio(b"junk", 8000)

    @pytest.mark.asyncio
    async def test_no_output(self) -> None:
        with patch("asyncio.to_thread", new=AsyncMock(return_value=_completed(b"", stderr=b""))):
            with pytest.raises(FFmpegError):
                await MediaService().decode_audio(b"RIFF", 8000)


class TestParseFrameRate:
    def test_fraction(self) -> None:
        assert _parse_frame_rate("25/1") == 25.0

    def test_zero_denominator(self) -> None:
        assert _parse_frame_rate("0/0") is None
