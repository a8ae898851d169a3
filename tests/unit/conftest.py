"""Shared fakes for dubsync unit tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
import pytest

from dubsync.capture.audio import AudioContext, AudioDestination
from dubsync.capture.raster import CaptureStream
from dubsync.capture.recorder import RecorderState
from dubsync.errors import FFmpegError, RecorderFailure
from dubsync.models.media import MediaInfo
from dubsync.playback.track import AudioTrack, VideoTrack


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMediaService:
    """MediaService stand-in keyed by file name.

    A name mapped to an exception raises it from ``get_media_info``; a name
    listed in ``gates`` blocks until that event is set.
    """

    def __init__(
        self,
        infos: dict[str, MediaInfo | Exception] | None = None,
        decoded_frames: int = 2400,
        decode_error: Exception | None = None,
    ) -> None:
        self.infos = infos or {}
        self.gates: dict[str, asyncio.Event] = {}
        self.decoded_frames = decoded_frames
        self.decode_error = decode_error
        self.probed: list[str] = []
        self.decoded: list[bytes] = []

    async def get_media_info(self, path: Path) -> MediaInfo:
        name = Path(path).name
        self.probed.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        info = self.infos.get(name)
        if info is None:
            raise FFmpegError(f"ffprobe failed: {name}")
        if isinstance(info, Exception):
            raise info
        return info

    async def decode_audio(self, data: bytes, sample_rate: int, channels: int = 1) -> np.ndarray:
        self.decoded.append(data)
        if self.decode_error is not None:
            raise self.decode_error
        return np.ones((self.decoded_frames, channels), dtype=np.int16)


class FakeFrameReader:
    """Returns a solid frame for every position."""

    instances: list[FakeFrameReader] = []

    def __init__(self, path: Path, width: int, height: int, fps: float) -> None:
        self.path = path
        self.width = width
        self.height = height
        self.fps = fps
        self.positions: list[float] = []
        self.closed = False
        FakeFrameReader.instances.append(self)

    async def frame_at(self, position: float) -> np.ndarray | None:
        self.positions.append(position)
        return np.full((self.height, self.width, 3), 128, dtype=np.uint8)

    async def close(self) -> None:
        self.closed = True


class FakeRecorder:
    """MediaRecorder stand-in that keeps written frames in memory."""

    def __init__(
        self,
        stream: CaptureStream,
        audio: AudioDestination,
        fail_on_write: bool = False,
        fail_on_finalize: bool = False,
        write_delay: float = 0.0,
    ) -> None:
        self.stream = stream
        self.audio = audio
        self.container = "webm"
        self.video_codec = "libvpx-vp9"
        self.audio_codec = "libopus"
        self.state = RecorderState.INACTIVE
        self.frames: list[int] = []
        self.fail_on_write = fail_on_write
        self.fail_on_finalize = fail_on_finalize
        self.write_delay = write_delay
        self.closed = False

    async def start(self) -> None:
        if not self.audio.ready:
            raise RecorderFailure("audio destination has no samples")
        self.state = RecorderState.RECORDING

    async def write_frame(self, frame: bytes) -> None:
        if self.fail_on_write:
            raise RecorderFailure("encoder crashed")
        if self.state is not RecorderState.RECORDING:
            raise RecorderFailure("recorder is not recording")
        if self.write_delay:
            # An encoder slower than the capture rate.
            await asyncio.sleep(self.write_delay)
        self.frames.append(len(frame))

    def stop(self) -> None:
        if self.state is RecorderState.RECORDING:
            self.state = RecorderState.STOPPED

    async def finalize(self) -> bytes:
        self.stop()
        if self.fail_on_finalize:
            raise RecorderFailure("ffmpeg mux failed (1)")
        return b"\x1aE\xdf\xa3" + bytes(len(self.frames))

    async def close(self) -> None:
        self.state = RecorderState.STOPPED
        self.closed = True


class RecorderFactory:
    """Builds FakeRecorders and remembers them."""

    def __init__(self, **options: float) -> None:
        self.options = options
        self.instances: list[FakeRecorder] = []

    def __call__(self, stream: CaptureStream, audio: AudioDestination) -> FakeRecorder:
        recorder = FakeRecorder(stream, audio, **self.options)
        self.instances.append(recorder)
        return recorder


class AudioContextFactory:
    """Builds AudioContexts on a fake media service and remembers them."""

    def __init__(self, media: FakeMediaService) -> None:
        self.media = media
        self.instances: list[AudioContext] = []

    def __call__(self, sample_rate: int) -> AudioContext:
        context = AudioContext(sample_rate, media_service=self.media)
        self.instances.append(context)
        return context


def video_info(duration: float | None, width: int = 8, height: int = 4, fps: float = 30.0) -> MediaInfo:
    return MediaInfo(duration_seconds=duration, width=width, height=height, fps=fps)


def audio_info(duration: float | None, sample_rate: int = 24000) -> MediaInfo:
    return MediaInfo(duration_seconds=duration, sample_rate=sample_rate)


async def settle(turns: int = 5) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(turns):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media_files(tmp_path: Path) -> tuple[Path, Path]:
    video = tmp_path / "clip.mp4"
    audio = tmp_path / "dub.wav"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    audio.write_bytes(b"RIFF\x24\x00\x00\x00WAVEfmt ")
    return video, audio


@pytest.fixture
def make_tracks(clock: FakeClock):
    """Build a video/audio track pair on a FakeMediaService and FakeClock."""

    def _make(media: FakeMediaService, fake_clock: bool = True) -> tuple[VideoTrack, AudioTrack]:
        kwargs = {"clock": clock} if fake_clock else {}
        video = VideoTrack(
            media_service=media,
            time_update_interval=3600,
            frame_reader_factory=FakeFrameReader,
            **kwargs,
        )
        audio = AudioTrack(media_service=media, time_update_interval=3600, **kwargs)
        return video, audio

    return _make
