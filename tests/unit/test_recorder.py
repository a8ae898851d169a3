"""Tests for the ffmpeg-backed recorder and its capture inputs."""

from pathlib import Path

import numpy as np
import pytest

from dubsync.capture.audio import AudioBuffer, AudioContext, AudioDestination
from dubsync.capture.raster import CaptureStream, RasterTarget
from dubsync.capture.recorder import MediaRecorder, RecorderState, atempo_chain
from dubsync.errors import DecodeFailure, FFmpegError, RecorderFailure

from conftest import FakeMediaService


class TestAtempoChain:
    def test_identity(self) -> None:
        assert atempo_chain(1.0) == "anull"

    def test_single_stage(self) -> None:
        assert atempo_chain(1.5) == "atempo=1.500000"

    def test_splits_large_factor(self) -> None:
        assert atempo_chain(5.0) == "atempo=2.0,atempo=2.0,atempo=1.250000"

    def test_splits_small_factor(self) -> None:
        assert atempo_chain(0.2) == "atempo=0.5,atempo=0.5,atempo=0.800000"

    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            atempo_chain(0)


class TestMediaRecorder:
    def _recorder(self, tmp_path: Path, rate: float = 1.0) -> MediaRecorder:
        destination = AudioDestination(tmp_path / "dub.pcm", 24000)
        destination.playback_rate = rate
        return MediaRecorder(CaptureStream(640, 360, 30), destination, ffmpeg_bin="ffmpeg")

    def test_build_command(self, tmp_path: Path) -> None:
        recorder = self._recorder(tmp_path, rate=2.0)
        cmd = recorder.build_command()

        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-s") + 1] == "640x360"
        assert cmd[cmd.index("-r") + 1] == "30"
        assert "pipe:0" in cmd
        assert str(tmp_path / "dub.pcm") in cmd
        assert cmd[cmd.index("-filter:a") + 1] == "atempo=2.000000"
        assert cmd[cmd.index("-c:v") + 1] == "libvpx-vp9"
        assert cmd[cmd.index("-c:a") + 1] == "libopus"
        assert "-shortest" in cmd
        assert cmd[-1].endswith("capture.webm")

    @pytest.mark.asyncio
    async def test_start_requires_audio(self, tmp_path: Path) -> None:
        recorder = self._recorder(tmp_path)
        with pytest.raises(RecorderFailure):
            await recorder.start()
        assert recorder.state is RecorderState.INACTIVE
        await recorder.close()

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path: Path) -> None:
        destination = AudioDestination(tmp_path / "dub.pcm", 24000)
        destination.ready = True
        recorder = MediaRecorder(
            CaptureStream(4, 4, 30), destination, ffmpeg_bin=str(tmp_path / "no-ffmpeg")
        )
        with pytest.raises(RecorderFailure):
            await recorder.start()
        await recorder.close()

    @pytest.mark.asyncio
    async def test_finalize_before_start(self, tmp_path: Path) -> None:
        recorder = self._recorder(tmp_path)
        with pytest.raises(RecorderFailure):
            await recorder.finalize()
        await recorder.close()


class TestRasterTarget:
    def test_draw_native_size(self) -> None:
        raster = RasterTarget(4, 2)
        raster.draw(np.full((2, 4, 3), 7, dtype=np.uint8))
        assert raster.to_bytes() == bytes([7]) * 24
        assert raster.draw_count == 1

    def test_draw_scales_to_target(self) -> None:
        raster = RasterTarget(4, 2)
        frame = np.zeros((4, 8, 3), dtype=np.uint8)
        frame[:, 4:] = 255
        raster.draw(frame)
        assert raster.pixels[:, :2].max() == 0
        assert raster.pixels[:, 2:].min() == 255

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            RasterTarget(0, 10)

    def test_capture_stream(self) -> None:
        stream = RasterTarget(6, 4).capture_stream(25)
        assert stream == CaptureStream(6, 4, 25)
        assert stream.frame_size == 72


class TestAudioContext:
    @pytest.mark.asyncio
    async def test_decode_and_play_into_destination(self) -> None:
        context = AudioContext(8000, media_service=FakeMediaService(decoded_frames=800))
        buffer = await context.decode_audio_data(b"RIFF")
        assert buffer.duration == pytest.approx(0.1)

        destination = context.create_media_stream_destination()
        source = context.create_buffer_source(buffer)
        source.playback_rate = 1.25
        source.connect(destination)
        source.start()

        assert destination.ready
        assert destination.playback_rate == 1.25
        assert destination.path.stat().st_size == 800 * 2

        source.stop()
        assert source.stopped
        assert destination.path.stat().st_size == 800 * 2

        await context.close()
        assert context.closed
        assert not destination.path.exists()

    @pytest.mark.asyncio
    async def test_decode_errors_are_decode_failures(self) -> None:
        context = AudioContext(8000, media_service=FakeMediaService(decode_error=FFmpegError("bad")))
        with pytest.raises(DecodeFailure):
            await context.decode_audio_data(b"garbage")
        with pytest.raises(DecodeFailure):
            await context.decode_audio_data(b"")
        await context.close()

    @pytest.mark.asyncio
    async def test_zero_samples(self) -> None:
        context = AudioContext(8000, media_service=FakeMediaService(decoded_frames=0))
        with pytest.raises(DecodeFailure):
            await context.decode_audio_data(b"RIFF")
        await context.close()

    @pytest.mark.asyncio
    async def test_closed_context_rejects_use(self) -> None:
        context = AudioContext(8000, media_service=FakeMediaService())
        await context.close()
        with pytest.raises(RuntimeError):
            context.create_media_stream_destination()

    @pytest.mark.asyncio
    async def test_source_requires_destination(self) -> None:
        context = AudioContext(8000, media_service=FakeMediaService())
        source = context.create_buffer_source(AudioBuffer(np.zeros((10, 1), dtype=np.int16), 8000))
        with pytest.raises(RuntimeError):
            source.start()
        source.stop()
        assert not source.stopped
        await context.close()
