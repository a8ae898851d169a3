"""Tests for drift correction."""

import pytest
import pytest_asyncio

from dubsync.sync.drift import DriftCorrector

from conftest import FakeMediaService, audio_info, video_info


@pytest_asyncio.fixture
async def pair(make_tracks, media_files):
    video_path, audio_path = media_files
    media = FakeMediaService({"clip.mp4": video_info(10.0), "dub.wav": audio_info(20.0)})
    video, audio = make_tracks(media)
    await video.load(video_path)
    await audio.load(audio_path)
    return video, audio


class TestDivergence:
    def test_fractional_progress(self) -> None:
        assert DriftCorrector.divergence(5.0, 10.0, 10.0, 20.0) == 0.0
        assert DriftCorrector.divergence(5.0, 10.0, 8.0, 20.0) == pytest.approx(0.1)


class TestDriftCorrector:
    @pytest.mark.asyncio
    async def test_within_tolerance_untouched(self, pair) -> None:
        video, audio = pair
        video.current_time = 5.0
        audio.current_time = 10.5  # 2.5% ahead
        corrector = DriftCorrector(tolerance=0.05)
        assert corrector.correct(video, audio) is False
        assert audio.current_time == 10.5
        assert corrector.corrections == 0

    @pytest.mark.asyncio
    async def test_exactly_at_tolerance_untouched(self, pair) -> None:
        video, audio = pair
        video.current_time = 5.0
        audio.current_time = 12.5  # 12.5% ahead
        assert DriftCorrector(tolerance=0.125).correct(video, audio) is False
        assert audio.current_time == 12.5

    @pytest.mark.asyncio
    async def test_beyond_tolerance_resyncs_audio(self, pair) -> None:
        video, audio = pair
        video.current_time = 5.0
        audio.current_time = 14.0  # 20% ahead
        corrector = DriftCorrector(tolerance=0.05)
        assert corrector.correct(video, audio) is True
        assert audio.current_time == pytest.approx(10.0)
        assert video.current_time == 5.0
        assert corrector.corrections == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("audio_position", [0.0, 4.0, 9.0, 10.0, 12.0, 19.0, 20.0])
    async def test_corrects_iff_beyond_tolerance(self, pair, audio_position: float) -> None:
        video, audio = pair
        video.current_time = 5.0
        audio.current_time = audio_position
        drift = DriftCorrector.divergence(5.0, 10.0, audio_position, 20.0)
        corrector = DriftCorrector(tolerance=0.05)
        corrected = corrector.correct(video, audio)
        assert corrected is (drift > 0.05)
        after = DriftCorrector.divergence(
            video.current_time, 10.0, audio.current_time, 20.0
        )
        assert after <= 0.05

    @pytest.mark.asyncio
    async def test_unknown_duration_is_noop(self, make_tracks, media_files) -> None:
        video_path, _ = media_files
        media = FakeMediaService({"clip.mp4": video_info(10.0)})
        video, audio = make_tracks(media)
        await video.load(video_path)
        assert DriftCorrector().correct(video, audio) is False
