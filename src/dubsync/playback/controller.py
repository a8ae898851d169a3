"""Interactive playback of a video with its dub audio."""

from __future__ import annotations

import logging

from dubsync.capture.target import CaptureTarget
from dubsync.models.sync import DurationPair, SyncRates, SyncState, SyncTelemetry
from dubsync.playback.events import Subscription, TrackEvent, TrackEventType
from dubsync.playback.track import AudioTrack, VideoTrack
from dubsync.sync.drift import DriftCorrector
from dubsync.sync.probe import DurationProbe
from dubsync.sync.rates import compute_rates

logger = logging.getLogger(__name__)


class PlaybackController:
    """Owns play/pause/seek for the video and dub audio pair.

    Rates come from the resolved durations; until they resolve both tracks
    play at 1.0. The video is the reference: its TIME_UPDATE ticks drive drift
    correction and its ENDED notification stops the pair.

    Usage::

        async with PlaybackController(video, audio) as controller:
            controller.toggle_play()
    """

    def __init__(
        self,
        video: VideoTrack,
        audio: AudioTrack | None = None,
        state: SyncState | None = None,
        drift: DriftCorrector | None = None,
        capture_target: CaptureTarget | None = None,
        probe_timeout: float | None = None,
    ) -> None:
        self.video = video
        self.audio = audio
        self.state = state or SyncState()
        self.drift = drift or DriftCorrector()
        self.capture_target = capture_target
        self._probe = DurationProbe(
            video, audio, on_resolved=self.apply_durations, timeout=probe_timeout
        )
        self._subscriptions: list[Subscription] = []

    async def __aenter__(self) -> PlaybackController:
        self.attach()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.detach()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Subscribe to the video's notifications and start probing."""
        if self._subscriptions:
            return
        self._subscriptions.append(self.video.events.subscribe(self._on_video_event))
        if self.capture_target is not None:
            self.capture_target.add_listener(self._on_capture_changed)
        self._probe.start()

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
        if self.capture_target is not None:
            self.capture_target.remove_listener(self._on_capture_changed)
        self._probe.close()

    @property
    def has_dub(self) -> bool:
        return self.audio is not None and self.audio.has_source

    @property
    def capturing(self) -> bool:
        return self.capture_target is not None and self.capture_target.is_capturing

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    def apply_durations(self, pair: DurationPair) -> None:
        """Recompute and apply rates for a newly resolved duration pair."""
        self.state.video_duration = pair.video_duration
        self.state.audio_duration = pair.audio_duration

        if pair.video_duration and pair.audio_duration:
            rates = compute_rates(pair.video_duration, pair.audio_duration)
            # A dub replaces the original speech.
            self.video.muted = True
            self.state.is_muted = True
        else:
            rates = SyncRates(1.0, 1.0)
            if not self.has_dub:
                self.video.muted = False
                self.state.is_muted = False

        self.state.apply(rates)
        self.video.playback_rate = rates.video_rate
        if self.audio is not None:
            self.audio.playback_rate = rates.audio_rate
        logger.info("Rates applied: %s", self.state.telemetry().label)

    def telemetry(self) -> SyncTelemetry:
        return self.state.telemetry()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def toggle_play(self) -> bool:
        """Play or pause both tracks together.

        Returns:
            Whether the pair is now playing
        """
        if self.capturing:
            logger.info("Ignoring play toggle while exporting")
            self.state.is_playing = False
            return False

        if not self.video.paused:
            self.video.pause()
            if self.has_dub:
                self.audio.pause()
        else:
            self.video.play()
            if self.has_dub:
                self.audio.play()
        # The video refuses to play without a source.
        self.state.is_playing = not self.video.paused
        return self.state.is_playing

    def seek(self, percent: float) -> None:
        """Move both tracks to the same fraction of their own durations."""
        if not 0 <= percent <= 100:
            raise ValueError(f"seek percent must be within [0, 100], got {percent}")
        if self.capturing:
            logger.info("Ignoring seek while exporting")
            return

        fraction = percent / 100
        video_duration = self.video.duration
        if video_duration is None:
            return
        self.video.current_time = fraction * video_duration
        if self.has_dub and self.audio.duration is not None:
            self.audio.current_time = fraction * self.audio.duration

    def toggle_mute(self) -> bool:
        """Flip the video's own audio. Timing is unaffected."""
        self.video.muted = not self.video.muted
        self.state.is_muted = self.video.muted
        return self.state.is_muted

    @property
    def progress(self) -> float:
        """Video position as percent of its duration."""
        duration = self.video.duration
        if not duration:
            return 0.0
        return self.video.current_time / duration * 100

    def on_track_ended(self) -> None:
        self.state.is_playing = False
        if self.audio is not None:
            self.audio.pause()
            self.audio.current_time = 0.0

    def _on_video_event(self, event: TrackEvent) -> None:
        if self.capturing:
            return
        if event.type is TrackEventType.ENDED:
            self.on_track_ended()
        elif event.type is TrackEventType.TIME_UPDATE:
            if self.state.is_playing and self.has_dub:
                self.drift.correct(self.video, self.audio)

    def _on_capture_changed(self, capturing: bool) -> None:
        # An export pauses and rewinds the shared tracks.
        if capturing and self.state.is_playing:
            logger.info("Export started on the preview tracks; preview paused")
            self.state.is_playing = False
