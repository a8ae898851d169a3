"""Duration probing for a video/dub-audio pair."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from dubsync.config import settings
from dubsync.models.sync import DurationPair
from dubsync.playback.events import Subscription, TrackEvent, TrackEventType
from dubsync.playback.track import AudioTrack, MediaTrack, VideoTrack

logger = logging.getLogger(__name__)

DurationCallback = Callable[[DurationPair], None]


class DurationProbe:
    """Resolve both durations once per source-pair change.

    A track whose metadata does not arrive within ``timeout`` seconds, or that
    reports a load error, resolves to None and synchronization degrades to
    rate 1.0 for the pair.
    """

    def __init__(
        self,
        video: VideoTrack,
        audio: AudioTrack | None = None,
        on_resolved: DurationCallback | None = None,
        timeout: float | None = None,
    ) -> None:
        self.video = video
        self.audio = audio
        self.on_resolved = on_resolved
        self.timeout = settings.metadata_timeout if timeout is None else timeout
        self._subscriptions: list[Subscription] = []
        self._task: asyncio.Task[None] | None = None
        self._pending_key: tuple[Path | None, Path | None] | None = None
        self._emitted_key: tuple[Path | None, Path | None] | None = None

    @property
    def source_key(self) -> tuple[Path | None, Path | None]:
        audio_source = self.audio.source if self.audio is not None else None
        return (self.video.source, audio_source)

    def start(self) -> None:
        """Watch both tracks for source changes and probe the current pair."""
        for track in (self.video, self.audio):
            if track is not None:
                self._subscriptions.append(track.events.subscribe(self._on_event))
        self.request()

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def request(self) -> None:
        """Schedule a probe unless this source pair was already handled."""
        key = self.source_key
        if key[0] is None or key == self._emitted_key or key == self._pending_key:
            return
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._pending_key = key
        self._task = asyncio.get_running_loop().create_task(self._run(key))

    async def resolve(self) -> DurationPair:
        """Wait for both durations of the current source pair."""
        video_duration = await self._await_duration(self.video)
        audio_duration = None
        if self.audio is not None and self.audio.has_source:
            audio_duration = await self._await_duration(self.audio)
        return DurationPair(video_duration, audio_duration)

    async def _run(self, key: tuple[Path | None, Path | None]) -> None:
        pair = await self.resolve()
        if key != self.source_key:
            return
        self._emitted_key = key
        self._pending_key = None
        logger.info(
            "Durations resolved: video=%s audio=%s",
            pair.video_duration, pair.audio_duration,
        )
        if self.on_resolved is not None:
            self.on_resolved(pair)

    def _on_event(self, event: TrackEvent) -> None:
        if event.type is TrackEventType.SOURCE_CHANGED:
            self._emitted_key = None
            self.request()

    async def _await_duration(self, track: MediaTrack) -> float | None:
        if track.duration is not None:
            return track.duration
        if track.metadata_settled:
            self._log_unavailable(track)
            return None

        future: asyncio.Future[float | None] = asyncio.get_running_loop().create_future()

        def _listener(event: TrackEvent) -> None:
            if future.done():
                return
            if event.type is TrackEventType.LOADED_METADATA:
                future.set_result(event.duration)
            elif event.type is TrackEventType.ERROR:
                future.set_result(None)

        with track.events.subscribe(_listener):
            try:
                duration = await asyncio.wait_for(future, self.timeout)
            except asyncio.TimeoutError:
                duration = None

        if duration is None:
            self._log_unavailable(track)
        return duration

    @staticmethod
    def _log_unavailable(track: MediaTrack) -> None:
        source = track.source.name if track.source else "<none>"
        logger.warning(
            "Metadata unavailable: %s duration never resolved for %s",
            track.kind.value, source,
        )
