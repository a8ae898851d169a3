"""Media tracks driven by a monotonic clock.

A track plays its source at ``playback_rate`` and reports progress through
its ``events`` channel, the way a host media element would: LOADED_METADATA
once the duration is known, TIME_UPDATE at a fixed cadence while playing,
ENDED when the position reaches the duration.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path

import numpy as np

from dubsync.config import settings
from dubsync.errors import FFmpegError
from dubsync.models.media import MediaInfo
from dubsync.models.track import TrackType
from dubsync.playback.events import EventChannel, TrackEvent, TrackEventType
from dubsync.services.frames import FrameReader
from dubsync.services.interfaces import IFrameReader, IMediaService
from dubsync.services.media import MediaService

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
FrameReaderFactory = Callable[[Path, int, int, float], IFrameReader]


class MediaTrack:
    """Base class for a playable media source."""

    kind: TrackType = TrackType.VIDEO

    def __init__(
        self,
        media_service: IMediaService | None = None,
        clock: Clock = time.monotonic,
        time_update_interval: float | None = None,
    ) -> None:
        self.events = EventChannel()
        self.muted = False
        self._media = media_service or MediaService()
        self._clock = clock
        self._interval = time_update_interval or settings.time_update_interval
        self._source: Path | None = None
        self._info: MediaInfo | None = None
        self._settled = False
        self._rate = 1.0
        self._paused = True
        self._anchor_position = 0.0
        self._anchor_time = 0.0
        self._ticker: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Source lifecycle
    # ------------------------------------------------------------------

    @property
    def source(self) -> Path | None:
        return self._source

    @property
    def has_source(self) -> bool:
        return self._source is not None

    @property
    def info(self) -> MediaInfo | None:
        return self._info

    @property
    def metadata_settled(self) -> bool:
        """Whether the last load finished, with or without a duration."""
        return self._settled

    @property
    def duration(self) -> float | None:
        """Duration in seconds, once metadata has loaded."""
        if self._info is None or not self._info.has_duration:
            return None
        return self._info.duration_seconds

    async def load(self, source: Path | None) -> None:
        """Replace the track's source and probe its metadata.

        A probe failure leaves the duration unknown and emits ERROR; it
        never raises.
        """
        self._reset()
        self._source = Path(source) if source is not None else None
        self.events.emit(TrackEvent(TrackEventType.SOURCE_CHANGED, self.kind))
        if self._source is None:
            return

        source_path = self._source
        try:
            info = await self._media.get_media_info(source_path)
        except (FFmpegError, OSError) as e:
            logger.warning("Could not read metadata for %s: %s", source_path.name, e)
            if self._source == source_path:
                self._settled = True
                self.events.emit(
                    TrackEvent(TrackEventType.ERROR, self.kind, message=str(e))
                )
            return

        if self._source != source_path:
            # Replaced while probing.
            return
        self._info = info
        self._settled = True
        if info.has_duration:
            logger.info(
                "%s metadata loaded: %s (%.3fs)",
                self.kind.value, source_path.name, info.duration_seconds,
            )
            self.events.emit(
                TrackEvent(
                    TrackEventType.LOADED_METADATA,
                    self.kind,
                    duration=info.duration_seconds,
                )
            )
        else:
            logger.warning("%s reports no finite duration", source_path.name)
            self.events.emit(
                TrackEvent(TrackEventType.ERROR, self.kind, message="no duration")
            )

    async def close(self) -> None:
        self._reset()
        self._source = None
        self.events.clear()

    def _reset(self) -> None:
        self._stop_ticker()
        self._info = None
        self._settled = False
        self._paused = True
        self._anchor_position = 0.0
        self._anchor_time = self._clock()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def current_time(self) -> float:
        if self._paused:
            return self._anchor_position
        position = self._anchor_position + (self._clock() - self._anchor_time) * self._rate
        duration = self.duration
        if duration is not None:
            position = min(position, duration)
        return position

    @current_time.setter
    def current_time(self, value: float) -> None:
        value = max(0.0, value)
        duration = self.duration
        if duration is not None:
            value = min(value, duration)
        self._anchor_position = value
        self._anchor_time = self._clock()

    @property
    def playback_rate(self) -> float:
        return self._rate

    @playback_rate.setter
    def playback_rate(self, rate: float) -> None:
        if rate <= 0:
            raise ValueError(f"playback rate must be positive, got {rate}")
        self._anchor_position = self.current_time
        self._anchor_time = self._clock()
        self._rate = rate

    def play(self) -> None:
        """Start playback. Must be called from a running event loop."""
        if not self._paused or self._source is None:
            return
        duration = self.duration
        if duration is not None and self._anchor_position >= duration:
            self._anchor_position = 0.0
        self._anchor_time = self._clock()
        self._paused = False
        self._ticker = asyncio.get_running_loop().create_task(self._tick())

    def pause(self) -> None:
        if self._paused:
            return
        self._anchor_position = self.current_time
        self._anchor_time = self._clock()
        self._paused = True
        self._stop_ticker()

    def _stop_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    async def _tick(self) -> None:
        while not self._paused:
            await asyncio.sleep(self._interval)
            if self._paused:
                return
            position = self.current_time
            duration = self.duration
            if duration is not None and position >= duration:
                self._anchor_position = duration
                self._paused = True
                self._ticker = None
                self.events.emit(
                    TrackEvent(TrackEventType.ENDED, self.kind, duration, duration)
                )
                return
            self.events.emit(
                TrackEvent(TrackEventType.TIME_UPDATE, self.kind, position, duration)
            )


class VideoTrack(MediaTrack):
    """The original video. Owns decodable frame data."""

    kind = TrackType.VIDEO

    def __init__(
        self,
        media_service: IMediaService | None = None,
        clock: Clock = time.monotonic,
        time_update_interval: float | None = None,
        frame_reader_factory: FrameReaderFactory = FrameReader,
    ) -> None:
        super().__init__(media_service, clock, time_update_interval)
        self._frame_reader_factory = frame_reader_factory
        self._frames: IFrameReader | None = None

    @property
    def width(self) -> int | None:
        return self._info.width if self._info else None

    @property
    def height(self) -> int | None:
        return self._info.height if self._info else None

    @property
    def fps(self) -> float:
        if self._info and self._info.fps:
            return self._info.fps
        return float(settings.capture_fps)

    async def read_frame(self, position: float | None = None) -> np.ndarray | None:
        """Decode the frame at *position*, or at the current playback position."""
        if self._source is None or not self.width or not self.height:
            return None
        if self._frames is None:
            self._frames = self._frame_reader_factory(
                self._source, self.width, self.height, self.fps
            )
        return await self._frames.frame_at(
            self.current_time if position is None else position
        )

    async def release_frames(self) -> None:
        if self._frames is not None:
            frames, self._frames = self._frames, None
            await frames.close()

    async def load(self, source: Path | None) -> None:
        await self.release_frames()
        await super().load(source)

    async def close(self) -> None:
        await self.release_frames()
        await super().close()


class AudioTrack(MediaTrack):
    """The dub audio. Owns decodable sample data."""

    kind = TrackType.AUDIO

    async def fetch_bytes(self) -> bytes:
        """Read the encoded audio file.

        Raises:
            FileNotFoundError: If the track has no source
            OSError: If the file cannot be read
        """
        if self._source is None:
            raise FileNotFoundError("audio track has no source")
        return await asyncio.to_thread(self._source.read_bytes)
