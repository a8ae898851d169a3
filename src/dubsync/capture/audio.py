"""Audio processing context for capture.

The context decodes the dub audio into a directly addressable sample buffer
and plays it into a destination the recorder reads from. Playback rate is
applied by the recorder as a pitch-preserving tempo change.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from dubsync.config import settings
from dubsync.errors import DecodeFailure, FFmpegError
from dubsync.services.interfaces import IMediaService
from dubsync.services.media import MediaService

logger = logging.getLogger(__name__)


@dataclass
class AudioBuffer:
    """Decoded int16 PCM samples shaped ``(frames, channels)``."""

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return self.samples.shape[1]

    @property
    def frames(self) -> int:
        return self.samples.shape[0]

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate


class AudioDestination:
    """Sink a buffer source plays into; read by the recorder as raw PCM."""

    def __init__(self, path: Path, sample_rate: int, channels: int = 1) -> None:
        self.path = path
        self.sample_rate = sample_rate
        self.channels = channels
        self.playback_rate = 1.0
        self.ready = False


class AudioBufferSource:
    """Plays an AudioBuffer once into a connected destination."""

    def __init__(self, buffer: AudioBuffer) -> None:
        self.buffer = buffer
        self.playback_rate = 1.0
        self.destination: AudioDestination | None = None
        self.started = False
        self.stopped = False

    def connect(self, destination: AudioDestination) -> None:
        self.destination = destination

    def start(self) -> None:
        if self.destination is None:
            raise RuntimeError("buffer source is not connected")
        if self.started:
            raise RuntimeError("buffer source already started")
        self.destination.playback_rate = self.playback_rate
        self.destination.channels = self.buffer.channels
        self.buffer.samples.astype("<i2").tofile(self.destination.path)
        self.destination.ready = True
        self.started = True

    def stop(self) -> None:
        """Mark playback finished.

        The whole buffer is already in the destination once ``start()``
        returns, so nothing is truncated here. The recorded audio length is
        set by the muxer, which cuts the audio at the end of the frame stream.
        """
        if self.started:
            self.stopped = True


class AudioContext:
    """Processing context at a fixed sample rate. Close it when done."""

    def __init__(
        self,
        sample_rate: int | None = None,
        media_service: IMediaService | None = None,
    ) -> None:
        self.sample_rate = sample_rate or settings.capture_sample_rate
        self._media = media_service or MediaService()
        self._workdir = Path(tempfile.mkdtemp(prefix="dubsync-audio-"))
        self._closed = False
        self._destinations = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def decode_audio_data(self, data: bytes) -> AudioBuffer:
        """Decode a complete encoded audio file into a sample buffer.

        Raises:
            DecodeFailure: If the bytes are empty or cannot be decoded
        """
        self._check_open()
        if not data:
            raise DecodeFailure("dub audio is empty")
        try:
            samples = await self._media.decode_audio(data, self.sample_rate)
        except FFmpegError as e:
            raise DecodeFailure(str(e)) from e
        if samples.size == 0:
            raise DecodeFailure("dub audio decoded to zero samples")
        return AudioBuffer(samples=samples, sample_rate=self.sample_rate)

    def create_buffer_source(self, buffer: AudioBuffer) -> AudioBufferSource:
        self._check_open()
        return AudioBufferSource(buffer)

    def create_media_stream_destination(self) -> AudioDestination:
        self._check_open()
        self._destinations += 1
        path = self._workdir / f"destination_{self._destinations}.pcm"
        return AudioDestination(path, self.sample_rate)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        shutil.rmtree(self._workdir, ignore_errors=True)
        logger.debug("Audio context closed")

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("audio context is closed")
