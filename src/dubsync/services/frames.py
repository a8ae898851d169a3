"""Sequential video frame decoding through an ffmpeg rawvideo pipe."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import numpy as np

from dubsync.config import settings
from dubsync.errors import FFmpegError

logger = logging.getLogger(__name__)


class FrameReader:
    """Decode frames of a video file in presentation order.

    Frames are RGB24 at the file's native resolution. Reading is forward-only;
    asking for an earlier position restarts the decoder from the beginning.
    """

    def __init__(
        self,
        path: Path,
        width: int,
        height: int,
        fps: float,
        ffmpeg_bin: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.width = width
        self.height = height
        self.fps = fps if fps and fps > 0 else float(settings.capture_fps)
        self.ffmpeg_bin = ffmpeg_bin or settings.ffmpeg_bin
        self._frame_size = width * height * 3
        self._process: asyncio.subprocess.Process | None = None
        self._current: np.ndarray | None = None
        self._next_index = 0
        self._eof = False

    @property
    def frames_read(self) -> int:
        return self._next_index

    async def frame_at(self, position: float) -> np.ndarray | None:
        """Return the latest frame with timestamp <= *position*.

        Returns the last decoded frame once the stream is exhausted, and None
        if nothing could be decoded at all.
        """
        if self._current is not None and position < (self._next_index - 1) / self.fps:
            await self.close()
            self._current = None
            self._next_index = 0
            self._eof = False

        while not self._eof and self._next_index / self.fps <= position:
            frame = await self._read_next()
            if frame is None:
                break
            self._current = frame

        return self._current

    async def close(self) -> None:
        """Terminate the decoder process if it is still running."""
        process = self._process
        self._process = None
        if process is None:
            return
        if process.returncode is None:
            process.kill()
        await process.wait()

    async def _open(self) -> asyncio.subprocess.Process:
        cmd = [
            self.ffmpeg_bin,
            "-v", "error",
            "-i", str(self.path),
            "-an",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "pipe:1",
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise FFmpegError(f"ffmpeg could not be started: {e}") from e
        logger.debug("Opened frame decoder for %s", self.path.name)
        return process

    async def _read_next(self) -> np.ndarray | None:
        if self._process is None:
            self._process = await self._open()
        assert self._process.stdout is not None
        try:
            data = await self._process.stdout.readexactly(self._frame_size)
        except asyncio.IncompleteReadError:
            self._eof = True
            logger.debug(
                "Frame decoder for %s exhausted after %d frames",
                self.path.name, self._next_index,
            )
            return None
        self._next_index += 1
        return np.frombuffer(data, dtype=np.uint8).reshape(self.height, self.width, 3)
