"""Off-screen raster target that capture frames are drawn into."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class CaptureStream:
    """Format of the frame stream a raster target produces."""

    width: int
    height: int
    fps: int
    pix_fmt: str = "rgb24"

    @property
    def frame_size(self) -> int:
        return self.width * self.height * 3


class RasterTarget:
    """An RGB frame buffer at the video's native resolution."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid raster size {width}x{height}")
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width, 3), dtype=np.uint8)
        self.draw_count = 0

    def draw(self, frame: np.ndarray) -> None:
        """Copy *frame* into the buffer, scaling by nearest neighbour if needed."""
        if frame.shape[:2] != (self.height, self.width):
            rows = np.arange(self.height) * frame.shape[0] // self.height
            cols = np.arange(self.width) * frame.shape[1] // self.width
            frame = frame[rows][:, cols]
        np.copyto(self.pixels, frame[..., :3])
        self.draw_count += 1

    def capture_stream(self, fps: int) -> CaptureStream:
        return CaptureStream(self.width, self.height, fps)

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()
