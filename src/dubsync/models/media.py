"""Media metadata model."""

from pydantic import BaseModel, Field


class MediaInfo(BaseModel):
    """What ffprobe reports about a media file.

    ``duration_seconds`` is None when the container reports no finite,
    positive duration (live or damaged streams, some WebM/Opus files).
    """

    duration_seconds: float | None = Field(
        None, description="Total duration in seconds (None if not reported)"
    )
    width: int | None = Field(None, description="Video width in pixels")
    height: int | None = Field(None, description="Video height in pixels")
    fps: float | None = Field(None, description="Frames per second")
    sample_rate: int | None = Field(None, description="Audio sample rate in Hz")

    @property
    def has_duration(self) -> bool:
        return self.duration_seconds is not None and self.duration_seconds > 0

    @property
    def has_video(self) -> bool:
        return bool(self.width and self.height)

    @property
    def resolution(self) -> str | None:
        """Resolution such as '1920x1080'."""
        if self.has_video:
            return f"{self.width}x{self.height}"
        return None
