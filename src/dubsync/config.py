"""Configuration management for dubsync."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Directories
    upload_dir: Path = Path("./uploads")
    output_dir: Path = Path("./outputs")
    temp_dir: Path = Path("./temp")

    # External binaries
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # Synchronization
    rate_epsilon: float = 1e-3
    drift_tolerance: float = 0.05
    time_update_interval: float = 0.25
    metadata_timeout: float = 10.0

    # Capture / export
    capture_fps: int = 30
    capture_sample_rate: int = 24000
    capture_poll_interval: float = 0.1
    export_container: str = "webm"
    export_video_codec: str = "libvpx-vp9"
    export_audio_codec: str = "libopus"
    export_prefix: str = "dubbed_"
    audio_only_prefix: str = "audio_only_"

    # Jobs
    max_concurrent_jobs: int = 2

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
