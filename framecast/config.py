import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"

    # Storage
    output_dir: str = "output"
    work_dir: str = str(Path(tempfile.gettempdir()) / "framecast")
    # Keep a failed job's scratch directory around for inspection
    keep_failed_workdirs: bool = False

    # Render settings
    font_file: str | None = None
    render_fps: int = 25
    max_image_inputs: int = 64
    max_overlay_inputs: int = 16
    video_pix_fmt: str = "yuv420p"
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"

    # Encoder negotiation
    use_hardware_encoding: bool = True
    encoder_backend: Literal["nvidia", "amd", "intel", "software"] | None = None
    probe_timeout_seconds: float = 10.0

    # Cancellation only flags the job unless this is set
    terminate_on_cancel: bool = False

    # Remote assets
    prefetch_remote_assets: bool = False
    http_timeout_seconds: float = 30.0

    # Concurrency / retry
    max_concurrency: int = 4
    rate_limit_per_minute: int = 60
    retry_max_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_backoff_multiplier: float = 2.0
    retry_max_delay: float = 30.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
