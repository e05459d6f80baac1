"""Application configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    service_name: str = "reels-transcoder"
    version: str = "1.0.0"
    log_level: str = "INFO"

    cdn_base_url: str = "http://127.0.0.1:9000/reels-local"

    storage_provider: Literal["memory", "s3"] = "s3"
    s3_endpoint_url: str | None = None
    s3_region: str = "us-east-1"
    s3_bucket: str = "reels-local"
    s3_access_key: str | None = None
    s3_secret_key: str | None = None
    s3_object_acl: str | None = "public-read"

    push_provider: Literal["log", "firebase"] = "log"

    uploads_dir: Path = Path("data/uploads")
    output_dir: Path = Path("data/output")
    max_upload_bytes: int = 500 * 1024 * 1024

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    encoder_preset: str = "veryfast"
    encoder_crf: int = 23
    encoder_threads: int = 2
    max_muxing_queue_size: int = 1024

    max_concurrent_jobs: int = 2
    job_retention_seconds: int = 3600

    model_config = SettingsConfigDict(env_prefix="REELS_", extra="ignore")

    @property
    def cdn_base(self) -> str:
        return self.cdn_base_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
