"""Health and stats schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    ffmpeg: str
    timestamp: datetime


class MemoryStats(BaseModel):
    rss: int
    vms: int


class StatsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    pending_uploads: int
    processing_jobs: int
    active_jobs: int
    tracked_jobs: int
    uptime: float
    memory: MemoryStats
