"""Job API schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    QUEUED = "queued"
    TRANSCODING = "transcoding"
    UPLOADING = "uploading"
    NOTIFYING = "notifying"
    COMPLETED = "completed"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobOutputs(_CamelModel):
    hls_url: str
    thumbnail_url: str


class ConvertResponse(_CamelModel):
    success: bool = True
    job_id: str
    status: str = "processing"
    message: str = "Video processing started in background"
    hls_url: str
    thumbnail_url: str


class JobStatusResponse(_CamelModel):
    job_id: str
    status: JobStatus
    progress: int
    stage_progress: int
    hls_url: str
    thumbnail_url: str
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
