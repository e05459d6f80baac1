"""Job intake and status lookup."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from app.core.config import Settings
from app.core.logging_safety import safe_log_identifier
from app.domain.storage_layout import hls_url, thumbnail_url
from app.errors import ApiError
from app.repositories.memory import InMemoryStore, JobRecord
from app.schemas.job import ConvertResponse, JobOutputs, JobStatusResponse
from app.services.runner import JobRunner

logger = logging.getLogger(__name__)

_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
_SUFFIX_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,8}$")
_COPY_CHUNK_BYTES = 1024 * 1024


class JobService:
    def __init__(self, store: InMemoryStore, runner: JobRunner, settings: Settings) -> None:
        self._store = store
        self._runner = runner
        self._settings = settings

    def predict_outputs(self, job_id: str) -> JobOutputs:
        """URLs the finished package will be published under, known before any work."""
        cdn_base = self._settings.cdn_base
        return JobOutputs(hls_url=hls_url(cdn_base, job_id), thumbnail_url=thumbnail_url(cdn_base, job_id))

    async def submit(
        self,
        *,
        upload: UploadFile,
        owner_id: str,
        video_id: str | None,
        caption: str | None,
    ) -> ConvertResponse:
        content_type = (upload.content_type or "").lower()
        if not content_type.startswith("video/"):
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="Only video files are allowed",
                details={"content_type": content_type or None},
            )

        job_id = self._resolve_job_id(video_id)
        if self._store.is_active(job_id) or self._runner.is_running(job_id):
            raise ApiError(
                status_code=409,
                code="JOB_ALREADY_RUNNING",
                message="A job with this id is still processing",
                details={"job_id": job_id},
            )

        self._store.evict_finished(older_than=timedelta(seconds=self._settings.job_retention_seconds))

        outputs = self.predict_outputs(job_id)
        source_path = self._settings.uploads_dir / f"{job_id}{_safe_suffix(upload.filename)}"
        record = self._store.create_job(
            job_id=job_id,
            owner_id=owner_id,
            caption=caption,
            source_path=source_path,
            work_dir=self._settings.output_dir / job_id,
            outputs=outputs,
        )

        try:
            size = await self._save_upload(upload, source_path)
        except BaseException:
            source_path.unlink(missing_ok=True)
            self._store.discard_job(record.id)
            raise

        logger.info(
            "intake.accepted job_id=%s owner_id=%s size_bytes=%s",
            record.id,
            safe_log_identifier(owner_id, prefix="oid"),
            size,
        )
        self._runner.dispatch(record.id)
        return ConvertResponse(job_id=record.id, hls_url=outputs.hls_url, thumbnail_url=outputs.thumbnail_url)

    def get_status(self, job_id: str) -> JobStatusResponse:
        record = self._store.get_job(job_id)
        if record is None:
            raise ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")
        return self._to_status(record)

    @staticmethod
    def _resolve_job_id(video_id: str | None) -> str:
        candidate = (video_id or "").strip()
        if not candidate:
            return str(uuid4())
        if not _JOB_ID_PATTERN.match(candidate):
            raise ApiError(
                status_code=400,
                code="VALIDATION_ERROR",
                message="videoId may only contain letters, digits, '-' and '_' (max 128)",
            )
        return candidate

    async def _save_upload(self, upload: UploadFile, destination: Path) -> int:
        limit = self._settings.max_upload_bytes
        if upload.size is not None and upload.size > limit:
            raise _too_large(limit)

        # Disk I/O stays off the event loop.
        await asyncio.to_thread(destination.parent.mkdir, parents=True, exist_ok=True)
        written = 0
        handle = await asyncio.to_thread(open, destination, "wb")
        try:
            while chunk := await upload.read(_COPY_CHUNK_BYTES):
                written += len(chunk)
                if written > limit:
                    raise _too_large(limit)
                await asyncio.to_thread(handle.write, chunk)
        finally:
            await asyncio.to_thread(handle.close)
        return written

    @staticmethod
    def _to_status(record: JobRecord) -> JobStatusResponse:
        return JobStatusResponse(
            job_id=record.id,
            status=record.status,
            progress=record.progress,
            stage_progress=record.stage_progress,
            hls_url=record.outputs.hls_url,
            thumbnail_url=record.outputs.thumbnail_url,
            error=record.last_error,
            created_at=record.created_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
        )


def _safe_suffix(filename: str | None) -> str:
    suffix = Path(filename or "").suffix
    return suffix.lower() if _SUFFIX_PATTERN.match(suffix) else ".bin"


def _too_large(limit: int) -> ApiError:
    return ApiError(
        status_code=413,
        code="PAYLOAD_TOO_LARGE",
        message="Video exceeds the upload size limit",
        details={"max_bytes": limit},
    )
