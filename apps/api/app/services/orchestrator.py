"""Per-job pipeline: encode, assemble, extract, upload, notify, clean up."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Sequence

from app.adapters.storage import ObjectStorage
from app.core.logging_safety import safe_log_identifier
from app.domain.renditions import DEFAULT_LADDER, RenditionSpec
from app.domain.storage_layout import hls_prefix
from app.errors import PipelineError, TranscodeFailedError
from app.repositories.memory import InMemoryStore, JobRecord
from app.schemas.job import JobStatus
from app.services.cleanup import CleanupManager
from app.services.encoder import ENCODE_PROGRESS_SPAN, ResolutionEncoder
from app.services.notifications import NotificationDispatcher, SuccessPayload
from app.services.playlist import assemble_master
from app.services.thumbnail import ThumbnailExtractor
from app.services.uploads import UploadClient

logger = logging.getLogger(__name__)

MANIFEST_DONE_PROGRESS = 85
THUMBNAIL_DONE_PROGRESS = 90
UPLOAD_PROGRESS_SPAN = 10


class JobOrchestrator:
    """Sole writer of a job's status and progress once it has been queued."""

    def __init__(
        self,
        *,
        store: InMemoryStore,
        encoder: ResolutionEncoder,
        thumbnails: ThumbnailExtractor,
        storage: ObjectStorage,
        notifier: NotificationDispatcher,
        cleanup: CleanupManager,
        cdn_base_url: str,
        ladder: Sequence[RenditionSpec] = DEFAULT_LADDER,
    ) -> None:
        self._store = store
        self._encoder = encoder
        self._thumbnails = thumbnails
        self._storage = storage
        self._notifier = notifier
        self._cleanup = cleanup
        self._cdn_base_url = cdn_base_url
        self._ladder = tuple(ladder)

    async def run(self, job_id: str, *, admission: asyncio.Semaphore | None = None) -> JobStatus | None:
        """Drive one job to a terminal status.

        ``admission`` bounds how many pipelines execute at once; a job waiting
        for a slot stays QUEUED.
        """
        job = self._store.get_job(job_id)
        if job is None:
            logger.warning("job.missing job_id=%s", job_id)
            return None

        started = time.monotonic()
        try:
            async with admission if admission is not None else contextlib.nullcontext():
                await self._execute(job)
            self._release_scratch(job)
            self._store.transition_job_status(job=job, new_status=JobStatus.COMPLETED)
            logger.info("job.completed job_id=%s elapsed=%.2f", job.id, time.monotonic() - started)
        except asyncio.CancelledError:
            self._release_scratch(job)
            self._store.mark_failed(job=job, code="INTERRUPTED", message="Job interrupted by service shutdown")
            logger.warning("job.interrupted job_id=%s status=%s", job.id, job.status)
            await self._notifier.notify_failure(job.owner_id, job.id, job.last_error or "")
            raise
        except PipelineError as exc:
            self._release_scratch(job)
            await self._fail(job, exc.code, exc.message, exc)
        except Exception as exc:
            logger.exception("job.unexpected_error job_id=%s", job.id)
            self._release_scratch(job)
            await self._fail(job, "INTERNAL_ERROR", str(exc) or type(exc).__name__, exc)
        return job.status

    async def _execute(self, job: JobRecord) -> None:
        self._store.transition_job_status(job=job, new_status=JobStatus.TRANSCODING)
        job.work_dir.mkdir(parents=True, exist_ok=True)
        logger.info("job.transcoding job_id=%s renditions=%s", job.id, len(self._ladder))

        def on_encode_progress(progress: float) -> None:
            self._store.update_progress(
                job=job,
                progress=progress,
                stage_progress=progress / ENCODE_PROGRESS_SPAN * 100,
            )

        await self._encoder.encode_ladder(job.source_path, job.work_dir, self._ladder, on_encode_progress)

        assemble_master(job.work_dir, self._ladder)
        self._store.update_progress(job=job, progress=MANIFEST_DONE_PROGRESS)

        await self._thumbnails.extract(job.source_path, job.work_dir)
        self._store.update_progress(job=job, progress=THUMBNAIL_DONE_PROGRESS, stage_progress=100)

        # Nothing is published until the full local package exists.
        self._store.transition_job_status(job=job, new_status=JobStatus.UPLOADING)

        def on_upload_progress(percent: float) -> None:
            self._store.update_progress(
                job=job,
                progress=THUMBNAIL_DONE_PROGRESS + percent * UPLOAD_PROGRESS_SPAN / 100,
                stage_progress=percent,
            )

        uploader = UploadClient(self._storage, self._cdn_base_url)
        published_url = await uploader.upload_directory(job.work_dir, hls_prefix(job.id), on_upload_progress)
        if published_url != job.outputs.hls_url:
            logger.warning("job.url_mismatch job_id=%s predicted=%s published=%s", job.id, job.outputs.hls_url, published_url)

        self._store.transition_job_status(job=job, new_status=JobStatus.NOTIFYING)
        await self._notifier.notify_success(
            job.owner_id,
            SuccessPayload(
                job_id=job.id,
                hls_url=published_url,
                thumbnail_url=job.outputs.thumbnail_url,
                caption=job.caption,
            ),
        )

    async def _fail(self, job: JobRecord, code: str, message: str, exc: Exception) -> None:
        self._store.mark_failed(job=job, code=code, message=message)
        if isinstance(exc, TranscodeFailedError):
            logger.error(
                "job.failed job_id=%s code=%s rendition=%s exit_code=%s diagnostic=%r",
                job.id,
                code,
                exc.rendition,
                exc.exit_code,
                exc.diagnostic_tail,
            )
        else:
            logger.error("job.failed job_id=%s code=%s message=%s", job.id, code, message)
        await self._notifier.notify_failure(job.owner_id, job.id, message)

    def _release_scratch(self, job: JobRecord) -> bool:
        """Remove scratch state, retrying once; always called before the terminal write.

        Once a job is terminal its id may be resubmitted, and the new job reuses
        the same source path and work dir.
        """
        ok = self._cleanup.cleanup(job.source_path, job.work_dir)
        if not ok:
            ok = self._cleanup.cleanup(job.source_path, job.work_dir)
        logger.info(
            "job.cleanup job_id=%s owner_id=%s ok=%s",
            job.id,
            safe_log_identifier(job.owner_id, prefix="oid"),
            ok,
        )
        return ok
