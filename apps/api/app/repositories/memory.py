"""In-memory job table backing status lookups for the process lifetime."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

from app.domain.job_fsm import ensure_transition, is_terminal
from app.schemas.job import JobOutputs, JobStatus


@dataclass(slots=True)
class JobRecord:
    id: str
    owner_id: str
    caption: str | None
    source_path: Path
    work_dir: Path
    outputs: JobOutputs
    status: JobStatus
    created_at: datetime
    updated_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    progress: int = 0
    stage_progress: int = 0
    last_error: str | None = None
    failure_code: str | None = None


@dataclass(slots=True)
class InMemoryStore:
    """Simple, deterministic job registry. Jobs never share records."""

    jobs: dict[str, JobRecord] = field(default_factory=dict)
    job_write_count: int = 0

    def create_job(
        self,
        *,
        job_id: str,
        owner_id: str,
        caption: str | None,
        source_path: Path,
        work_dir: Path,
        outputs: JobOutputs,
    ) -> JobRecord:
        now = datetime.now(UTC)
        job = JobRecord(
            id=job_id,
            owner_id=owner_id,
            caption=caption,
            source_path=source_path,
            work_dir=work_dir,
            outputs=outputs,
            status=JobStatus.QUEUED,
            created_at=now,
            updated_at=now,
        )
        self.jobs[job.id] = job
        self.job_write_count += 1
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def discard_job(self, job_id: str) -> None:
        self.jobs.pop(job_id, None)

    def is_active(self, job_id: str) -> bool:
        job = self.jobs.get(job_id)
        return job is not None and not is_terminal(job.status)

    def active_job_count(self) -> int:
        return sum(1 for job in self.jobs.values() if not is_terminal(job.status))

    def transition_job_status(self, *, job: JobRecord, new_status: JobStatus) -> None:
        """Apply an FSM-validated status mutation with consistent write bookkeeping."""
        ensure_transition(job.status, new_status)
        now = datetime.now(UTC)
        job.status = new_status
        job.stage_progress = 0
        job.updated_at = now
        if new_status is JobStatus.TRANSCODING and job.started_at is None:
            job.started_at = now
        if is_terminal(new_status):
            job.completed_at = now
        if new_status is JobStatus.COMPLETED:
            job.progress = 100
            job.stage_progress = 100
        self.job_write_count += 1

    def update_progress(self, *, job: JobRecord, progress: float, stage_progress: float | None = None) -> None:
        """Record progress; values never move backwards while the job is live."""
        if is_terminal(job.status):
            return
        overall = _clamp_percent(progress)
        changed = False
        if overall > job.progress:
            job.progress = overall
            changed = True
        if stage_progress is not None:
            stage = _clamp_percent(stage_progress)
            if stage > job.stage_progress:
                job.stage_progress = stage
                changed = True
        if changed:
            job.updated_at = datetime.now(UTC)
            self.job_write_count += 1

    def mark_failed(self, *, job: JobRecord, code: str, message: str) -> None:
        self.transition_job_status(job=job, new_status=JobStatus.FAILED)
        job.failure_code = code
        job.last_error = message

    def evict_finished(self, *, older_than: timedelta, now: datetime | None = None) -> list[str]:
        """Drop terminal records whose completion is older than ``older_than``."""
        cutoff = (now or datetime.now(UTC)) - older_than
        evicted = [
            job_id
            for job_id, job in self.jobs.items()
            if is_terminal(job.status) and job.completed_at is not None and job.completed_at < cutoff
        ]
        for job_id in evicted:
            del self.jobs[job_id]
        return evicted


def _clamp_percent(value: float) -> int:
    return max(0, min(100, int(value)))
