"""Liveness and runtime statistics."""

from datetime import UTC, datetime
from pathlib import Path
import time
from typing import Annotated

import psutil
from fastapi import APIRouter, Depends, Request

from app.core.config import Settings
from app.repositories.memory import InMemoryStore
from app.routes.dependencies import get_app_settings, get_job_runner, get_store
from app.schemas.system import HealthResponse, MemoryStats, StatsResponse
from app.services.runner import JobRunner

router = APIRouter(tags=["System"])


def _count_entries(directory: Path) -> int:
    if not directory.is_dir():
        return 0
    return sum(1 for _ in directory.iterdir())


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=settings.version,
        ffmpeg=getattr(request.app.state, "ffmpeg_status", "unknown"),
        timestamp=datetime.now(UTC),
    )


@router.get("/stats", response_model=StatsResponse)
async def stats(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
    store: Annotated[InMemoryStore, Depends(get_store)],
    runner: Annotated[JobRunner, Depends(get_job_runner)],
) -> StatsResponse:
    memory = psutil.Process().memory_info()
    started_at = getattr(request.app.state, "started_at", None)
    return StatsResponse(
        pending_uploads=_count_entries(settings.uploads_dir),
        processing_jobs=_count_entries(settings.output_dir),
        active_jobs=runner.active_count,
        tracked_jobs=len(store.jobs),
        uptime=0.0 if started_at is None else time.monotonic() - started_at,
        memory=MemoryStats(rss=memory.rss, vms=memory.vms),
    )
