"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.adapters.process import get_process_registry
from app.core.config import Settings, get_settings
from app.core.logging_setup import configure_logging
from app.errors import ApiError
from app.repositories.memory import InMemoryStore
from app.routes import jobs_router, system_router
from app.routes.dependencies import get_object_storage, get_push_transport
from app.schemas.error import ErrorResponse
from app.services.cleanup import CleanupManager
from app.services.encoder import ResolutionEncoder
from app.services.notifications import NotificationDispatcher
from app.services.orchestrator import JobOrchestrator
from app.services.runner import JobRunner
from app.services.thumbnail import ThumbnailExtractor

logger = logging.getLogger(__name__)

_INTAKE_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", "/convert"),
    ("POST", "/convert-hls"),
}


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    app.state.started_at = time.monotonic()
    app.state.ffmpeg_status = "ready" if await app.state.encoder.check_installation() else "unavailable"
    logger.info(
        "service.started service=%s version=%s ffmpeg=%s storage=%s",
        settings.service_name,
        settings.version,
        app.state.ffmpeg_status,
        settings.storage_provider,
    )
    try:
        yield
    finally:
        # One shutdown hook reaches every live encoder; interrupted jobs end FAILED.
        app.state.process_registry.terminate_all()
        await app.state.job_runner.shutdown()
        logger.info("service.stopped service=%s", settings.service_name)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Reels Transcoder API", version=settings.version, lifespan=_lifespan)
    registry = get_process_registry()
    store = InMemoryStore()
    encoder = ResolutionEncoder.from_settings(settings, registry)
    storage = get_object_storage(settings)
    orchestrator = JobOrchestrator(
        store=store,
        encoder=encoder,
        thumbnails=ThumbnailExtractor(runner_factory=encoder.runner_factory, ffmpeg_path=settings.ffmpeg_path),
        storage=storage,
        notifier=NotificationDispatcher(get_push_transport(settings)),
        cleanup=CleanupManager(),
        cdn_base_url=settings.cdn_base,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.process_registry = registry
    app.state.encoder = encoder
    app.state.storage = storage
    app.state.job_runner = JobRunner(orchestrator, max_concurrent_jobs=settings.max_concurrent_jobs)

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        if (request.method.upper(), route_path) in _INTAKE_VALIDATION_PATHS:
            fields = sorted({str(error["loc"][-1]) for error in exc.errors() if error.get("loc")})
            payload = ErrorResponse(
                code="VALIDATION_ERROR",
                message="Invalid upload request",
                details={"fields": fields},
            )
            return JSONResponse(status_code=400, content=payload.model_dump())

        return await request_validation_exception_handler(request, exc)

    app.include_router(system_router)
    app.include_router(jobs_router)

    return app


app = create_app()
