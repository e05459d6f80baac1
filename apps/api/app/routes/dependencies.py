"""Dependency wiring for routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from app.adapters.push import FirebasePushTransport, LoggingPushTransport, PushTransport
from app.adapters.storage import InMemoryObjectStorage, ObjectStorage, S3ObjectStorage
from app.core.config import Settings
from app.repositories.memory import InMemoryStore
from app.services.jobs import JobService
from app.services.runner import JobRunner


def get_object_storage(settings: Settings) -> ObjectStorage:
    """Resolve storage adapter from configuration."""
    if settings.storage_provider == "s3":
        return S3ObjectStorage.from_settings(settings)
    return InMemoryObjectStorage(acl=settings.s3_object_acl)


def get_push_transport(settings: Settings) -> PushTransport:
    """Resolve push transport from configuration."""
    if settings.push_provider == "firebase":
        return FirebasePushTransport()
    return LoggingPushTransport()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


def get_job_service(
    store: Annotated[InMemoryStore, Depends(get_store)],
    runner: Annotated[JobRunner, Depends(get_job_runner)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> JobService:
    return JobService(store, runner, settings)
