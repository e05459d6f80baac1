"""Job routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Path, UploadFile

from app.routes.dependencies import get_job_service
from app.schemas.error import ErrorResponse, JobConflictError, NoLeakNotFoundError
from app.schemas.job import ConvertResponse, JobStatusResponse
from app.services.jobs import JobService

router = APIRouter(tags=["Jobs"])


@router.post(
    "/convert",
    response_model=ConvertResponse,
    responses={
        400: {"model": ErrorResponse},
        409: {"model": JobConflictError},
        413: {"model": ErrorResponse},
    },
)
@router.post("/convert-hls", response_model=ConvertResponse, include_in_schema=False)
async def convert(
    video: Annotated[UploadFile, File()],
    user_id: Annotated[str, Form(alias="userId", min_length=1)],
    service: Annotated[JobService, Depends(get_job_service)],
    video_id: Annotated[str | None, Form(alias="videoId")] = None,
    caption: Annotated[str | None, Form()] = None,
) -> ConvertResponse:
    return await service.submit(upload=video, owner_id=user_id, video_id=video_id, caption=caption)


@router.get(
    "/job/{jobId}/status",
    response_model=JobStatusResponse,
    responses={404: {"model": NoLeakNotFoundError}},
)
async def get_job_status(
    job_id: Annotated[str, Path(alias="jobId")],
    service: Annotated[JobService, Depends(get_job_service)],
) -> JobStatusResponse:
    return service.get_status(job_id)
