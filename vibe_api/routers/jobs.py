from __future__ import annotations

from fastapi import APIRouter, Depends

from vibe_api.container import AppServices
from vibe_api.dependencies import get_services
from vibe_api.middleware.error_handler import AppError
from vibe_api.schemas.common import JobStatusResponse

router = APIRouter(tags=["Jobs"])


@router.get("/jobs/{task_id}", response_model=JobStatusResponse)
async def get_job_status(task_id: str, services: AppServices = Depends(get_services)) -> JobStatusResponse:
    if services.jobs is None:
        raise AppError("Background jobs are not configured", error_code="JOBS_DISABLED", status_code=503)
    return JobStatusResponse(**await services.jobs.status(task_id))
