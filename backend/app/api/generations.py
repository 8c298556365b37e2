"""
Generation endpoints: submit jobs, poll their status, list and cancel them.
All endpoints require Firebase JWT authentication; submission also requires platform access.

Status polling is caller-driven: each GET /generations/{job_id} on an unresolved
job performs at most one provider poll.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.catalog import list_models
from app.ai.factory import get_generation_provider
from app.api.errors import to_http_exception
from app.auth.dependencies import get_current_user, require_platform_access
from app.database import get_db
from app.models.generation_job import GenerationJob, JobKind, JobStatus
from app.models.user import User
from app.schemas.generation import (
    GenerationCreate,
    GenerationJobResponse,
    GenerationStatusResponse,
    GenerationSubmitResponse,
)
from app.services.exceptions import GenerationError
from app.services.generation_service import GenerationService
from app.storage.migrator import get_asset_migrator

logger = logging.getLogger(__name__)

router = APIRouter()


def get_generation_service() -> GenerationService:
    """Generation service wired to the shared provider and migrator."""
    return GenerationService(get_generation_provider(), get_asset_migrator())


def _status_response(job: GenerationJob) -> GenerationStatusResponse:
    return GenerationStatusResponse(
        job_id=job.id,
        kind=job.kind,
        status=job.status,
        progress=job.progress,
        output=job.output,
        error=job.error,
    )


@router.post("", response_model=GenerationSubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit_generation(
    request: GenerationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_platform_access),
    service: GenerationService = Depends(get_generation_service),
):
    """
    Submit a generation job.

    Credits are debited once, here. 402 carries the required and available amounts.
    """
    try:
        result = await service.submit(
            db,
            current_user,
            kind=request.kind,
            model_id=request.model,
            parameters=request.parameters,
        )
    except GenerationError as e:
        raise to_http_exception(e)

    return GenerationSubmitResponse(**result)


@router.get("/models")
async def get_models(current_user: User = Depends(get_current_user)):
    """Model catalog grouped by kind, with credit costs."""
    return list_models()


@router.get("", response_model=List[GenerationJobResponse])
async def list_generations(
    status_filter: Optional[JobStatus] = Query(None, alias="status"),
    kind: Optional[JobKind] = None,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
):
    """List the caller's jobs, newest first."""
    try:
        jobs = await service.list_jobs(
            db,
            current_user,
            status=status_filter.value if status_filter else None,
            kind=kind.value if kind else None,
            limit=limit,
        )
    except GenerationError as e:
        raise to_http_exception(e)

    return [GenerationJobResponse.model_validate(job) for job in jobs]


@router.get("/{job_id}", response_model=GenerationStatusResponse)
async def get_generation_status(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
):
    """
    Current status of a job.

    Unresolved jobs are advanced by one provider poll; resolved jobs are
    returned as stored.
    """
    try:
        job = await service.get_status(db, current_user, job_id)
    except GenerationError as e:
        raise to_http_exception(e)

    return _status_response(job)


@router.post("/{job_id}/cancel", response_model=GenerationStatusResponse)
async def cancel_generation(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: GenerationService = Depends(get_generation_service),
):
    """Cancel an unresolved job. Credits are not refunded."""
    try:
        job = await service.cancel(db, current_user, job_id)
    except GenerationError as e:
        raise to_http_exception(e)

    return _status_response(job)
