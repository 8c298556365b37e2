"""
Asset endpoints: list, read, delete, and direct upload of media.
All endpoints require Firebase JWT authentication.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.errors import to_http_exception
from app.auth.dependencies import get_current_user
from app.database import get_db
from app.models.asset import AssetType
from app.models.user import User
from app.schemas.asset import AssetListResponse, AssetResponse
from app.services.asset_service import AssetService
from app.services.exceptions import GenerationError

router = APIRouter()


def get_asset_service() -> AssetService:
    return AssetService()


@router.get("", response_model=AssetListResponse)
async def list_assets(
    type: Optional[AssetType] = None,
    source_job_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the caller's assets, newest first."""
    assets, total = await AssetService.list_for_owner(
        db,
        current_user.id,
        asset_type=type.value if type else None,
        source_job_id=source_job_id,
        limit=limit,
        offset=offset,
    )
    return AssetListResponse(
        items=[AssetResponse.model_validate(asset) for asset in assets],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/upload", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def upload_asset(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AssetService = Depends(get_asset_service),
):
    """
    Upload an image, audio or video file as a new asset.
    Max 10MB; the asset has no source job.
    """
    data = await file.read()
    try:
        asset = await service.upload(db, current_user, data, file.content_type, file.filename)
    except GenerationError as e:
        raise to_http_exception(e)

    return AssetResponse.model_validate(asset)


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        asset = await AssetService.get(db, current_user, asset_id)
    except GenerationError as e:
        raise to_http_exception(e)

    return AssetResponse.model_validate(asset)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AssetService = Depends(get_asset_service),
):
    """Delete an asset and its stored object."""
    try:
        await service.delete(db, current_user, asset_id)
    except GenerationError as e:
        raise to_http_exception(e)
