"""
Asset service: records for generated and uploaded media.

Assets are only created once their content exists at a fetchable URL
(durable storage, or the provider URL for degraded migrations).
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.asset import Asset, AssetType
from app.models.base import generate_uuid
from app.models.user import User
from app.services.exceptions import InvalidRequest, NotFound, Unauthorized
from app.storage.migrator import AssetMigrator, get_asset_migrator
from app.utils.logging import log_asset_created, log_asset_deleted

logger = logging.getLogger(__name__)

# Direct upload content types -> (asset type, extension)
UPLOAD_CONTENT_TYPES = {
    "image/jpeg": (AssetType.IMAGE, "jpg"),
    "image/png": (AssetType.IMAGE, "png"),
    "image/webp": (AssetType.IMAGE, "webp"),
    "image/gif": (AssetType.IMAGE, "gif"),
    "audio/mpeg": (AssetType.AUDIO, "mp3"),
    "audio/wav": (AssetType.AUDIO, "wav"),
    "audio/x-wav": (AssetType.AUDIO, "wav"),
    "video/mp4": (AssetType.VIDEO, "mp4"),
    "video/webm": (AssetType.VIDEO, "webm"),
}


def asset_folder(asset_type: AssetType, owner_id: str) -> str:
    """Storage folder for an owner's assets of one type, e.g. images/<owner>."""
    return f"{AssetType(asset_type).value}s/{owner_id}"


class AssetService:
    """Create, read and delete assets. Ownership is checked on every read and delete."""

    def __init__(self, migrator: Optional[AssetMigrator] = None):
        self._migrator = migrator

    @property
    def migrator(self) -> AssetMigrator:
        if self._migrator is None:
            self._migrator = get_asset_migrator()
        return self._migrator

    @staticmethod
    def create(
        db: AsyncSession,
        owner_id: str,
        asset_type: AssetType,
        storage_url: str,
        filename: str,
        source_job_id: Optional[str] = None,
        prompt: Optional[str] = None,
        provider_model: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Asset:
        """
        Add an asset record to the session. The caller commits.

        The id is assigned here so callers can reference it before flushing.
        """
        asset = Asset(
            id=generate_uuid(),
            owner_id=owner_id,
            type=AssetType(asset_type).value,
            storage_url=storage_url,
            filename=filename,
            source_job_id=source_job_id,
            prompt=prompt,
            provider_model=provider_model,
            asset_metadata=metadata or {},
        )
        db.add(asset)
        return asset

    @staticmethod
    async def get(db: AsyncSession, user: User, asset_id: str) -> Asset:
        """
        Fetch an asset the caller may access.

        Raises:
            NotFound: No such asset
            Unauthorized: Caller is neither the owner nor an admin
        """
        result = await db.execute(select(Asset).where(Asset.id == asset_id))
        asset = result.scalar_one_or_none()

        if not asset:
            raise NotFound("Asset not found")
        if asset.owner_id != user.id and not user.is_admin:
            raise Unauthorized("Not authorized to access this asset")
        return asset

    @staticmethod
    async def list_for_owner(
        db: AsyncSession,
        owner_id: str,
        asset_type: Optional[str] = None,
        source_job_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Asset], int]:
        """
        Assets for an owner, newest first.

        Returns:
            (page of assets, total matching count)
        """
        conditions = [Asset.owner_id == owner_id]
        if asset_type:
            conditions.append(Asset.type == asset_type)
        if source_job_id:
            conditions.append(Asset.source_job_id == source_job_id)

        total = await db.scalar(select(func.count()).select_from(Asset).where(*conditions))

        result = await db.execute(
            select(Asset)
            .where(*conditions)
            .order_by(Asset.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def delete(self, db: AsyncSession, user: User, asset_id: str) -> None:
        """
        Delete an asset record and, when we host it, the stored object.

        Storage cleanup is best-effort: the record is deleted even if the
        object removal fails.

        Raises:
            NotFound: No such asset
            Unauthorized: Caller is neither the owner nor an admin
        """
        asset = await self.get(db, user, asset_id)
        storage_url = asset.storage_url

        await db.delete(asset)
        await db.commit()

        storage_removed = False
        try:
            storage_removed = await self.migrator.remove(storage_url)
        except Exception as e:
            logger.warning(f"Failed to remove stored object for asset {asset_id}: {e}")

        log_asset_deleted(logger, asset_id=asset_id, user_id=user.id, storage_removed=storage_removed)

    async def upload(
        self,
        db: AsyncSession,
        user: User,
        data: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> Asset:
        """
        Store an uploaded file and create its asset.

        Raises:
            InvalidRequest: Empty, too large, or unsupported content type
            MigrationFailed: Storage write failed
        """
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in UPLOAD_CONTENT_TYPES:
            raise InvalidRequest(f"Unsupported file type: {content_type or 'unknown'}")
        if not data:
            raise InvalidRequest("Uploaded file is empty")
        if len(data) > settings.max_upload_bytes:
            raise InvalidRequest(
                f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB"
            )

        asset_type, extension = UPLOAD_CONTENT_TYPES[content_type]
        stored_name = f"upload-{generate_uuid()}.{extension}"

        storage_url = await self.migrator.store_bytes(
            data, asset_folder(asset_type, user.id), stored_name, content_type
        )

        asset = self.create(
            db,
            owner_id=user.id,
            asset_type=asset_type,
            storage_url=storage_url,
            filename=stored_name,
            metadata={
                "original_filename": filename,
                "content_type": content_type,
                "size_bytes": len(data),
            },
        )
        await db.commit()

        log_asset_created(logger, asset_id=asset.id, user_id=user.id, asset_type=asset.type)
        return asset
