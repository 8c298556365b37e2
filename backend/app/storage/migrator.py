"""
Asset migration from provider-hosted URLs into durable storage.

Provider result URLs are temporary. Before an asset record is created, the
result is downloaded and re-uploaded under a folder/filename chosen by the
caller. Failures raise MigrationFailed; the generation service decides what
to do with them (it keeps the provider URL and flags the asset).
"""
import asyncio
import logging
import time
from typing import Optional

import httpx

from app.config import settings
from app.services.exceptions import MigrationFailed
from app.storage.r2_client import R2Client, StorageError, get_r2_client
from app.utils.metrics import asset_migrations_total

logger = logging.getLogger(__name__)


class AssetMigrator:
    """Copies ephemeral provider results into R2 and returns permanent URLs."""

    def __init__(
        self,
        storage: Optional[R2Client] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_bytes: Optional[int] = None,
    ):
        self.storage = storage or get_r2_client()
        self._client = client or httpx.AsyncClient(
            timeout=settings.migration_timeout_seconds,
            follow_redirects=True,
        )
        self.max_bytes = max_bytes if max_bytes is not None else settings.migration_max_bytes

    async def migrate(
        self,
        ephemeral_url: str,
        destination_folder: str,
        filename: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Download ephemeral_url and store it as destination_folder/filename.

        Returns:
            Permanent URL under the storage public base

        Raises:
            MigrationFailed: Download or upload failed
        """
        start_time = time.time()
        data, detected_type = await self._download(ephemeral_url)

        try:
            permanent_url = await asyncio.to_thread(
                self.storage.upload_bytes,
                data,
                destination_folder,
                filename,
                content_type or detected_type or "application/octet-stream",
            )
        except StorageError as e:
            asset_migrations_total.labels(outcome="upload_failed").inc()
            raise MigrationFailed(str(e), source_url=ephemeral_url) from e

        asset_migrations_total.labels(outcome="migrated").inc()
        logger.info(
            f"Migrated provider result to {permanent_url}",
            extra={
                "event": "asset_migrated",
                "size_bytes": len(data),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return permanent_url

    async def store_bytes(self, data: bytes, destination_folder: str, filename: str, content_type: str) -> str:
        """Store bytes already in memory (direct uploads)."""
        try:
            return await asyncio.to_thread(
                self.storage.upload_bytes, data, destination_folder, filename, content_type
            )
        except StorageError as e:
            raise MigrationFailed(str(e)) from e

    async def remove(self, storage_url: str) -> bool:
        """Delete the object behind a URL we own. Foreign URLs are left alone."""
        object_key = self.storage.key_from_url(storage_url)
        if object_key is None:
            return False
        return await asyncio.to_thread(self.storage.delete_object, object_key)

    async def _download(self, url: str):
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    asset_migrations_total.labels(outcome="download_failed").inc()
                    raise MigrationFailed(f"Download failed: HTTP {response.status_code}", source_url=url)

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    self._too_large(url, int(declared))

                chunks = []
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > self.max_bytes:
                        self._too_large(url, size)
                    chunks.append(chunk)
                content_type = response.headers.get("content-type")
        except httpx.HTTPError as e:
            asset_migrations_total.labels(outcome="download_failed").inc()
            raise MigrationFailed(f"Download failed: {e}", source_url=url) from e

        return b"".join(chunks), content_type.split(";")[0].strip() if content_type else None

    def _too_large(self, url: str, size: int) -> None:
        asset_migrations_total.labels(outcome="too_large").inc()
        raise MigrationFailed(
            f"Result too large to migrate: {size} bytes exceeds {self.max_bytes}", source_url=url
        )

    async def aclose(self) -> None:
        await self._client.aclose()


_migrator: Optional[AssetMigrator] = None


def get_asset_migrator() -> AssetMigrator:
    """Process-wide migrator sharing one HTTP client."""
    global _migrator
    if _migrator is None:
        _migrator = AssetMigrator()
    return _migrator


async def close_asset_migrator() -> None:
    global _migrator
    if _migrator is not None:
        await _migrator.aclose()
    _migrator = None
