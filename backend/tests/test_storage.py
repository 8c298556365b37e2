"""
Tests for R2 storage and asset migration.
"""
import httpx
import pytest

from app.config import settings
from app.services.exceptions import MigrationFailed
from app.storage.migrator import AssetMigrator
from app.storage.r2_client import R2Client, StorageError
from tests.conftest import CDN_URL, EPHEMERAL_IMAGE_URL


class TestR2Client:
    """Tests for R2Client."""

    def test_object_key_strips_slashes(self):
        assert R2Client.object_key("/images/user-1/", "a.png") == "images/user-1/a.png"
        assert R2Client.object_key("", "a.png") == "a.png"

    def test_key_from_url(self, r2_client):
        assert r2_client.key_from_url(f"{CDN_URL}/images/u/a.png") == "images/u/a.png"
        assert r2_client.key_from_url(EPHEMERAL_IMAGE_URL) is None
        # Prefix match must stop at a path boundary
        assert r2_client.key_from_url(f"{CDN_URL}evil/a.png") is None

    def test_upload_bytes(self, r2_client, fake_s3):
        url = r2_client.upload_bytes(b"data", "images/u", "a.png", "image/png")

        assert url == f"{CDN_URL}/images/u/a.png"
        assert fake_s3.objects["images/u/a.png"] == (b"data", "image/png")

    def test_upload_failure_raises_storage_error(self, r2_client, fake_s3):
        fake_s3.fail_uploads = True

        with pytest.raises(StorageError):
            r2_client.upload_bytes(b"data", "images/u", "a.png", "image/png")

    def test_unconfigured_without_public_url(self, fake_s3, monkeypatch):
        monkeypatch.setattr("app.storage.r2_client.settings.r2_public_url", "")
        storage = R2Client(client=fake_s3, bucket="test-bucket")

        assert storage.is_configured is False
        with pytest.raises(StorageError):
            storage.upload_bytes(b"data", "images/u", "a.png", "image/png")

    def test_delete_object(self, r2_client, fake_s3):
        fake_s3.objects["images/u/a.png"] = (b"data", "image/png")

        assert r2_client.delete_object("images/u/a.png") is True
        assert fake_s3.objects == {}


class TestAssetMigrator:
    """Tests for AssetMigrator."""

    @pytest.mark.asyncio
    async def test_migrate_copies_result(self, migrator, fake_s3):
        url = await migrator.migrate(EPHEMERAL_IMAGE_URL, "images/u", "image-1.png")

        assert url == f"{CDN_URL}/images/u/image-1.png"
        body, content_type = fake_s3.objects["images/u/image-1.png"]
        assert body.startswith(b"\x89PNG")
        assert content_type == "image/png"

    @pytest.mark.asyncio
    async def test_download_failure(self, migrator, fake_s3):
        with pytest.raises(MigrationFailed) as exc_info:
            await migrator.migrate("https://fal.media/files/missing.png", "images/u", "x.png")

        assert exc_info.value.source_url == "https://fal.media/files/missing.png"
        assert fake_s3.objects == {}

    @pytest.mark.asyncio
    async def test_upload_failure(self, migrator, fake_s3):
        fake_s3.fail_uploads = True

        with pytest.raises(MigrationFailed):
            await migrator.migrate(EPHEMERAL_IMAGE_URL, "images/u", "x.png")

    @pytest.mark.asyncio
    async def test_result_too_large(self, r2_client):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda r: httpx.Response(200, content=b"x" * 64)
        ))
        migrator = AssetMigrator(storage=r2_client, client=client, max_bytes=16)

        with pytest.raises(MigrationFailed):
            await migrator.migrate(EPHEMERAL_IMAGE_URL, "images/u", "x.png")
        await migrator.aclose()

    @pytest.mark.asyncio
    async def test_download_limit_defaults_to_setting(self, r2_client, monkeypatch):
        monkeypatch.setattr(settings, "migration_max_bytes", 16)
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda r: httpx.Response(200, content=b"x" * 64)
        ))
        migrator = AssetMigrator(storage=r2_client, client=client)

        assert migrator.max_bytes == 16
        with pytest.raises(MigrationFailed) as exc_info:
            await migrator.migrate(EPHEMERAL_IMAGE_URL, "images/u", "x.png")
        assert "too large" in exc_info.value.message
        await migrator.aclose()

    @pytest.mark.asyncio
    async def test_remove_only_touches_own_urls(self, migrator, fake_s3):
        fake_s3.objects["images/u/a.png"] = (b"data", "image/png")

        assert await migrator.remove(EPHEMERAL_IMAGE_URL) is False
        assert "images/u/a.png" in fake_s3.objects

        assert await migrator.remove(f"{CDN_URL}/images/u/a.png") is True
        assert fake_s3.objects == {}

    @pytest.mark.asyncio
    async def test_store_bytes(self, migrator, fake_s3):
        url = await migrator.store_bytes(b"abc", "images/u", "upload.png", "image/png")

        assert url == f"{CDN_URL}/images/u/upload.png"
        assert fake_s3.objects["images/u/upload.png"] == (b"abc", "image/png")
