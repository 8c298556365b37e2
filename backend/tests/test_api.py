"""
Tests for API endpoints.
Uses httpx AsyncClient for testing FastAPI routes.
"""
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.base import ProviderStatus
from app.auth import dependencies
from app.config import settings
from app.models.asset import Asset
from app.models.generation_job import JobKind
from app.models.user import User
from app.services.credit_service import CreditService

from tests.conftest import CDN_URL, EPHEMERAL_IMAGE_URL, completed

NANO_BANANA = "fal-ai/nano-banana-pro"  # 4 credits per image


async def submit(client: AsyncClient, **parameters):
    parameters.setdefault("prompt", "a fox in the snow")
    return await client.post(
        "/api/generations",
        json={"kind": "image", "model": NANO_BANANA, "parameters": parameters},
    )


class TestRootEndpoint:
    """Tests for root endpoint."""

    @pytest.mark.asyncio
    async def test_root_returns_info(self, client: AsyncClient):
        """Test root endpoint returns API info."""
        response = await client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Cinevido Generation API"
        assert "version" in data

    @pytest.mark.asyncio
    async def test_health_reports_database(self, client: AsyncClient):
        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["database"] == "connected"
        assert data["provider"] in ("configured", "not_configured")


class TestGenerationEndpoints:
    """Tests for generation endpoints."""

    @pytest.mark.asyncio
    async def test_submit_success(self, client: AsyncClient, db_session: AsyncSession, test_user: User):
        response = await submit(client, num_images=2)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "processing"
        assert data["credits_charged"] == 8
        assert data["model"] == NANO_BANANA
        assert data["external_id"] == "req-1"
        assert await CreditService.get_balance(db_session, test_user.id) == 2

    @pytest.mark.asyncio
    async def test_submit_insufficient_credits(self, client: AsyncClient):
        response = await submit(client, num_images=3)

        assert response.status_code == 402
        detail = response.json()["detail"]
        assert detail["required"] == 12
        assert detail["available"] == 10

    @pytest.mark.asyncio
    async def test_submit_invalid_parameters(self, client: AsyncClient):
        response = await submit(client, num_images=9)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_submit_unknown_kind(self, client: AsyncClient):
        response = await client.post("/api/generations", json={"kind": "hologram", "parameters": {}})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_submit_requires_platform_access(self, no_access_client: AsyncClient):
        response = await submit(no_access_client)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_submit_provider_unavailable(self, client: AsyncClient, unavailable_provider):
        response = await submit(client)

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_models_catalog(self, client: AsyncClient):
        response = await client.get("/api/generations/models")

        assert response.status_code == 200
        data = response.json()
        assert {model["id"] for model in data["image"]} >= {NANO_BANANA}
        assert "video" in data

    @pytest.mark.asyncio
    async def test_poll_until_completed(self, client: AsyncClient, fake_provider, db_session: AsyncSession):
        job_id = (await submit(client)).json()["job_id"]

        fake_provider.statuses = [ProviderStatus(status="processing", progress=40)]
        response = await client.get(f"/api/generations/{job_id}")
        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        assert response.json()["progress"] == 40

        fake_provider.statuses = [completed(EPHEMERAL_IMAGE_URL)]
        response = await client.get(f"/api/generations/{job_id}")
        data = response.json()
        assert data["status"] == "completed"
        assert data["progress"] == 100
        assert data["output"]["url"].startswith(f"{CDN_URL}/images/")

        asset = await db_session.get(Asset, data["output"]["assetId"])
        assert asset.source_job_id == job_id

    @pytest.mark.asyncio
    async def test_poll_unknown_job(self, client: AsyncClient):
        response = await client.get("/api/generations/does-not-exist")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_poll_other_users_job(
        self, other_client: AsyncClient, generation_service, db_session: AsyncSession, test_user: User
    ):
        result = await generation_service.submit(
            db_session, test_user, JobKind.IMAGE, NANO_BANANA, {"prompt": "private"}
        )

        response = await other_client.get(f"/api/generations/{result['job_id']}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_list_and_filter(self, client: AsyncClient):
        await submit(client)
        await submit(client)

        response = await client.get("/api/generations", params={"status": "processing", "kind": "image"})
        assert response.status_code == 200
        assert len(response.json()) == 2

        response = await client.get("/api/generations", params={"status": "completed"})
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_list_limit_bounds(self, client: AsyncClient):
        response = await client.get("/api/generations", params={"limit": 101})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, fake_provider, db_session: AsyncSession, test_user: User):
        job_id = (await submit(client)).json()["job_id"]

        response = await client.post(f"/api/generations/{job_id}/cancel")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["error"] == "Cancelled by user"
        assert len(fake_provider.cancelled) == 1
        # No refund on cancel
        assert await CreditService.get_balance(db_session, test_user.id) == 6


class TestAssetEndpoints:
    """Tests for asset endpoints."""

    async def _completed_job(self, client: AsyncClient, fake_provider) -> dict:
        job_id = (await submit(client)).json()["job_id"]
        fake_provider.statuses = [completed(EPHEMERAL_IMAGE_URL)]
        return (await client.get(f"/api/generations/{job_id}")).json()

    @pytest.mark.asyncio
    async def test_list_assets(self, client: AsyncClient, fake_provider):
        job = await self._completed_job(client, fake_provider)

        response = await client.get("/api/assets", params={"type": "image"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["source_job_id"] == job["job_id"]
        assert data["items"][0]["metadata"]["batchSize"] == 1

        response = await client.get("/api/assets", params={"type": "video"})
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_get_and_delete_asset(self, client: AsyncClient, fake_provider, fake_s3):
        job = await self._completed_job(client, fake_provider)
        asset_id = job["output"]["assetId"]

        response = await client.get(f"/api/assets/{asset_id}")
        assert response.status_code == 200
        assert response.json()["storage_url"] == job["output"]["url"]

        response = await client.delete(f"/api/assets/{asset_id}")
        assert response.status_code == 204
        assert fake_s3.objects == {}

        response = await client.get(f"/api/assets/{asset_id}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_get_other_users_asset(
        self, other_client: AsyncClient, db_session: AsyncSession, test_user: User
    ):
        asset = Asset(
            id="asset-private",
            owner_id=test_user.id,
            type="image",
            storage_url=f"{CDN_URL}/images/{test_user.id}/a.png",
            filename="a.png",
            asset_metadata={},
        )
        db_session.add(asset)
        await db_session.commit()

        response = await other_client.get("/api/assets/asset-private")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_upload(self, client: AsyncClient, fake_s3, test_user: User):
        response = await client.post(
            "/api/assets/upload",
            files={"file": ("photo.png", b"\x89PNG fake", "image/png")},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "image"
        assert data["source_job_id"] is None
        assert data["storage_url"].startswith(f"{CDN_URL}/images/{test_user.id}/upload-")
        assert data["metadata"]["original_filename"] == "photo.png"
        assert len(fake_s3.objects) == 1

    @pytest.mark.asyncio
    async def test_upload_rejects_unsupported_type(self, client: AsyncClient):
        response = await client.post(
            "/api/assets/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400


class TestAccountEndpoints:
    """Tests for credit balance and admin grants."""

    @pytest.mark.asyncio
    async def test_credits(self, client: AsyncClient, test_user: User):
        response = await client.get("/api/me/credits")

        assert response.status_code == 200
        data = response.json()
        assert data["credits"] == 10
        assert data["user_id"] == test_user.id
        assert data["is_admin"] is False
        assert data["has_platform_access"] is True

    @pytest.mark.asyncio
    async def test_admin_grants_credits(self, admin_client: AsyncClient, test_user: User):
        response = await admin_client.post(
            f"/api/admin/users/{test_user.id}/credits",
            json={"amount": 5, "reason": "support ticket"},
        )

        assert response.status_code == 200
        assert response.json() == {"user_id": test_user.id, "credits": 15}

    @pytest.mark.asyncio
    async def test_admin_grant_unknown_user(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/admin/users/nobody/credits", json={"amount": 5})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_grant_requires_admin(self, client: AsyncClient, test_user: User):
        response = await client.post(f"/api/admin/users/{test_user.id}/credits", json={"amount": 5})

        assert response.status_code == 403


class TestAuthentication:
    """Tests for Firebase principal resolution."""

    @pytest.mark.asyncio
    async def test_first_sign_in_grants_trial_credits(self, db_session: AsyncSession, monkeypatch):
        monkeypatch.setattr(
            dependencies, "verify_firebase_token",
            lambda token: {"uid": "firebase-newcomer", "email": "new@example.com"},
        )
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token")

        user = await dependencies.get_current_user(credentials, db_session)
        again = await dependencies.get_current_user(credentials, db_session)

        assert user.credits == settings.trial_credits
        assert user.has_platform_access is False
        assert again.id == user.id

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, db_session: AsyncSession, monkeypatch):
        def reject(token):
            raise ValueError("Token expired")

        monkeypatch.setattr(dependencies, "verify_firebase_token", reject)
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="token")

        with pytest.raises(HTTPException) as exc_info:
            await dependencies.get_current_user(credentials, db_session)
        assert exc_info.value.status_code == 401
