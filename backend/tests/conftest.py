"""
Test configuration and fixtures.
Uses a per-test SQLite file via aiosqlite by default; set TEST_DATABASE_URL to
run against PostgreSQL instead. A file database (not :memory:) lets two
sessions race on the same job.
"""
import os
import uuid as uuid_module

# Set test environment before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_app.db")
os.environ["ENVIRONMENT"] = "test"

import httpx
import pytest
from typing import AsyncGenerator, List, Optional
from botocore.exceptions import ClientError

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.ai.base import GenerationProvider, ProviderStatus, ProviderSubmission
from app.models.base import Base
from app.models.user import User, UserRole
from app.services.exceptions import ProviderUnavailable
from app.services.generation_service import GenerationService
from app.storage.migrator import AssetMigrator
from app.storage.r2_client import R2Client

CDN_URL = "https://cdn.test"
EPHEMERAL_IMAGE_URL = "https://fal.media/files/elephant/result.png"


# ============================================================================
# Fakes
# ============================================================================

class FakeProvider(GenerationProvider):
    """
    Scripted provider. Each poll pops the next status; the last one repeats.
    poll_hook, if set, is awaited inside poll (used to line up concurrent polls).
    """

    name = "fake"

    def __init__(self):
        self.statuses: List[object] = [ProviderStatus(status="queued", progress=0)]
        self.submit_error: Optional[Exception] = None
        self.submitted = []
        self.poll_calls = 0
        self.cancelled = []
        self.poll_hook = None

    async def submit(self, model_id, payload):
        if self.submit_error:
            raise self.submit_error
        request_id = f"req-{len(self.submitted) + 1}"
        self.submitted.append((model_id, payload))
        base = f"https://queue.test/{model_id}/requests/{request_id}"
        return ProviderSubmission(
            request_id=request_id,
            status_url=f"{base}/status",
            response_url=base,
            cancel_url=f"{base}/cancel",
        )

    async def poll(self, status_url, response_url):
        self.poll_calls += 1
        if self.poll_hook is not None:
            await self.poll_hook()
        status = self.statuses[0] if len(self.statuses) == 1 else self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return status

    async def cancel(self, cancel_url):
        self.cancelled.append(cancel_url)
        return True

    def is_configured(self):
        return True


class FakeS3Client:
    """Stands in for the boto3 S3 client behind R2Client."""

    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "upload refused"}}, "PutObject")
        self.objects[Key] = (Body, ContentType)
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)
        return {}


def completed(*urls: str) -> ProviderStatus:
    """Completed provider status with one image per URL."""
    return ProviderStatus(
        status="completed",
        progress=100,
        result={"images": [{"url": url, "content_type": "image/png", "width": 1024, "height": 1024} for url in urls]},
    )


def download_handler(request: httpx.Request) -> httpx.Response:
    if "missing" in request.url.path:
        return httpx.Response(404)
    return httpx.Response(200, content=b"\x89PNG fake image bytes", headers={"content-type": "image/png"})


# ============================================================================
# Database
# ============================================================================

@pytest.fixture(scope="function")
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture(scope="function")
async def session_factory(database_url: str):
    """Session factory on a fresh schema."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


async def _create_user(db: AsyncSession, label: str, credits: int, **fields) -> User:
    user = User(
        id=str(uuid_module.uuid4()),
        firebase_uid=f"firebase-{label}-{uuid_module.uuid4().hex[:8]}",
        email=f"{label}@example.com",
        credits=credits,
        **fields
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture(scope="function")
async def test_user(db_session: AsyncSession) -> User:
    """User with 10 credits and platform access."""
    return await _create_user(db_session, "test", 10, has_platform_access=True)


@pytest.fixture(scope="function")
async def other_user(db_session: AsyncSession) -> User:
    """Second regular user, for ownership checks."""
    return await _create_user(db_session, "other", 10, has_platform_access=True)


@pytest.fixture(scope="function")
async def admin_user(db_session: AsyncSession) -> User:
    """Admin with no credits and no platform access flag."""
    return await _create_user(db_session, "admin", 0, role=UserRole.ADMIN.value)


@pytest.fixture(scope="function")
async def test_user_no_access(db_session: AsyncSession) -> User:
    """User without platform access."""
    return await _create_user(db_session, "noaccess", 10, has_platform_access=False)


# ============================================================================
# Provider, storage and services
# ============================================================================

@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def r2_client(fake_s3: FakeS3Client) -> R2Client:
    return R2Client(client=fake_s3, bucket="test-bucket", public_url=CDN_URL)


@pytest.fixture
async def migrator(r2_client: R2Client) -> AsyncGenerator[AssetMigrator, None]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(download_handler))
    migrator = AssetMigrator(storage=r2_client, client=client)
    yield migrator
    await migrator.aclose()


@pytest.fixture
def generation_service(fake_provider: FakeProvider, migrator: AssetMigrator) -> GenerationService:
    return GenerationService(fake_provider, migrator)


@pytest.fixture
def unavailable_provider(fake_provider: FakeProvider) -> FakeProvider:
    fake_provider.submit_error = ProviderUnavailable("Fal.ai unreachable: connection refused")
    return fake_provider


# ============================================================================
# API clients
# ============================================================================

def get_test_app(
    db_session: AsyncSession,
    user: User,
    generation_service: GenerationService,
    migrator: AssetMigrator,
) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from app.main import app
    from app.database import get_db
    from app.auth.dependencies import get_current_user
    from app.api.generations import get_generation_service
    from app.api.assets import get_asset_service
    from app.services.asset_service import AssetService

    async def override_get_db():
        yield db_session

    async def override_get_current_user():
        return user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_generation_service] = lambda: generation_service
    app.dependency_overrides[get_asset_service] = lambda: AssetService(migrator)

    return app


async def _client_for(db_session, user, generation_service, migrator):
    app = get_test_app(db_session, user, generation_service, migrator)
    transport = ASGITransport(app=app)
    return app, AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture(scope="function")
async def client(db_session, test_user, generation_service, migrator) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app, ac = await _client_for(db_session, test_user, generation_service, migrator)
    async with ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def other_client(db_session, other_user, generation_service, migrator) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as a different regular user."""
    app, ac = await _client_for(db_session, other_user, generation_service, migrator)
    async with ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db_session, admin_user, generation_service, migrator) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as an admin."""
    app, ac = await _client_for(db_session, admin_user, generation_service, migrator)
    async with ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def no_access_client(db_session, test_user_no_access, generation_service, migrator) -> AsyncGenerator[AsyncClient, None]:
    """Client for a user without platform access."""
    app, ac = await _client_for(db_session, test_user_no_access, generation_service, migrator)
    async with ac:
        yield ac
    app.dependency_overrides.clear()
