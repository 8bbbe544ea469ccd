"""
Test configuration and fixtures.
Uses an in-memory SQLite ledger and a boto3 client with dummy
credentials (presigning is local, no network involved).
"""
import os
import tempfile

# Set test environment before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["S3_BUCKET"] = "test-bucket"
os.environ["S3_REGION"] = "us-east-1"
os.environ["S3_ACCESS_KEY"] = "testing-access-key"
os.environ["S3_SECRET_KEY"] = "testing-secret-key"
os.environ["LOCAL_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="upload-relay-test-")

import pytest
from typing import AsyncGenerator

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from upload_relay.models.base import Base
from upload_relay.models.upload_record import UploadRecord  # noqa: F401
from upload_relay.storage.s3_client import S3Client


PUBLIC_BASE_URL = "https://test-bucket.s3.us-east-1.amazonaws.com"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory ledger database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def s3_client() -> S3Client:
    """Configured storage client backed by a real boto3 client."""
    client = S3Client()
    assert client.is_configured
    return client


def get_test_app(db_session: AsyncSession, s3_client: S3Client) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from upload_relay.main import app
    from upload_relay.database import get_db
    from upload_relay.api.uploads import get_storage_client

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_client] = lambda: s3_client

    return app


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, s3_client: S3Client) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(db_session, s3_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def lenient_client(db_session: AsyncSession, s3_client: S3Client) -> AsyncGenerator[AsyncClient, None]:
    """Like client, but unhandled exceptions come back as 500 responses."""
    app = get_test_app(db_session, s3_client)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
