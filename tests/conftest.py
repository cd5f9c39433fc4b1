import os
from collections.abc import AsyncGenerator, Awaitable, Callable

# Settings are read at import time, so configure the environment first.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
TEST_API_URL = "http://api.example.com"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["API_URL"] = TEST_API_URL
os.environ["REDIS_HOST"] = "null"
os.environ.pop("COOKIE_DOMAIN", None)
os.environ.setdefault("AUTH_SECRET", "test-auth-secret")
os.environ.setdefault("CRYPTO_SECRET", "test-crypto-secret")
os.environ.setdefault("CSRF_SECRET", "test-csrf-secret")
os.environ.setdefault("ORIGIN_URL", "http://localhost:3000")
os.environ.setdefault("SHOW_OTP", "false")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Load remaining environment variables from .env file
load_dotenv()

from identity_api.core.constants import CSRF_HEADER
from identity_api.database import get_db
from identity_api.main import app
from identity_api.models import metadata
from identity_api.services.user_service import UserService

TEST_PASSWORD = "Password123"


def _engine_options(url: str) -> dict:
    # In-memory SQLite lives as long as its single shared connection
    if url.startswith("sqlite"):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"poolclass": NullPool}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on fresh tables."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_options(TEST_DATABASE_URL))

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client whose host matches the cookie domain."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url=TEST_API_URL) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def csrf_headers(client: AsyncClient) -> Callable[[], Awaitable[dict[str, str]]]:
    """Fetch a CSRF token (the cookie lands in the client jar) and return the header."""

    async def _csrf_headers() -> dict[str, str]:
        response = await client.get("/api/v1/csrf")
        assert response.status_code == 200
        return {CSRF_HEADER: response.json()["data"]["csrf_token"]}

    return _csrf_headers


@pytest.fixture
async def test_user(db_session: AsyncSession) -> dict:
    """Create a verified user with a password."""
    return await UserService().create_user(
        db_session,
        email="test@example.com",
        name="Test User",
        password=TEST_PASSWORD,
        email_verified=True,
        phone="+1234567890",
    )


@pytest.fixture
def login(
    client: AsyncClient,
    csrf_headers: Callable[[], Awaitable[dict[str, str]]],
) -> Callable[..., Awaitable[Response]]:
    """Log in through the API; the access-token cookie lands in the client jar."""

    async def _login(email: str = "test@example.com", password: str = TEST_PASSWORD) -> Response:
        return await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
            headers=await csrf_headers(),
        )

    return _login
