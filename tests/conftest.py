"""
Pytest fixtures for Auth Backend tests.
"""

import os
import tempfile
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Create a temp file for SQLite test database
_test_db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_test_db_path = _test_db_file.name
_test_db_file.close()

# Set test environment - using SQLite
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"  # Fast hashing for tests
os.environ["JWT_EXPIRES_IN"] = "7d"
os.environ["OTP_EXPIRY_MINUTES"] = "10"
os.environ["SMTP_HOST"] = ""
os.environ["REVOKE_TOKENS_ON_LOGOUT"] = "false"

from auth_backend import models  # noqa: E402,F401  registers tables
from auth_backend.database import Base, get_db  # noqa: E402
from auth_backend.main import app  # noqa: E402
from auth_backend.notifications import NotificationError, get_notification_sender  # noqa: E402


class RecordingSender:
    """Notification sender that keeps codes in memory instead of emailing them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, int]] = []
        self.fail = False

    async def send_otp(self, email: str, code: str, ttl_minutes: int) -> None:
        if self.fail:
            raise NotificationError("smtp unavailable")
        self.sent.append((email, code, ttl_minutes))

    def last_code(self, email: str) -> str:
        for sent_to, code, _ in reversed(self.sent):
            if sent_to == email:
                return code
        raise AssertionError(f"no code sent to {email}")


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema per test; yields a factory for independent sessions."""
    engine = create_async_engine(os.environ["DATABASE_URL"], echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    # Clean up tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingSender:
    return RecordingSender()


@pytest_asyncio.fixture
async def client(session_factory, notifier: RecordingSender) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client. Every request gets its own session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def signup(client: AsyncClient):
    """Helper that registers an account through the API."""

    async def _signup(email: str = "a@x.com", username: str = "alice", password: str = "secret1"):
        return await client.post(
            "/api/auth/signup",
            json={
                "email": email,
                "username": username,
                "password": password,
                "confirmPassword": password,
            },
        )

    return _signup


@pytest_asyncio.fixture
async def auth_client(client: AsyncClient, signup) -> AsyncClient:
    """Create an authenticated test client."""
    response = await signup()
    assert response.status_code == 201
    token = response.json()["token"]

    # Set auth header
    client.headers["Authorization"] = f"Bearer {token}"

    return client
