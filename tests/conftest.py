"""Test configuration and fixtures."""
import os
import re

# Must be set before the application settings are imported
os.environ.setdefault("AUTH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key-for-automation-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from tourbook.config import settings
from tourbook.core.exceptions import EmailDeliveryError
from tourbook.database import get_session_factory
from tourbook.main import app
from tourbook.models.base import Base
from tourbook.services.email import EmailService, get_email_service
from tourbook.services.users import UserStore

TEST_PASSWORD = "testpassword123"
RESET_URL_PATTERN = re.compile(r"/reset-password/([0-9a-f]{64})")


class RecordingEmailService(EmailService):
    """Mail notifier that keeps messages in memory instead of sending them."""

    def __init__(self):
        super().__init__(host="smtp.test", from_address="noreply@tourbook.test")
        self.outbox = []
        self.fail = False

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTP server unavailable")
        self.outbox.append({"recipient": recipient, "subject": subject, "body": body})

    def last_reset_token(self) -> str:
        """Raw reset token from the most recent message."""
        match = RESET_URL_PATTERN.search(self.outbox[-1]["body"])
        assert match, self.outbox[-1]["body"]
        return match.group(1)


# Service-level fixtures: in-memory database on the test's own event loop

@pytest_asyncio.fixture
async def async_engine():
    """Create async engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(async_engine):
    """Create async session for tests."""
    session_factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def test_user(async_session):
    """Create test user."""
    return await UserStore(async_session).create(
        name="Test User",
        email="test@example.com",
        password=TEST_PASSWORD,
    )


@pytest.fixture
def outbox():
    """Recording mail notifier."""
    return RecordingEmailService()


# HTTP fixtures: the app runs against a fresh SQLite file per test

@pytest.fixture
def client(tmp_path, monkeypatch, outbox):
    """Create test client with its own database and a recording mail notifier."""
    monkeypatch.setattr(
        settings.database, "url", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    )
    app.dependency_overrides[get_email_service] = lambda: outbox

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def signup(client: TestClient, email: str, password: str = TEST_PASSWORD, name: str = "Test User"):
    """Sign up through the API and return the response."""
    return client.post(
        "/api/v1/users/signup",
        json={
            "name": name,
            "email": email,
            "password": password,
            "password_confirm": password,
        },
    )


def login(client: TestClient, email: str, password: str = TEST_PASSWORD):
    """Log in through the API and return the response."""
    return client.post(
        "/api/v1/users/login",
        json={"email": email, "password": password},
    )


def bearer(token: str) -> dict:
    """Authorization header for a session token."""
    return {"Authorization": f"Bearer {token}"}


def run_in_app(client: TestClient, fn, *args):
    """Run an async function against the app's database on the app's event loop."""

    async def _run():
        async with get_session_factory()() as session:
            return await fn(UserStore(session), *args)

    return client.portal.call(_run)


async def _set_role(store: UserStore, email: str, role: str) -> None:
    user = await store.find_by_email(email)
    user.role = role
    await store.save(user)


def set_role(client: TestClient, email: str, role: str) -> None:
    """Change a user's role directly in the database."""
    run_in_app(client, _set_role, email, role)


@pytest.fixture
def auth_headers(client):
    """Sign up a regular user and return authorization headers."""
    response = signup(client, "test@example.com")
    assert response.status_code == 201, response.text
    return bearer(response.json()["token"])


@pytest.fixture
def admin_headers(client):
    """Sign up a user, promote them to admin and return authorization headers."""
    response = signup(client, "admin@example.com", name="Admin User")
    assert response.status_code == 201, response.text
    set_role(client, "admin@example.com", "admin")
    return bearer(response.json()["token"])
