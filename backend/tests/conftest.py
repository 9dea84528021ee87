"""
eLabel API — Test Configuration (conftest.py)
==============================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set BEFORE any elabel import, because
       elabel.config builds its settings singleton at import time.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock session for pure service unit tests
    ├── db_engine → db_session: in-memory SQLite store with all tables
    ├── oauth_provider: FakeOAuthProvider returning a canned profile
    ├── app: create_app() bound to db_session and oauth_provider
    ├── client: HTTPX AsyncClient over ASGITransport
    ├── make_label_payload: factory for valid POST /api/labels bodies
    └── make_label: factory for Label rows with controlled created_at
"""

import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret-not-for-production"
os.environ["SESSION_SECRET"] = "test-session-secret-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["FRONTEND_URLS"] = "http://localhost:5173"
os.environ["CORS_ORIGINS"] = "http://localhost:5173,http://localhost:3000"
os.environ["BACKEND_URLS"] = "http://localhost:5000"
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""
# Throttles are exercised by test_rate_limit with their own limits
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["SLOW_DOWN_AFTER"] = "100000"

from typing import Any, AsyncGenerator, Dict, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402
from starlette.requests import Request  # noqa: E402
from starlette.responses import RedirectResponse, Response  # noqa: E402

import elabel.models  # noqa: E402,F401
from elabel.database import Base, get_db_session  # noqa: E402
from elabel.exceptions import OAuthError  # noqa: E402
from elabel.models.label import Label  # noqa: E402
from elabel.main import create_app  # noqa: E402
from elabel.services.oauth_base import OAuthProfile, OAuthProvider  # noqa: E402

FAKE_CONSENT_URL = "https://accounts.google.com/o/oauth2/v2/auth?state=fake"
LABEL_BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeOAuthProvider(OAuthProvider):
    """Stands in for Google: no network, canned profile or canned error."""

    name = "fake"

    def __init__(
        self,
        profile: Optional[OAuthProfile] = None,
        error: Optional[OAuthError] = None,
    ):
        self.profile = profile or OAuthProfile(
            email="dana.kim@trialsponsor.com",
            first_name="Dana",
            last_name="Kim",
            email_verified=True,
            subject="google-sub-1",
        )
        self.error = error
        self.authorize_calls = 0
        self.fetch_calls = 0

    async def authorize_redirect(self, request: Request) -> Response:
        self.authorize_calls += 1
        return RedirectResponse(FAKE_CONSENT_URL, status_code=302)

    async def fetch_profile(self, request: Request) -> OAuthProfile:
        self.fetch_calls += 1
        if self.error is not None:
            raise self.error
        return self.profile


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Mock async database session for service tests that never touch SQL.

    Usage:
        mock_result = MagicMock()
        mock_result.scalars.return_value.first.return_value = None
        mock_db_session.execute.return_value = mock_result
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    In-memory SQLite engine with every table created.

    StaticPool keeps a single connection, so all sessions see the same
    in-memory database for the life of the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Application Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def oauth_provider() -> FakeOAuthProvider:
    return FakeOAuthProvider()


@pytest.fixture
def app(db_session: AsyncSession, oauth_provider: FakeOAuthProvider):
    """
    Application wired to the test session and the fake OAuth provider.

    Every request shares `db_session`, so tests can assert on rows the API
    wrote through the same session.
    """
    application = create_app(oauth_provider=oauth_provider)

    async def override_get_db_session():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app in-process.

    Redirects are not followed, so OAuth tests can read Location headers.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ══════════════════════════════════════════════════════════════════════════
# Test Data
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_label_payload():
    """Factory for a valid label body; keyword overrides replace fields."""

    def _make(**overrides: Any) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "labelType": "Primary Kit Label",
            "templateVersion": 1,
            "trialIdentifier": "TRIAL-001",
            "sponsorName": "Acme Pharma",
            "protocolNumber": "PROTO-123",
            "productName": "Investigational Drug X 10mg",
            "identifierCode": "ABC123",
            "batchNumber": "BATCH-001",
            "expiryDate": "2099-12-31",
            "kitNumber": "123456",
            "customFields": {
                "dosage": {"en": "Take one tablet daily", "fr": "Prendre un comprimé par jour"},
                "storage": "Store below 25°C",
            },
            "languages": ["en", "fr"],
            "metadata": {"createdBy": "qa.user"},
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def make_label():
    """
    Factory for Label rows inserted straight into the store.

    `minutes` offsets created_at from a fixed base so ordering tests do not
    depend on the clock.
    """

    def _make(identifier_code: str, minutes: int = 0, **fields: Any) -> Label:
        values: Dict[str, Any] = dict(
            id=uuid.uuid4(),
            label_type="Primary Kit Label",
            template_version=1,
            trial_identifier="TRIAL-001",
            sponsor_name="Acme Pharma",
            protocol_number="PROTO-123",
            product_name="Investigational Drug X",
            identifier_code=identifier_code,
            batch_number="BATCH-001",
            expiry_date=datetime(2099, 12, 31, tzinfo=timezone.utc),
            kit_number="123456",
            custom_fields={},
            languages=["en"],
            created_by="qa.user",
            created_at=LABEL_BASE_TIME + timedelta(minutes=minutes),
        )
        values.update(fields)
        return Label(**values)

    return _make
