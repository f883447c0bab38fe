# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up environment variables before any imports
# - Per-test SQLite database files under tmp_path
# - Signed test tokens for authenticated endpoints
# =============================================================================

import os
import time

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.config import Settings
from app.main import create_app
from core.tables import Base
from lib.database import ConnectionManager

TEST_SECRET = "test-secret-key-for-hs256-tokens"
TEST_ISSUER = "https://sso.test/realms/starter"
TEST_AUDIENCE = "account"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a fresh SQLite file, with fast retries."""
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        DB_RETRY_ATTEMPTS=3,
        DB_RETRY_DELAY=0,
        DB_CONNECT_TIMEOUT=5,
        DB_HEALTH_TIMEOUT=2,
        DB_MAX_OPEN_CONNS=7,
        DB_MAX_IDLE_CONNS=3,
        DB_AUTO_MIGRATE=True,
        AUTH_ISSUER_URL=TEST_ISSUER,
        AUTH_AUDIENCE=TEST_AUDIENCE,
        AUTH_JWT_SECRET=TEST_SECRET,
    )


@pytest.fixture
def db_manager(settings):
    """Connected ConnectionManager with tables created; closed afterwards."""
    manager = ConnectionManager(settings)
    manager.connect()
    Base.metadata.create_all(manager.get_engine())
    yield manager
    manager.close()


@pytest.fixture
def db_session(db_manager):
    with db_manager.session() as session:
        yield session


@pytest.fixture
def client(settings):
    """TestClient running the full lifespan (connect, migrate, supervise)."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def make_token():
    """Factory for HS256 tokens accepted by the test settings."""

    def _make(sub: str | None = "user-123", expires_in: int = 300, secret: str = TEST_SECRET, **claims):
        now = int(time.time())
        payload = {
            "aud": TEST_AUDIENCE,
            "iss": TEST_ISSUER,
            "iat": now,
            "exp": now + expires_in,
            **claims,
        }
        if sub is not None:
            payload["sub"] = sub
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token):
    token = make_token(
        sub="user-123",
        email="ada@example.com",
        preferred_username="ada",
        realm_access={"roles": ["admin"]},
    )
    return {"Authorization": f"Bearer {token}"}
