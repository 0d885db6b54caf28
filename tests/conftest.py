"""Test configuration and fixtures."""

import os
import tempfile

# Settings are read at import time, configure them first
TEST_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="tunematch-test-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test_secret_key"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["SPOTIFY_CLIENT_ID"] = "test_client_id"
os.environ["SPOTIFY_CLIENT_SECRET"] = "test_client_secret"
os.environ["SPOTIFY_REDIRECT_URI"] = "http://localhost:8888/callback"
os.environ["FRONTEND_URL"] = "http://localhost:3000"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

import tunematch.models  # noqa: F401
from tunematch.auth import create_access_token
from tunematch.db.session import AsyncSessionLocal, Base
from tunematch.models.user import UserProfile

# Sync engine on the same file, for schema resets and seeding
sync_engine = create_engine(f"sqlite:///{TEST_DB_PATH}")


@pytest.fixture(autouse=True)
def reset_database():
    """Start every test from empty tables."""
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    yield


@pytest.fixture
def sync_db():
    with Session(sync_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def db_session():
    """Create a test database session."""
    async with AsyncSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_profile(sync_db):
    """Store a profile and return it."""
    def _make(spotify_id, top_artists=None, display_name=None):
        profile = UserProfile(
            spotify_id=spotify_id,
            display_name=display_name or spotify_id.title(),
            top_artists=list(top_artists or []),
            access_token=f"{spotify_id}-access",
            refresh_token=f"{spotify_id}-refresh",
        )
        sync_db.add(profile)
        sync_db.commit()
        return profile
    return _make


@pytest.fixture
def auth_headers_for():
    """Auth headers with a session token for a stored profile."""
    def _headers(profile):
        token = create_access_token(profile.id, profile.spotify_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers
