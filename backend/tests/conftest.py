"""
PeerRate Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the test suite.
How:   Service tests run against a fresh in-memory SQLite database per test
       (aiosqlite, tables from Base.metadata). Redis is replaced by a small
       in-memory double; object storage is a LocalObjectStorage under
       tmp_path.

Fixture Hierarchy:
    ├── db_engine / db_session: in-memory SQLite, one per test
    ├── fake_redis / rating_cache: dict-backed Redis double + RatingCache
    ├── local_storage: LocalObjectStorage in a temp directory
    ├── make_user: factory inserting User rows
    ├── review_service / user_service: services wired to the doubles
    └── test_client: HTTPX AsyncClient against create_app() with the
                     session dependency pointed at the test database
"""

import os
import tempfile

# Settings are read at import time; set the environment before importing peerrate
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="peerrate_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from peerrate.database import Base, get_db_session
from peerrate.models.connection import Connection, LinkedSocialAccount  # noqa: F401
from peerrate.models.review import FavoriteReview, Review  # noqa: F401
from peerrate.models.user import User
from peerrate.services.rating_cache import RatingCache
from peerrate.services.review_service import ReviewService
from peerrate.services.social_service import SocialProfileClient
from peerrate.services.storage_service import LocalObjectStorage
from peerrate.services.user_service import UserService


# ══════════════════════════════════════════════════════════════════════════
# Test Doubles
# ══════════════════════════════════════════════════════════════════════════


class FakeRedis:
    """
    The subset of redis.asyncio.Redis that RatingCache and /health use.

    `expirations` records the `ex` passed with each SET so tests can check
    TTL handling.
    """

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.expirations: Dict[str, Optional[int]] = {}
        self.set_calls = 0

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        self.store[key] = value
        self.expirations[key] = ex
        self.set_calls += 1
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.expirations.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_engine():
    # StaticPool: every session shares the one in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """
    Factory inserting a committed User.

    Usage:
        alice = await make_user("Alice")
        bob = await make_user("Bob", email="bob@corp.test", headline="CTO")
    """
    counter = {"n": 0}

    async def _make_user(name: str = "User", email: Optional[str] = None, **fields) -> User:
        counter["n"] += 1
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}{counter['n']}@example.test",
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def rating_cache(fake_redis):
    return RatingCache(fake_redis, ttl_seconds=3600)


@pytest.fixture
def local_storage(tmp_path):
    return LocalObjectStorage(
        storage_root=str(tmp_path / "storage"),
        public_base_url="http://files.test",
    )


@pytest.fixture
def social_client():
    """SocialProfileClient whose fetch_email is an AsyncMock."""
    client = SocialProfileClient(http_client=AsyncMock())
    client.fetch_email = AsyncMock(return_value="linked@example.test")
    return client


@pytest.fixture
def review_service(rating_cache):
    return ReviewService(cache=rating_cache)


@pytest.fixture
def user_service(local_storage, social_client):
    return UserService(storage=local_storage, social_client=social_client)


@pytest.fixture
def sample_png_bytes():
    """PNG signature plus a few bytes; enough for type sniffing and upload."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + b"\x00" * 16


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def test_client(session_factory, fake_redis, local_storage, review_service, user_service):
    """
    HTTPX AsyncClient talking to a fresh app instance.

    ASGITransport does not run the lifespan, so the state the lifespan
    would build is assigned here.

    Usage:
        response = await test_client.get("/api/users/me", headers={"X-User-ID": str(user.id)})
    """
    from peerrate.main import create_app

    app = create_app()
    app.state.redis = fake_redis
    app.state.object_storage = local_storage
    app.state.review_service = review_service
    app.state.user_service = user_service

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth():
    """auth(user) → headers identifying `user` as the acting user."""

    def _auth(user: User) -> Dict[str, str]:
        return {"X-User-ID": str(user.id)}

    return _auth
