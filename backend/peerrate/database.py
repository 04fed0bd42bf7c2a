"""
PeerRate Backend - Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   One engine per process with connection pooling; one AsyncSession per
       request that commits on success and rolls back on error.
Who:   Route handlers receive sessions via Depends(get_db_session); services
       receive them as their first argument.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling:
    pool_size=20, max_overflow=10 → at most 30 PostgreSQL connections.
    pool_pre_ping validates connections before use.
    pool_recycle=3600 recycles connections every hour.
    SQLite URLs (tests, local tinkering) skip the pool arguments because
    SQLite drivers use their own pool classes.
"""

from typing import Any, AsyncGenerator, Dict, Sequence, Type

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from peerrate.config import settings


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool configuration for server databases; SQLite gets none."""
    options: Dict[str, Any] = {
        # Echo SQL only when debugging
        "echo": settings.log_level == "DEBUG",
    }
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: ORM objects stay readable after the service commits
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every model registers on this metadata; Alembic autogenerate and the
    test fixtures' create_all() read it.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits whatever the services left pending
        4. On error: rolls back and re-raises for the global handlers
        5. Always: closes the session (returns connection to pool)

    Services that must make a write durable before touching another store
    (ReviewService refreshing the rating cache) commit explicitly; the
    final commit here is then a no-op.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Query Helpers ─────────────────────────────────────────────────────────
async def insert_ignore(
    db: AsyncSession,
    model: Type[Base],
    values: Dict[str, Any],
    conflict_columns: Sequence[str],
) -> None:
    """
    INSERT ... ON CONFLICT DO NOTHING for join-table rows.

    Used for favorites and connections, where a second identical request must
    leave exactly one row. The unique constraint settles concurrent inserts.
    Supported dialects: postgresql, sqlite.
    """
    dialect = db.get_bind().dialect.name
    insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
    stmt = insert_fn(model).values(**values).on_conflict_do_nothing(
        index_elements=list(conflict_columns),
    )
    await db.execute(stmt)


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections. Called from the lifespan on shutdown."""
    await engine.dispose()
