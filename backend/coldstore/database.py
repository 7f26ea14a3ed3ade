"""Database engine, session factories, and the declarative base.

Two FastAPI dependencies:
  - get_db()               → request-scoped session for read endpoints
  - get_session_factory()  → the session factory itself, for write paths
                             that own their transaction (and may retry it)
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from coldstore.config import settings

_engine_kwargs: dict = {"echo": settings.debug}
if not settings.database_url.startswith("sqlite"):
    _engine_kwargs.update(pool_size=20, max_overflow=10)

engine = create_async_engine(settings.database_url, **_engine_kwargs)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base for every ledger table."""
    pass


# ── Session dependencies ────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session; commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory used by transactional ledger writes."""
    return async_session
