"""Database engine construction and schema bootstrap.

This module builds asynchronous SQLAlchemy engines and session
factories.  Nothing here is created at import time: the application
factory (or a script, or a test fixture) calls ``build_engine`` once,
wraps it with ``build_session_factory`` and hands the factory to the
components that need it.  A plain ``sqlite://`` URL is upgraded to the
``aiosqlite`` driver so the same value works for sync tooling and the
async runtime.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

# Declarative base
Base = declarative_base()


def normalise_database_url(url: str) -> str:
    """Return ``url`` with its driver switched to an async one where needed."""
    url_obj = make_url(url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    return url_obj.render_as_string(hide_password=False)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``url``."""
    db_url = normalise_database_url(url)
    engine_kwargs: dict[str, Any] = dict(echo=echo, pool_pre_ping=True)
    return create_async_engine(db_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory shared by the persistence layer."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all database tables.

    Typically called during application startup or from
    ``expense_tracker.scripts.init_db``.
    """
    async with engine.begin() as conn:
        # Import all models to ensure metadata is populated
        from expense_tracker.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
