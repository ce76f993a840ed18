"""
Async database access for the reminder engine.

One lazily created asyncpg-backed engine per process. Query helpers take an
AsyncConnection from get_connection() (reads) or get_transaction() (writes
that commit together).
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .tables import metadata

_engine: AsyncEngine | None = None

_ASYNC_SCHEMES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


def _async_database_url() -> str:
    """DATABASE_URL with a plain postgres scheme switched to the asyncpg driver."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable must be set")

    for scheme, async_scheme in _ASYNC_SCHEMES.items():
        if url.startswith(scheme):
            return async_scheme + url[len(scheme):]
    return url


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _async_database_url(),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """Pooled connection for reads. Nothing is committed."""
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection inside a transaction.

    Commits when the block exits normally and rolls back if it raises, so an
    IntegrityError from a duplicate 'sent' record leaves nothing behind.
    """
    async with get_engine().begin() as conn:
        yield conn


async def create_tables() -> None:
    """Create missing tables. Used in dev mode; deployed schemas are managed outside the app."""
    async with get_engine().begin() as conn:
        await conn.run_sync(metadata.create_all)


async def close_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))
