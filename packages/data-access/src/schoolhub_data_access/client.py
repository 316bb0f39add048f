"""Async database engine for Data Access.

A lazily created SQLAlchemy async engine on asyncpg, pointed at Supabase's
session-mode pooler (port 5432). Transaction-mode pooling breaks asyncpg's
prepared statements, so SUPABASE_DB_URL must be the session pooler.

Usage:
    from schoolhub_data_access.client import get_engine

    async with get_engine().begin() as conn:
        result = await conn.execute(select(profiles))
"""

from __future__ import annotations

import os

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

_ASYNC_SCHEMES = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
}

_engine: AsyncEngine | None = None


def async_database_url(url: str) -> str:
    """Rewrite a plain Postgres URL to use the asyncpg driver."""
    for prefix, replacement in _ASYNC_SCHEMES.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


def get_engine() -> AsyncEngine:
    """Return the engine singleton, creating it from SUPABASE_DB_URL on first use."""
    global _engine
    if _engine is not None:
        return _engine

    db_url = os.environ.get("SUPABASE_DB_URL", "")
    if not db_url:
        raise RuntimeError(
            "SUPABASE_DB_URL is not set. Use the Supabase session pooler "
            "connection string (port 5432)."
        )

    _engine = create_async_engine(
        async_database_url(db_url),
        pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
        max_overflow=0,
        pool_pre_ping=True,
    )
    return _engine


def reset_engine() -> None:
    """Drop the singleton. Used in tests."""
    global _engine
    _engine = None
