"""Persisted session store.

The browser client keeps its session in local storage; here the same JSON
blob lives in Redis so a restarted process picks up where it left off.

Environment detection (same as every other Redis user on the platform):
  - UPSTASH_REDIS_REST_URL set → Upstash SDK (staging/prod)
  - Otherwise → fakeredis (local dev and tests, in-memory)

Usage:
    from schoolhub_auth.storage import get_store

    store = get_store()
    await store.save(session)
    session = await store.load()
"""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import ValidationError
from schoolhub_shared.auth_models import Session

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "sb-auth-token"


def session_key(storage_key: str) -> str:
    """Redis key holding the serialized session for one client."""
    return f"auth:session:{storage_key}"


class SessionStore:
    """Load/save/clear one serialized Session over Upstash or fakeredis.

    Both clients expose async get/set/delete with the same signatures, so
    unlike the config store no per-backend branching is needed.
    """

    def __init__(self, raw_client: Any, storage_key: str = DEFAULT_STORAGE_KEY) -> None:
        self._client = raw_client
        self._key = session_key(storage_key)

    @property
    def key(self) -> str:
        return self._key

    async def load(self) -> Session | None:
        raw = await self._client.get(self._key)
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable session stored under %s", self._key)
            await self.clear()
            return None

    async def save(self, session: Session) -> None:
        await self._client.set(self._key, session.model_dump_json())

    async def clear(self) -> None:
        await self._client.delete(self._key)


# ============================================================================
# Singleton management
# ============================================================================

_store: SessionStore | None = None


def get_store(storage_key: str = DEFAULT_STORAGE_KEY) -> SessionStore:
    """Return a lazily-initialized SessionStore singleton."""
    global _store
    if _store is not None:
        return _store

    if os.environ.get("UPSTASH_REDIS_REST_URL"):
        from upstash_redis.asyncio import Redis

        _store = SessionStore(Redis.from_env(), storage_key)
    else:
        from fakeredis.aioredis import FakeRedis

        _store = SessionStore(FakeRedis(decode_responses=True), storage_key)

    return _store


def reset_store() -> None:
    """Reset the store singleton. Used in tests."""
    global _store
    _store = None


def set_store(store: SessionStore) -> None:
    """Inject a store. Used in tests."""
    global _store
    _store = store
