"""
Shared TTL store – the key/value cache every OTP record lives in.

Two backends implement the same async protocol:

  • InMemoryTtlStore – dict-backed, expires keys on read and sweeps on write.
    Fine for local development and tests, but state is per-process.
  • RedisTtlStore    – redis.asyncio client, expiry handled by Redis.

Every backend failure is raised as StoreError so callers only ever
need to handle one exception type.

Usage::

    store = build_store()
    await store.set_string("otp:phone:09123456789", "123456", timedelta(minutes=5))
    code = await store.get_string("otp:phone:09123456789")
    await store.close()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from app import config

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The store could not be reached or rejected the operation."""


def _decode_utf8(key: str, value: bytes | None) -> str | None:
    if value is None:
        return None
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise StoreError(f"Value at {key} is not valid UTF-8") from exc


class TtlStore(Protocol):
    """Async key/value store with optional per-key relative expiry."""

    async def get(self, key: str) -> bytes | None: ...

    async def get_string(self, key: str) -> str | None: ...

    async def set(self, key: str, value: bytes, ttl: timedelta | None = None) -> None: ...

    async def set_string(self, key: str, value: str, ttl: timedelta | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


# ══════════════════════════════════════════════════════════════════════════
#                         IN-MEMORY BACKEND
# ══════════════════════════════════════════════════════════════════════════


class InMemoryTtlStore:
    """
    Process-local store with lazy expiration.

    Expired keys are dropped when read, and writes sweep the whole dict
    at most once per *sweep_interval* seconds so keys that are never read
    again do not accumulate.

    *clock* must be monotonic and return seconds; tests pass a fake
    clock to move time forward without sleeping.
    """

    def __init__(
        self,
        *,
        key_prefix: str = "",
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ) -> None:
        self._prefix = key_prefix
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._entries: dict[str, tuple[bytes, float | None]] = {}

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    # ── Read ───────────────────────────────────────────────────────────

    async def get(self, key: str) -> bytes | None:
        full_key = self._key(key)
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[full_key]
            return None
        return value

    async def get_string(self, key: str) -> str | None:
        return _decode_utf8(key, await self.get(key))

    # ── Write ──────────────────────────────────────────────────────────

    async def set(self, key: str, value: bytes, ttl: timedelta | None = None) -> None:
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        expires_at = now + ttl.total_seconds() if ttl is not None else None
        self._entries[self._key(key)] = (bytes(value), expires_at)

    async def set_string(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        await self.set(key, value.encode("utf-8"), ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(self._key(key), None)

    def _sweep(self, now: float) -> None:
        expired = [
            k for k, (_, expires_at) in self._entries.items()
            if expires_at is not None and now >= expires_at
        ]
        for k in expired:
            del self._entries[k]
        self._next_sweep = now + self._sweep_interval
        if expired:
            logger.debug("Swept %d expired keys", len(expired))

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


# ══════════════════════════════════════════════════════════════════════════
#                            REDIS BACKEND
# ══════════════════════════════════════════════════════════════════════════


def _ttl_ms(ttl: timedelta | None) -> int | None:
    if ttl is None:
        return None
    # Redis rejects PX 0; round sub-millisecond TTLs up.
    return max(1, int(ttl.total_seconds() * 1000))


class RedisTtlStore:
    """Store backed by Redis; TTLs map to PX expirations."""

    def __init__(self, client: redis.Redis, *, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "",
        timeout_seconds: float | None = None,
    ) -> RedisTtlStore:
        client = redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> bytes | None:
        try:
            return await self._client.get(self._key(key))
        except RedisError as exc:
            raise StoreError(f"GET {key} failed: {exc}") from exc

    async def get_string(self, key: str) -> str | None:
        return _decode_utf8(key, await self.get(key))

    async def set(self, key: str, value: bytes, ttl: timedelta | None = None) -> None:
        try:
            await self._client.set(self._key(key), value, px=_ttl_ms(ttl))
        except RedisError as exc:
            raise StoreError(f"SET {key} failed: {exc}") from exc

    async def set_string(self, key: str, value: str, ttl: timedelta | None = None) -> None:
        await self.set(key, value.encode("utf-8"), ttl)

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as exc:
            raise StoreError(f"DEL {key} failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            logger.warning("Redis ping failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self._client.aclose()


# ── Factory ───────────────────────────────────────────────────────────────


def build_store(
    backend: str | None = None,
    *,
    redis_url: str | None = None,
    key_prefix: str | None = None,
) -> TtlStore:
    """Create the store selected by STORE_BACKEND (or the explicit *backend*)."""
    backend = (backend or config.STORE_BACKEND).lower()
    prefix = config.STORE_KEY_PREFIX if key_prefix is None else key_prefix

    if backend == "memory":
        logger.info("Using in-memory TTL store (prefix=%r)", prefix)
        return InMemoryTtlStore(key_prefix=prefix)
    if backend == "redis":
        url = redis_url or config.REDIS_URL
        logger.info("Using Redis TTL store at %s (prefix=%r)", url, prefix)
        return RedisTtlStore.from_url(
            url,
            key_prefix=prefix,
            timeout_seconds=config.REDIS_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r} (expected 'memory' or 'redis')")
