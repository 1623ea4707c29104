"""Redis cache store for the storefront.

Thin wrapper around the redis-py async client that owns the single shared
connection of the process. Every higher cache component goes through the
get/set/delete contract defined here.

Failure contract: no method raises. On connection errors, timeouts or
command errors the store logs and returns a miss (``None``), ``False`` or
``0``, and flips its health flag so callers can switch to their degraded
paths. The connection is lazy: the first use connects, and concurrent first
uses share a single in-flight connect attempt.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar, cast

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from storefront.cache.keys import CacheKeys

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from storefront.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Keys deleted per DEL during prefix deletes
DELETE_BATCH_SIZE = 500

# Errors that mean the store itself is unreachable
_DISCONNECT_ERRORS = (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError, OSError)


class CacheUnavailable(Exception):
    """Internal signal that a store command did not complete."""


class CacheStore:
    """Shared, failure-absorbing access to the Redis cache store."""

    def __init__(
        self,
        url: str | None = None,
        *,
        client: Redis | None = None,
        connect_timeout: float = 5.0,
        command_timeout: float = 2.0,
        reconnect_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if url is None and client is None:
            raise ValueError("CacheStore requires a Redis URL or a client")
        self._url = url
        self._client = client
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._reconnect_interval = reconnect_interval
        self._clock = clock

        self._healthy = False
        self._closed = False
        self._connect_task: asyncio.Task[bool] | None = None
        self._retry_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> CacheStore:
        """Build the store from settings.

        Raises:
            ConfigurationError: If no Redis connection is configured.
        """
        return cls(
            settings.redis_connection_url(),
            connect_timeout=settings.redis_connect_timeout,
            command_timeout=settings.redis_command_timeout,
            reconnect_interval=settings.redis_reconnect_interval,
        )

    # -------------------------------------------------------------------------
    # Connection health
    # -------------------------------------------------------------------------

    def is_healthy(self) -> bool:
        """Whether the last interaction with the store succeeded."""
        return self._healthy and not self._closed

    def mark_unhealthy(self, reason: str) -> None:
        """Flip health to disconnected and hold off reconnects briefly."""
        if self._healthy:
            logger.warning(f"Cache store disconnected: {reason}")
        else:
            logger.debug(f"Cache store still unavailable: {reason}")
        self._healthy = False
        self._retry_at = self._clock() + self._reconnect_interval

    async def ensure_connection(self) -> bool:
        """Connect if needed. Returns the resulting health.

        At most one connect attempt is in flight; concurrent callers await
        the same attempt.
        """
        if self._closed:
            return False
        if self._healthy:
            return True
        if self._connect_task is None or self._connect_task.done():
            if self._clock() < self._retry_at:
                return False
            self._connect_task = asyncio.create_task(self._connect())
        return await asyncio.shield(self._connect_task)

    async def _connect(self) -> bool:
        if self._client is None:
            self._client = redis.from_url(  # type: ignore[no-untyped-call]
                cast(str, self._url),
                decode_responses=False,
                socket_connect_timeout=self._connect_timeout,
                socket_timeout=self._command_timeout,
            )
        try:
            await asyncio.wait_for(
                cast(Awaitable[bool], self._client.ping()),
                timeout=self._connect_timeout,
            )
        except Exception as e:
            self._retry_at = self._clock() + self._reconnect_interval
            logger.warning(f"Cache store connection failed: {e!r}")
            return False

        self._healthy = True
        logger.info("Cache store connected")
        return True

    async def close(self) -> None:
        """Close the connection. The store stays unhealthy afterwards."""
        self._closed = True
        self._healthy = False
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Cache store connection closed")

    # -------------------------------------------------------------------------
    # Command execution
    # -------------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        key: str,
        command: Callable[[Redis], Awaitable[T]],
        timeout: float | None = -1.0,
    ) -> T:
        """Run a command against the live client.

        ``timeout=-1`` applies the command timeout, ``None`` relies on the
        socket timeouts only (used for multi-round-trip scans).

        Raises:
            CacheUnavailable: If the store is down or the command failed.
        """
        if not await self.ensure_connection():
            raise CacheUnavailable(operation)

        client = cast("Redis", self._client)
        bound = self._command_timeout if timeout == -1.0 else timeout
        try:
            return await asyncio.wait_for(command(client), timeout=bound)
        except _DISCONNECT_ERRORS as e:
            self.mark_unhealthy(f"{operation} {key}: {e!r}")
            raise CacheUnavailable(operation) from e
        except Exception as e:
            logger.warning(f"Cache store {operation} failed for {key}: {e!r}")
            raise CacheUnavailable(operation) from e

    # -------------------------------------------------------------------------
    # Key-value contract
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        """Get a value, or None on miss or failure."""
        try:
            return cast(
                "bytes | None",
                await self._execute("get", key, lambda c: c.get(key)),
            )
        except CacheUnavailable:
            return None

    async def set_with_ttl(self, key: str, value: bytes | str, ttl: int) -> bool:
        """Set a value with expiry in seconds, overwriting any existing entry."""
        try:
            await self._execute("set", key, lambda c: c.set(key, value, ex=ttl))
            return True
        except CacheUnavailable:
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key. True when the store confirmed the delete (present or not)."""
        try:
            await self._execute("delete", key, lambda c: c.delete(key))
            return True
        except CacheUnavailable:
            return False

    async def delete_many(self, keys: list[str]) -> int:
        """Delete several keys in one round trip. Returns the number removed."""
        if not keys:
            return 0
        try:
            return int(await self._execute("delete", keys[0], lambda c: c.delete(*keys)))
        except CacheUnavailable:
            return 0

    async def delete_by_prefix(self, prefix: str) -> int | None:
        """Delete every key starting with ``prefix``.

        Uses SCAN to avoid blocking on large keyspaces. Returns the number
        of keys deleted, or None when the store could not be reached.
        """

        async def _scan_and_delete(client: Redis) -> int:
            deleted = 0
            batch: list[bytes] = []
            async for key in client.scan_iter(
                match=CacheKeys.match_pattern(prefix), count=DELETE_BATCH_SIZE
            ):
                batch.append(key)
                if len(batch) >= DELETE_BATCH_SIZE:
                    deleted += int(await client.delete(*batch))
                    batch = []
            if batch:
                deleted += int(await client.delete(*batch))
            return deleted

        try:
            return await self._execute("delete_by_prefix", prefix, _scan_and_delete, timeout=None)
        except CacheUnavailable:
            return None

    async def exists(self, key: str) -> bool:
        """Whether a key exists. False on failure."""
        try:
            return int(await self._execute("exists", key, lambda c: c.exists(key))) > 0
        except CacheUnavailable:
            return False

    async def ttl(self, key: str) -> int | None:
        """Seconds until expiry, -1 for keys without expiry, None if absent or on failure."""
        try:
            remaining = int(await self._execute("ttl", key, lambda c: c.ttl(key)))
        except CacheUnavailable:
            return None
        return None if remaining == -2 else remaining

    async def increment(self, key: str, ttl: int) -> tuple[int, int] | None:
        """Increment a counter, starting its expiry on the first increment.

        Returns:
            Tuple of (count, seconds until the counter expires), or None
            on failure.
        """

        async def _incr(client: Redis) -> tuple[int, int]:
            async with client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.ttl(key)
                count, remaining = await pipe.execute()
            if remaining < 0:
                await client.expire(key, ttl)
                remaining = ttl
            return int(count), int(remaining)

        try:
            return await self._execute("increment", key, _incr)
        except CacheUnavailable:
            return None

    async def health_check(self) -> bool:
        """Check connectivity with a PING."""
        try:
            await self._execute("ping", "-", lambda c: cast(Awaitable[bool], c.ping()))
            return True
        except CacheUnavailable:
            return False
