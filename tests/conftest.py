"""Global pytest configuration and fixtures.

Provides an in-memory Redis double covering the commands the cache store
uses, a controllable clock for TTL expiry, and factories for the cache
context, record store and application.
"""

from __future__ import annotations

import asyncio
import math
import re
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from storefront.cache.store import CacheStore
from storefront.config import Settings
from storefront.context import CacheContext
from storefront.persistence.records import Product
from storefront.persistence.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
)
from storefront.persistence.store import InMemoryRecordStore
from storefront.services import (
    CartService,
    LocalPaymentIntentProvider,
    OrderService,
    ProductService,
)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a Redis MATCH glob, honouring backslash escapes."""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


class _FakePipeline:
    def __init__(self, redis: FakeRedis):
        self._redis = redis
        self._commands: list[tuple[str, tuple[Any, ...]]] = []

    async def __aenter__(self) -> _FakePipeline:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self._commands = []

    def incr(self, key: str) -> _FakePipeline:
        self._commands.append(("incr", (key,)))
        return self

    def ttl(self, key: str) -> _FakePipeline:
        self._commands.append(("ttl", (key,)))
        return self

    async def execute(self) -> list[Any]:
        await self._redis._enter()
        results = [self._redis._apply(name, *args) for name, args in self._commands]
        self._commands = []
        return results


class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis``.

    Set ``down`` to make every command raise a connection error, or
    ``latency`` to delay every command.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.down = False
        self.latency = 0.0
        self.closed = False
        self.commands: list[str] = []
        # key -> (value, absolute expiry or None)
        self._data: dict[str, tuple[bytes, float | None]] = {}

    async def _enter(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.down:
            raise RedisConnectionError("Connection refused")

    def _live(self, key: str) -> tuple[bytes, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at = entry[1]
        if expires_at is not None and expires_at <= self.clock():
            del self._data[key]
            return None
        return entry

    def _apply(self, name: str, *args: Any) -> Any:
        self.commands.append(name)
        if name == "incr":
            (key,) = args
            entry = self._live(key)
            count = int(entry[0]) + 1 if entry else 1
            self._data[key] = (str(count).encode(), entry[1] if entry else None)
            return count
        if name == "ttl":
            (key,) = args
            entry = self._live(key)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return math.ceil(entry[1] - self.clock())
        raise NotImplementedError(name)

    # Snapshot helpers for assertions
    def keys(self) -> list[str]:
        return [key for key in list(self._data) if self._live(key) is not None]

    def raw(self, key: str) -> bytes | None:
        entry = self._live(key)
        return entry[0] if entry else None

    # Commands
    async def ping(self) -> bool:
        await self._enter()
        return True

    async def get(self, key: str) -> bytes | None:
        await self._enter()
        self.commands.append("get")
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: bytes | str, ex: int | None = None) -> bool:
        await self._enter()
        self.commands.append("set")
        data = value.encode() if isinstance(value, str) else value
        self._data[key] = (data, self.clock() + ex if ex else None)
        return True

    async def delete(self, *keys: str | bytes) -> int:
        await self._enter()
        self.commands.append("delete")
        removed = 0
        for key in keys:
            name = key.decode() if isinstance(key, bytes) else key
            if self._live(name) is not None:
                del self._data[name]
                removed += 1
        return removed

    async def exists(self, key: str) -> int:
        await self._enter()
        self.commands.append("exists")
        return 1 if self._live(key) is not None else 0

    async def ttl(self, key: str) -> int:
        await self._enter()
        return self._apply("ttl", key)

    async def expire(self, key: str, seconds: int) -> bool:
        await self._enter()
        self.commands.append("expire")
        entry = self._live(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self.clock() + seconds)
        return True

    async def incr(self, key: str) -> int:
        await self._enter()
        return self._apply("incr", key)

    async def scan_iter(self, match: str = "*", count: int | None = None) -> AsyncIterator[bytes]:
        await self._enter()
        self.commands.append("scan")
        regex = _glob_to_regex(match)
        for key in [k for k in self.keys() if regex.match(k)]:
            yield key.encode()

    def pipeline(self, transaction: bool = True) -> _FakePipeline:
        return _FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def store(fake_redis: FakeRedis, clock: FakeClock) -> CacheStore:
    return CacheStore(client=fake_redis, clock=clock, command_timeout=1.0)


@pytest.fixture
def cache_context(store: CacheStore) -> CacheContext:
    return CacheContext.create(store)


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(redis_url="redis://cache.test:6379/0", env="dev", log_level="WARNING")


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory for valid product records."""

    def _make(**overrides: Any) -> Product:
        fields: dict[str, Any] = {
            "name": "Nebula 15 Gaming Laptop",
            "description": "RTX graphics, 165Hz display",
            "price": 1499.0,
            "category": "GAMING_LAPTOP",
            "brand": "Nebula",
            "image_url": "https://img.test/nebula15.png",
            "stock": 10,
        }
        fields.update(overrides)
        return Product(**fields)

    return _make


@pytest.fixture
def product_repo(record_store: InMemoryRecordStore) -> ProductRepository:
    return ProductRepository(record_store)


@pytest.fixture
def cart_repo(record_store: InMemoryRecordStore) -> CartRepository:
    return CartRepository(record_store)


@pytest.fixture
def order_repo(record_store: InMemoryRecordStore) -> OrderRepository:
    return OrderRepository(record_store)


@pytest.fixture
def product_service(product_repo: ProductRepository, cache_context: CacheContext) -> ProductService:
    return ProductService(product_repo, cache_context.products, cache_context.invalidation)


@pytest.fixture
def cart_service(
    cart_repo: CartRepository,
    product_repo: ProductRepository,
    cache_context: CacheContext,
) -> CartService:
    return CartService(cart_repo, product_repo, cache_context.carts, cache_context.invalidation)


@pytest.fixture
def order_service(
    record_store: InMemoryRecordStore,
    order_repo: OrderRepository,
    cart_repo: CartRepository,
    product_repo: ProductRepository,
    cache_context: CacheContext,
) -> OrderService:
    return OrderService(
        record_store,
        order_repo,
        cart_repo,
        product_repo,
        LocalPaymentIntentProvider(),
        cache_context.invalidation,
    )


@pytest_asyncio.fixture
async def app_client(
    test_settings: Settings,
    cache_context: CacheContext,
    record_store: InMemoryRecordStore,
) -> AsyncIterator[AsyncClient]:
    """API client over an app wired to the fake cache and in-memory records."""
    from storefront.api.app import create_app

    app = create_app(test_settings, cache=cache_context, record_store=record_store)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
