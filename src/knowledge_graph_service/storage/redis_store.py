# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Redis implementation of the key-value store.

Provides:
- Connection pooling via ``redis.asyncio``
- Key prefixing so the graph can share a Redis instance
- Bounded retry with exponential backoff for connection/timeout errors

Unlike a cache, a failed read here is never reported as a miss: every backend
error surfaces as ``StoreUnavailableError``.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import StoreUnavailableError
from .base import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class RedisKeyValueStore(KeyValueStore):
    """
    Redis-backed key-value store.

    Values are stored as strings; TTLs map to ``SET ... EX``, or ``SET ... KEEPTTL``
    followed by ``EXPIRE ... NX`` (Redis 7+) when the existing expiry is kept.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        key_prefix: str = "kg:",
        max_connections: int = 10,
        password: str | None = None,
        retry_attempts: int = 3,
    ):
        """
        Initialize Redis store.

        Args:
            url: Redis connection URL
            key_prefix: Prefix for all keys
            max_connections: Maximum Redis connections in pool
            password: Optional password overriding the URL credentials
            retry_attempts: Attempts for connection/timeout errors before giving up
        """
        self.url = url
        self.key_prefix = key_prefix
        self.max_connections = max_connections
        self.password = password
        self.retry_attempts = retry_attempts

        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize Redis connection pool and check connectivity."""
        if self._initialized:
            return

        pool_kwargs = {"max_connections": self.max_connections, "decode_responses": True}
        if self.password:
            pool_kwargs["password"] = self.password
        self._pool = ConnectionPool.from_url(self.url, **pool_kwargs)
        self._redis = Redis(connection_pool=self._pool)

        try:
            await self._redis.ping()
            self._initialized = True
            logger.info(f"RedisKeyValueStore initialized: {self.url} (prefix={self.key_prefix})")
        except RedisError as e:
            logger.error(f"RedisKeyValueStore initialization failed: {e}")
            await self.close()
            raise StoreUnavailableError(f"Redis unavailable at {self.url}") from e

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

        if self._pool:
            await self._pool.aclose()
            self._pool = None

        self._initialized = False

    def _make_key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self.key_prefix}{key}"

    def _client(self) -> Redis:
        if not self._initialized or self._redis is None:
            raise StoreUnavailableError("Redis store not initialized. Call initialize() first.")
        return self._redis

    async def _call(self, op: str, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` with retry on transient errors; map failures to StoreUnavailableError."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
                reraise=True,
            ):
                with attempt:
                    return await fn()
        except RedisError as e:
            logger.error(f"Redis {op} failed for key {key}: {e}")
            raise StoreUnavailableError(f"Store {op} failed") from e
        raise StoreUnavailableError(f"Store {op} failed")

    async def get(self, key: str) -> str | None:
        client = self._client()
        return await self._call("get", key, lambda: client.get(self._make_key(key)))

    async def put(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
        keep_ttl: bool = False,
    ) -> None:
        client = self._client()
        redis_key = self._make_key(key)

        if not keep_ttl:
            kwargs = {"ex": ttl_seconds} if ttl_seconds is not None else {}
            await self._call("put", key, lambda: client.set(redis_key, value, **kwargs))
            return

        async def set_keeping_ttl() -> None:
            await client.set(redis_key, value, keepttl=True)
            if ttl_seconds is not None:
                # KEEPTTL on a key that expired after it was read leaves it with no expiry
                await client.expire(redis_key, ttl_seconds, nx=True)

        await self._call("put", key, set_keeping_ttl)

    async def delete(self, key: str) -> None:
        client = self._client()
        await self._call("delete", key, lambda: client.delete(self._make_key(key)))

    async def ping(self) -> bool:
        if not self._initialized or self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
