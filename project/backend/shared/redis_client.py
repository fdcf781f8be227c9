"""
Redis client.

Async Redis access for transient pipeline state and short-lived caches.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
from redis.exceptions import LockError

from shared.config import settings
from shared.errors import ConcurrencyExhaustedError, ConfigError, RetryableError
from shared.logging import get_logger

logger = get_logger("redis_client")


class RedisClient:
    """Async Redis client with key namespacing and JSON helpers."""

    def __init__(self, url: Optional[str] = None, prefix: str = "videostudio:"):
        """
        Initialize Redis client (connections are opened lazily by the pool).

        Args:
            url: Redis URL (defaults to settings.redis_url)
            prefix: Namespace prepended to every key
        """
        try:
            self.client: aioredis.Redis = aioredis.from_url(
                url or settings.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        except Exception as e:
            raise ConfigError(f"Failed to initialize Redis client: {str(e)}") from e
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        """Get a string value, or None if missing."""
        try:
            return await self.client.get(self._key(key))
        except Exception as e:
            raise RetryableError(f"Failed to get Redis key: {str(e)}") from e

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """Set a string value with an optional expiry in seconds."""
        try:
            await self.client.set(self._key(key), value, ex=ex)
            return True
        except Exception as e:
            raise RetryableError(f"Failed to set Redis key: {str(e)}") from e

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        try:
            return (await self.client.delete(self._key(key))) > 0
        except Exception as e:
            raise RetryableError(f"Failed to delete Redis key: {str(e)}") from e

    async def get_json(self, key: str) -> Optional[Any]:
        """
        Get and deserialize a JSON value.

        Raises:
            RetryableError: If the read fails or the stored value is not JSON
        """
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise RetryableError(f"Failed to decode JSON from Redis: {str(e)}") from e

    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> bool:
        """Serialize and store a JSON value."""
        return await self.set(key, json.dumps(data, default=str), ex=ttl)

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: Optional[float] = None,
        blocking_timeout: Optional[float] = None
    ) -> AsyncIterator[None]:
        """
        Hold a distributed lock for the duration of the block.

        Args:
            key: Lock name (namespaced like any other key)
            timeout: Seconds after which Redis expires a lock whose holder died
            blocking_timeout: Seconds to wait for the lock before giving up

        Raises:
            ConcurrencyExhaustedError: If the lock stayed held past blocking_timeout
            RetryableError: If Redis could not be reached
        """
        lock = self.client.lock(self._key(key), timeout=timeout, blocking_timeout=blocking_timeout)
        try:
            acquired = await lock.acquire()
        except Exception as e:
            raise RetryableError(f"Failed to acquire Redis lock: {str(e)}") from e
        if not acquired:
            raise ConcurrencyExhaustedError(
                "Another request is still working on this video, please retry",
                code="SESSION_BUSY"
            )
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Expired while held; whoever holds it now keeps it
                logger.warning(f"Redis lock released late: {str(e)}", extra={"lock": key})

    async def health_check(self) -> bool:
        """True if Redis answers PING."""
        try:
            await self.client.ping()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        await self.client.aclose()


# Singleton instance
redis_client = RedisClient()
