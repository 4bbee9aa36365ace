import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar, Union

import redis.asyncio as redis
from pydantic import BaseModel

from community_analytics.config import settings


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R")


class RedisClient:
    """
    Report cache on Redis.

    The cache is optional: every Redis failure is logged and turned into a
    miss (reads) or a no-op (writes). After a failed connection the client
    stays away from Redis for `unavailable_cooldown` seconds.
    """

    def __init__(self, redis_url: Optional[str] = None) -> None:
        self.redis_url = redis_url or str(settings.REDIS_URL)
        self.client: Optional[redis.Redis] = None
        self.default_ttl = settings.CACHE_TTL
        self.max_retries = 3
        self.retry_delay = 0.5
        self.unavailable_cooldown = 30.0
        self._unavailable_until = 0.0

    @property
    def in_cooldown(self) -> bool:
        return time.monotonic() < self._unavailable_until

    async def _open(self) -> Optional[redis.Redis]:
        try:
            client = redis.from_url(  # type: ignore[no-untyped-call]
                self.redis_url, decode_responses=True
            )
            if await client.ping():
                return client
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis at %s unreachable: %s", self.redis_url, e)
        return None

    async def connect(self, retry: bool = True) -> Optional[redis.Redis]:
        """
        Return the shared connection, opening it if needed.

        Args:
            retry: Retry with exponential backoff before giving up

        Returns:
            Redis client, or None while Redis is unavailable
        """
        if self.client is not None:
            return self.client
        if self.in_cooldown:
            return None

        attempts = self.max_retries + 1 if retry else 1
        for attempt in range(1, attempts + 1):
            client = await self._open()
            if client is not None:
                logger.info("Connected to Redis at %s", self.redis_url)
                self.client = client
                return client

            if attempt < attempts:
                wait_time = self.retry_delay * (2**attempt)
                logger.debug("Retrying Redis in %.2fs", wait_time)
                await asyncio.sleep(wait_time)

        self._unavailable_until = time.monotonic() + self.unavailable_cooldown
        logger.error(
            "Redis unavailable after %s attempt(s); caching disabled for %.0fs",
            attempts,
            self.unavailable_cooldown,
        )
        return None

    async def disconnect(self) -> None:
        """Close the shared connection, if any."""
        if self.client is None:
            return
        try:
            await self.client.close()
            logger.info("Disconnected from Redis")
        except redis.RedisError as e:
            logger.error("Error disconnecting from Redis: %s", e)
        finally:
            self.client = None

    async def _call(
        self,
        action: str,
        key: str,
        operation: Callable[[redis.Redis], Awaitable[R]],
        fallback: R,
    ) -> R:
        # Requests never wait on reconnect backoff
        client = await self.connect(retry=False)
        if client is None:
            logger.debug("Cache %s skipped for %s, Redis unavailable", action, key)
            return fallback

        try:
            return await operation(client)
        except redis.RedisError as e:
            logger.warning("Cache %s failed for %s: %s", action, key, e)
            return fallback

    async def get(self, key: str) -> Optional[str]:
        return await self._call("read", key, lambda c: c.get(key), None)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Store a string under `key`.

        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds until expiry, the client default if omitted

        Returns:
            bool: Whether Redis accepted the value
        """

        async def write(client: redis.Redis) -> bool:
            return bool(await client.set(key, value, ex=ttl or self.default_ttl))

        return await self._call("write", key, write, False)

    async def delete(self, key: str) -> int:
        return await self._call("delete", key, lambda c: c.delete(key), 0)

    async def get_object(
        self, key: str, model_class: Optional[type[M]] = None
    ) -> Optional[Union[dict[str, Any], M]]:
        """
        Read a JSON document.

        Args:
            key: Cache key
            model_class: Pydantic model to validate the document into

        Returns:
            The document, or None on a miss or an unreadable entry
        """
        raw = await self.get(key)
        if not raw:
            return None

        try:
            if model_class is not None:
                return model_class.model_validate_json(raw)
            data = json.loads(raw)
        except ValueError as e:
            # Stale schema or corrupt entry; both are misses
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            return None

        return data if isinstance(data, dict) else None

    async def set_object(
        self,
        key: str,
        value: Union[dict[str, Any], BaseModel],
        ttl: Optional[int] = None,
    ) -> bool:
        """Store a model or dict as a JSON document."""
        if isinstance(value, BaseModel):
            raw = value.model_dump_json()
        else:
            try:
                raw = json.dumps(value, default=str)
            except (TypeError, ValueError) as e:
                logger.warning("Cannot serialize %s for Redis: %s", key, e)
                return False

        return await self.set(key, raw, ttl)


redis_client = RedisClient()
