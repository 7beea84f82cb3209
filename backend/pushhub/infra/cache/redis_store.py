"""Redis key-value store for device tokens and gateway credentials."""
import logging
from typing import Optional

import redis.asyncio as redis

from pushhub.settings import settings

logger = logging.getLogger(__name__)


class RedisStore:
    """Thin async wrapper over redis.asyncio implementing KeyValueStore."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.redis_url
        self._redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis."""
        self._redis = redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()
        logger.info("Connected to Redis at %s", self.url)

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> redis.Redis:
        if not self._redis:
            await self.connect()
        return self._redis

    async def ping(self) -> bool:
        client = await self._client()
        return await client.ping()

    async def get(self, key: str) -> Optional[str]:
        client = await self._client()
        return await client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        client = await self._client()
        await client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> int:
        client = await self._client()
        return await client.delete(key)

    async def hset(self, key: str, field: str, value: str) -> None:
        client = await self._client()
        await client.hset(key, field, value)

    async def hgetall(self, key: str) -> dict[str, str]:
        client = await self._client()
        return await client.hgetall(key)

    async def hdel(self, key: str, *fields: str) -> int:
        client = await self._client()
        return await client.hdel(key, *fields)

    async def expire(self, key: str, ttl: int) -> None:
        client = await self._client()
        await client.expire(key, ttl)
