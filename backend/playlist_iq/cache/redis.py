from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..core.config import Settings

logger = logging.getLogger("cache")

_CACHE_ERRORS = (RedisError, OSError, ValueError, TypeError)


class CacheService:
    """JSON values in redis with a TTL.

    The cache is an optimisation only: with no redis configured, or when redis
    misbehaves, ``get`` returns ``None`` and ``set``/``delete``/``ping`` return
    ``False``. Nothing here raises to the caller.
    """

    def __init__(self, client: Redis | None = None) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheService":
        if not settings.redis_url:
            logger.info("redis not configured, running without cache")
            return cls(None)
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
            )
        except ValueError as exc:
            logger.warning("invalid redis url, running without cache", extra={"error": str(exc)})
            return cls(None)
        return cls(client)

    @property
    def available(self) -> bool:
        return self.client is not None

    async def get(self, key: str) -> Any | None:
        if self.client is None:
            return None
        try:
            raw = await self.client.get(key)
            return json.loads(raw) if raw else None
        except _CACHE_ERRORS as exc:
            logger.warning("cache get failed", extra={"key": key, "error": str(exc)})
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        if self.client is None:
            return False
        try:
            payload = json.dumps(value)
            if ttl_seconds:
                await self.client.setex(key, ttl_seconds, payload)
            else:
                await self.client.set(key, payload)
            return True
        except _CACHE_ERRORS as exc:
            logger.warning("cache set failed", extra={"key": key, "error": str(exc)})
            return False

    async def delete(self, key: str) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.delete(key)
            return True
        except _CACHE_ERRORS as exc:
            logger.warning("cache delete failed", extra={"key": key, "error": str(exc)})
            return False

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except _CACHE_ERRORS:
            return False

    async def close(self) -> None:
        if self.client is not None:
            try:
                await self.client.aclose()
            except _CACHE_ERRORS as exc:
                logger.warning("cache close failed", extra={"error": str(exc)})
            self.client = None
