"""JSON values in Redis with per-key expiry"""
from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis

from docvault.infrastructure.config.settings import Settings, get_settings
from docvault.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class CacheService:
    """
    Best-effort cache in front of the group membership lookups.

    Nothing here raises. With Redis disabled, unreachable, or failing
    mid-call, reads are misses and writes report False, so the caller goes
    to the database instead.
    """

    def __init__(self, settings: Settings | None = None, redis_client: redis.Redis | None = None):
        self.settings = settings or get_settings()
        self.redis = redis_client
        self._connected = redis_client is not None

    def is_available(self) -> bool:
        return self._connected and self.redis is not None

    async def connect(self) -> None:
        """Open and ping the configured server; a failure leaves the cache off"""
        if self.redis is not None or not self.settings.redis_enabled:
            return

        client = redis.Redis(
            host=self.settings.redis_host,
            port=self.settings.redis_port,
            db=self.settings.redis_db,
            password=self.settings.redis_password or None,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning("Redis at %s:%s unreachable, caching off: %s",
                           self.settings.redis_host, self.settings.redis_port, e)
            return

        self.redis = client
        self._connected = True
        logger.info("Redis cache at %s:%s", self.settings.redis_host, self.settings.redis_port)

    async def disconnect(self) -> None:
        if self.redis is None:
            return
        await self.redis.aclose()
        self.redis = None
        self._connected = False
        logger.info("Redis cache closed")

    async def get(self, key: str) -> Any | None:
        if not self.is_available():
            return None
        try:
            raw = await self.redis.get(key)
        except redis.RedisError as e:
            logger.error("Cache read failed for %s: %s", key, e)
            return None
        logger.debug("Cache %s: %s", "miss" if raw is None else "hit", key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        if not self.is_available():
            return False
        try:
            await self.redis.setex(key, ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.error("Cache write failed for %s: %s", key, e)
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            await self.redis.delete(key)
        except redis.RedisError as e:
            logger.error("Cache delete failed for %s: %s", key, e)
            return False
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """
        Drop every key matching a glob pattern such as
        ``group_member:user-123:*``.

        Returns:
            How many keys were removed (0 when the cache is off)
        """
        if not self.is_available():
            return 0
        removed = 0
        try:
            async for key in self.redis.scan_iter(match=pattern):
                await self.redis.delete(key)
                removed += 1
        except redis.RedisError as e:
            logger.error("Cache invalidation of %s stopped after %d keys: %s", pattern, removed, e)
        if removed:
            logger.info("Cache invalidated %s (%d keys)", pattern, removed)
        return removed
