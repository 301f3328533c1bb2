"""
Redis client for Meetspace caching.
Cache failures are logged and behave like misses.
"""

import hashlib
import json
import logging
from typing import Any, Optional, Dict

import redis.asyncio as redis
from redis.asyncio import Redis

from ..core.config import config

logger = logging.getLogger(__name__)


class RedisConnection:
    """
    Shared Redis client. The API runs without it when Redis is down.
    """

    def __init__(self):
        self.redis_client: Optional[Redis] = None
        self._initialized = False

    async def initialize(self, redis_url: Optional[str] = None):
        if self._initialized:
            return

        try:
            url = redis_url or await config.get_redis_url()
            self.redis_client = redis.from_url(
                url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )
            await self.redis_client.ping()
            self._initialized = True
            logger.info("Event cache connected to Redis")

        except Exception as e:
            logger.error(f"Could not connect event cache to Redis: {e}")
            raise

    def get_manager(self) -> "RedisConnection":
        if not self._initialized:
            raise RuntimeError("Event cache is not connected")
        return self

    async def health_check(self) -> bool:
        if not self._initialized:
            return False
        try:
            return bool(await self.redis_client.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self):
        if self.redis_client:
            await self.redis_client.close()
            logger.info("Event cache disconnected")


class CacheManager:
    """
    TTL cache for event reads.

    List pages are keyed by a digest of the normalized filters; related-event
    blocks by event id. Every event mutation drops both families.
    """

    LIST_PATTERN = "events:list:*"
    RELATED_PATTERN = "event:related:*"

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.cache_config: Dict[str, int] = {}

    async def initialize(self):
        """Load TTL configuration."""
        self.cache_config = await config.get_cache_config()

    async def _read(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except Exception as e:
            logger.error(f"Event cache read failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    async def _write(self, key: str, payload: Any, ttl: int) -> bool:
        try:
            await self.redis.set(key, json.dumps(payload, default=str), ex=ttl)
            return True
        except Exception as e:
            logger.error(f"Event cache write failed for {key}: {e}")
            return False

    async def _drop(self, pattern: str) -> int:
        """
        Delete every key matching ``pattern``.

        Returns:
            Number of keys deleted
        """
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            return await self.redis.delete(*keys) if keys else 0
        except Exception as e:
            logger.error(f"Event cache invalidation failed for {pattern}: {e}")
            return 0

    def get_events_list_key(self, filters: Dict[str, Any]) -> str:
        """Stable key for a list query."""
        digest = hashlib.sha1(
            json.dumps(filters, sort_keys=True, default=str).encode("utf-8")
        ).hexdigest()
        return f"events:list:{digest}"

    def get_related_key(self, event_id: int) -> str:
        return f"event:related:{event_id}"

    async def cache_events_list(self, filters: Dict[str, Any], payload: dict):
        await self._write(
            self.get_events_list_key(filters), payload, self.cache_config.get("events_ttl", 300)
        )

    async def get_cached_events_list(self, filters: Dict[str, Any]) -> Optional[dict]:
        return await self._read(self.get_events_list_key(filters))

    async def cache_related_events(self, event_id: int, payload: dict):
        await self._write(
            self.get_related_key(event_id), payload, self.cache_config.get("event_details_ttl", 600)
        )

    async def get_cached_related_events(self, event_id: int) -> Optional[dict]:
        return await self._read(self.get_related_key(event_id))

    async def invalidate_event_cache(self, event_id: Optional[int] = None):
        """
        Invalidate cached reads after an event mutation.
        Related-event lists of other events may embed this one, so all of
        them are dropped along with list pages.
        """
        await self._drop(self.RELATED_PATTERN)
        await self._drop(self.LIST_PATTERN)
        logger.debug(f"Invalidated event caches (event_id={event_id})")


# Global Redis connection
redis_connection = RedisConnection()
