"""Cache service with Redis (shared) or in-memory (single process) backend.

Holds memoized durable-step results. In-memory is sufficient for a single
process; Redis lets a restarted process replay a run's completed steps.
"""

import json
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis

from nodeflow.core.config import Settings
from nodeflow.core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)


class CacheService:
    """Async cache service with Redis or in-memory backend.

    Backend selection:
    - Redis: When NODEFLOW_REDIS_ENABLED=true and a URL is set
    - Memory: Otherwise, or if Redis is unreachable at startup
    """

    def __init__(self, settings: Settings, client: Optional[redis.Redis] = None):
        self.settings = settings
        self.redis: Optional[redis.Redis] = client
        # key -> (value, expires_at)
        self.memory_cache: Dict[str, Tuple[Any, Optional[float]]] = {}
        self.use_redis = client is not None or settings.use_redis

    async def startup(self):
        """Initialize cache connection."""
        if self.redis is not None:
            logger.info("Using provided Redis client")
            return

        if self.use_redis:
            try:
                self.redis = redis.from_url(
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=5,
                    socket_connect_timeout=5,
                    retry_on_timeout=True
                )
                await self.redis.ping()
                logger.info("Redis cache initialized", url=self.settings.redis_url)
            except Exception as e:
                logger.warning("Redis connection failed, falling back to memory", error=str(e))
                self.use_redis = False
                self.redis = None
        else:
            logger.info("Using in-memory cache", redis_enabled=self.settings.redis_enabled)

    async def shutdown(self):
        """Close cache connections."""
        if self.redis:
            await self.redis.aclose()
            logger.info("Redis cache connections closed")

        self.memory_cache.clear()

    def _prune_expired(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self.memory_cache.items()
                   if expires_at is not None and expires_at <= now]
        for k in expired:
            del self.memory_cache[k]

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        try:
            if self.use_redis and self.redis:
                value = await self.redis.get(key)
                log_cache_operation(logger, "get", key, hit=value is not None)
                return json.loads(value) if value is not None else None

            entry = self.memory_cache.get(key)
            if entry is not None:
                value, expires_at = entry
                if expires_at is not None and expires_at <= time.time():
                    del self.memory_cache[key]
                    entry = None
            log_cache_operation(logger, "get", key, hit=entry is not None)
            return entry[0] if entry is not None else None

        except Exception as e:
            logger.error("Cache get failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with optional TTL."""
        try:
            ttl = ttl or self.settings.step_result_ttl

            if self.use_redis and self.redis:
                serialized = json.dumps(value, default=str)
                await self.redis.setex(key, ttl, serialized)
            else:
                now = time.time()
                self._prune_expired(now)
                self.memory_cache[key] = (value, now + ttl)

            log_cache_operation(logger, "set", key, ttl=ttl)
            return True

        except Exception as e:
            logger.error("Cache set failed", key=key, error=str(e))
            return False

    async def clear_pattern(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns number removed."""
        try:
            if self.use_redis and self.redis:
                keys = [key async for key in self.redis.scan_iter(match=f"{prefix}*")]
                removed = await self.redis.delete(*keys) if keys else 0
            else:
                keys = [key for key in self.memory_cache if key.startswith(prefix)]
                for key in keys:
                    del self.memory_cache[key]
                removed = len(keys)

            log_cache_operation(logger, "clear_pattern", prefix, removed=removed)
            return removed

        except Exception as e:
            logger.error("Cache clear failed", prefix=prefix, error=str(e))
            return 0
