"""Redis caching service for coupon lookups.

This module provides a singleton Redis cache service with TTL support
and health checking. Every failure degrades to a cache miss.
"""

from typing import Optional
import structlog

from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from app.config import settings

logger = structlog.get_logger(__name__)


class CacheService:
    """Async Redis cache service.

    Provides simple key-value caching with TTL and graceful error
    handling. All methods are async.
    """

    def __init__(self, redis_url: str):
        """Initialize cache service.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)

        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Get a value from cache.

        Returns:
            Cached value as string, or None if not found or error
        """
        try:
            redis = await self._get_redis()
            value = await redis.get(key)

            if value:
                self.logger.debug("cache_hit", key=key)
            else:
                self.logger.debug("cache_miss", key=key)

            return value

        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Set a value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache (string)
            ttl: Time-to-live in seconds

        Returns:
            True if successful, False on error
        """
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
            self.logger.debug("cache_set", key=key, ttl=ttl, value_length=len(value))
            return True

        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e))
            return False

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True

        except RedisError as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection.

        This should be called on application shutdown.
        """
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


# Global cache instance
_cache_instance: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the global cache service instance."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = CacheService(settings.REDIS_URL)
        logger.info("cache_service_initialized", redis_url=settings.REDIS_URL)

    return _cache_instance


async def get_cache() -> CacheService:
    """FastAPI dependency for cache service.

    Usage:
        @router.get("/endpoint")
        async def endpoint(cache: CacheService = Depends(get_cache)):
            ...
    """
    return get_cache_service()


def cache_key_for_domain(domain: str) -> str:
    """Generate cache key for a domain's coupon list."""
    return f"coupons:{domain}"
