"""Product cache invalidation.

Product detail and list views are cached in Redis by the catalog
service. Stock changes here must drop those entries. An empty
``redis_url`` disables the cache; cache errors are logged, never raised.
"""

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from storefront.infrastructure.config import settings

logger = structlog.get_logger()

PRODUCT_ITEM_KEY = "products:item:{product_id}"
PRODUCT_LIST_PATTERN = "products:list:*"


class ProductCache:
    """Invalidates cached product views."""

    def __init__(self, redis_url: str | None = None, client: aioredis.Redis | None = None) -> None:
        """Initialize product cache.

        Args:
            redis_url: Redis URL; empty disables the cache.
            client: Pre-built client (for testing).
        """
        self._redis_url = settings.redis_url if redis_url is None else redis_url
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or bool(self._redis_url)

    def _get_client(self) -> aioredis.Redis | None:
        """Get or create Redis client."""
        if self._client is None and self._redis_url:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def invalidate_product(self, product_id: str) -> None:
        """Drop the product's detail entry and every list entry."""
        client = self._get_client()
        if client is None:
            return
        try:
            await client.delete(PRODUCT_ITEM_KEY.format(product_id=product_id))
            keys = [key async for key in client.scan_iter(match=PRODUCT_LIST_PATTERN)]
            if keys:
                await client.delete(*keys)
            logger.debug("product_cache_invalidated", product_id=product_id, list_keys=len(keys))
        except (RedisError, OSError) as e:
            logger.warning("product_cache_invalidation_failed", product_id=product_id, error=str(e))

    async def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global cache instance
_product_cache: ProductCache | None = None


def get_product_cache() -> ProductCache:
    """Get product cache singleton."""
    global _product_cache
    if _product_cache is None:
        _product_cache = ProductCache()
    return _product_cache


def reset_product_cache() -> None:
    """Reset product cache (for testing)."""
    global _product_cache
    _product_cache = None
