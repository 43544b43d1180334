import json
import logging
from threading import Lock
from typing import Any, Dict, Optional

import redis

from tree_service.core.errors import CacheDegradedError
from tree_service.models.tree import PaginatedResult
from tree_service.utils.cache import (
    CACHE_KEY_PREFIX,
    DEFAULT_TTL_SECONDS,
    CacheProvider,
    MemoryCacheProvider,
    cache_key,
)

logger = logging.getLogger(__name__)


class RedisCacheProvider(CacheProvider):
    """Cache backed by Redis.

    Connectivity problems never reach the caller: reads degrade to a miss,
    writes and invalidation become no-ops. Only initialize() raises.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: Optional[redis.Redis] = None
    ):
        if client is not None:
            self._client = client
        elif redis_url:
            self._client = redis.Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5
            )
        else:
            self._client = redis.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5
            )
        self._ttl = int(ttl_seconds)
        self._hits = 0
        self._misses = 0
        self._stats_lock = Lock()

    def initialize(self) -> None:
        try:
            self._client.ping()
        except redis.RedisError as e:
            raise CacheDegradedError(f"Redis unreachable: {type(e).__name__}") from e

    def get(self, page: int, page_size: int) -> Optional[PaginatedResult]:
        try:
            data = self._client.get(cache_key(page, page_size))
        except redis.RedisError as e:
            logger.warning(f"[Cache] Redis read failed, treating as miss: {type(e).__name__}")
            self._record(hit=False)
            return None

        if not data:
            self._record(hit=False)
            return None

        try:
            result = PaginatedResult.from_dict(json.loads(data))
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning(f"[Cache] Discarding undecodable entry for page {page}/{page_size}")
            self._record(hit=False)
            return None

        self._record(hit=True)
        return result

    def put(self, page: int, page_size: int, result: PaginatedResult) -> None:
        try:
            self._client.setex(
                cache_key(page, page_size),
                self._ttl,
                json.dumps(result.to_dict(), ensure_ascii=False)
            )
        except redis.RedisError as e:
            logger.warning(f"[Cache] Redis write skipped: {type(e).__name__}")

    def invalidate_all(self) -> None:
        try:
            cursor = 0
            while True:
                cursor, keys = self._client.scan(cursor, match=f"{CACHE_KEY_PREFIX}*", count=100)
                if keys:
                    self._client.delete(*keys)
                if cursor == 0:
                    break
        except redis.RedisError as e:
            logger.warning(f"[Cache] Redis invalidation failed: {type(e).__name__}")

    def set_ttl(self, ttl_seconds: float) -> None:
        self._ttl = max(1, int(ttl_seconds))

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _record(self, hit: bool) -> None:
        with self._stats_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        try:
            info = self._client.info("memory")
            db_size = self._client.dbsize()
        except redis.RedisError:
            info = {}
            db_size = 0

        return {
            "backend": "redis",
            "db_size": db_size,
            "memory_used": info.get("used_memory_human", "N/A"),
            "hits": hits,
            "misses": misses,
            "hit_rate": f"{(hits / total * 100):.2f}%" if total > 0 else "0.00%",
            "ttl_seconds": self._ttl
        }


def create_cache_provider(
    redis_url: Optional[str] = None,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    max_size: int = 1000,
    fallback_to_memory: bool = True
) -> CacheProvider:
    """Build the configured cache provider, falling back to memory when Redis is down."""
    if redis_url:
        provider = RedisCacheProvider(redis_url=redis_url, ttl_seconds=ttl_seconds)
        try:
            provider.initialize()
            logger.info("[Cache] Connected to Redis")
            return provider
        except CacheDegradedError as e:
            logger.warning(f"[Cache] {e}")
            if not fallback_to_memory:
                raise
            logger.warning("[Cache] Falling back to in-memory cache")

    provider = MemoryCacheProvider(ttl_seconds=ttl_seconds, max_size=max_size)
    provider.initialize()
    return provider
