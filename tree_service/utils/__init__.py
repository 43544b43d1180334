from .cache import CacheProvider, MemoryCacheProvider, cache_key
from .redis_cache import RedisCacheProvider, create_cache_provider

__all__ = [
    "CacheProvider",
    "MemoryCacheProvider",
    "cache_key",
    "RedisCacheProvider",
    "create_cache_provider",
]
