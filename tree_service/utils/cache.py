"""
Page-keyed cache for tree listings.
Entries are keyed by (page, page_size), expire after a TTL and are dropped
wholesale whenever the tree is mutated.
"""
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Dict, Optional

from tree_service.models.tree import PaginatedResult
from tree_service.utils.locks import ReadWriteLock

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "tree:"
DEFAULT_TTL_SECONDS = 300


def cache_key(page: int, page_size: int) -> str:
    return f"{CACHE_KEY_PREFIX}{page}:{page_size}"


class CacheProvider(ABC):
    """Interface every paginated cache backend implements."""

    @abstractmethod
    def initialize(self) -> None:
        pass

    @abstractmethod
    def get(self, page: int, page_size: int) -> Optional[PaginatedResult]:
        """Return the cached page, or None when absent or expired."""

    @abstractmethod
    def put(self, page: int, page_size: int, result: PaginatedResult) -> None:
        pass

    @abstractmethod
    def invalidate_all(self) -> None:
        pass

    @abstractmethod
    def set_ttl(self, ttl_seconds: float) -> None:
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        pass


class MemoryCacheProvider(CacheProvider):
    """In-process cache guarded by a reader-writer lock.

    Stored values are serialized copies, so callers can never mutate a
    cached page through a returned object.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            ttl_seconds: Time-to-live applied to subsequently stored pages
            max_size: Maximum number of cached pages, oldest entry is evicted first
            clock: Time source, seconds
        """
        self._entries: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = ReadWriteLock()
        self._stats_lock = Lock()
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._hits = 0
        self._misses = 0

    def initialize(self) -> None:
        return None

    def get(self, page: int, page_size: int) -> Optional[PaginatedResult]:
        key = cache_key(page, page_size)
        expired = False
        with self._lock.read_lock():
            entry = self._entries.get(key)
            if entry is not None and self._clock() < entry["expires_at"]:
                value = entry["value"]
            else:
                value = None
                expired = entry is not None

        if expired:
            with self._lock.write_lock():
                # a concurrent put may have refreshed the entry
                entry = self._entries.get(key)
                if entry is not None and self._clock() >= entry["expires_at"]:
                    del self._entries[key]

        with self._stats_lock:
            if value is None:
                self._misses += 1
            else:
                self._hits += 1

        if value is None:
            return None
        return PaginatedResult.from_dict(value)

    def put(self, page: int, page_size: int, result: PaginatedResult) -> None:
        key = cache_key(page, page_size)
        value = result.to_dict()
        with self._lock.write_lock():
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
            self._entries[key] = {
                "value": value,
                "expires_at": self._clock() + self._ttl
            }

    def invalidate_all(self) -> None:
        with self._lock.write_lock():
            self._entries.clear()

    def set_ttl(self, ttl_seconds: float) -> None:
        """Change the TTL; entries already stored get a fresh expiry too."""
        with self._lock.write_lock():
            self._ttl = ttl_seconds
            expires_at = self._clock() + ttl_seconds
            for entry in self._entries.values():
                entry["expires_at"] = expires_at

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get_stats(self) -> Dict[str, Any]:
        with self._lock.read_lock():
            size = len(self._entries)
        with self._stats_lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            "backend": "in-memory",
            "size": size,
            "max_size": self._max_size,
            "hits": hits,
            "misses": misses,
            "hit_rate": f"{(hits / total * 100):.2f}%" if total > 0 else "0.00%",
            "ttl_seconds": self._ttl
        }
