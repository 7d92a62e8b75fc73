"""
Short-lived LRU cache for ranked search results.

Entries hold the full ranked list for a query and option set; pagination
is applied by the caller on every hit, so limit/offset are not part of the key.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from cortex.core.logging import logger
from cortex.core.tracing import MetricsCollector
from cortex.models.search import SearchOptions, SearchResult


@dataclass
class CacheEntry:
    """A cached ranked list."""

    results: List[SearchResult]
    timestamp: float
    query: str
    options: Dict[str, Any]


class ResultCache:
    """
    LRU cache with TTL.

    Safe to share between threads: every map operation holds the lock.
    Concurrent writes of the same key are last-write-wins.
    """

    def __init__(
        self,
        ttl: float = 300,
        max_size: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize cache.

        Args:
            ttl: Time to live in seconds (default 5 minutes)
            max_size: Maximum number of cached queries
            clock: Monotonic seconds source, injectable for tests
        """
        self.ttl = ttl
        self.max_size = max_size
        self.clock = clock or time.monotonic
        self.cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.metrics = MetricsCollector()
        self._lock = threading.Lock()

        logger.debug("ResultCache initialized", max_size=max_size, ttl=ttl)

    @staticmethod
    def make_key(query: str, options: SearchOptions) -> str:
        """
        MD5 of the query plus every option except limit and offset.

        Args:
            query: Search query
            options: Search options

        Returns:
            Hex digest used as cache key
        """
        payload = json.dumps(options.cache_payload(), sort_keys=True, default=str)
        return hashlib.md5(f"{query}|{payload}".encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[List[SearchResult]]:
        """
        Cached results for ``key``, or None if missing or expired.
        """
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.metrics.increment("retrieval.cache.misses")
                return None

            if self.clock() - entry.timestamp > self.ttl:
                del self.cache[key]
                self.metrics.increment("retrieval.cache.misses")
                self.metrics.increment("retrieval.cache.expirations")
                logger.debug("Cache entry expired", query=entry.query[:50])
                return None

            self.cache.move_to_end(key)
            self.metrics.increment("retrieval.cache.hits")
            results = list(entry.results)

        logger.debug("Cache hit", query=entry.query[:50], results=len(results))
        return results

    def set(self, key: str, results: List[SearchResult], query: str, options: SearchOptions) -> None:
        """
        Store a full ranked list.

        Args:
            key: Key from make_key()
            results: Ranked results (all pages)
            query: Original query, kept for stats and debugging
            options: Options used to produce the results
        """
        entry = CacheEntry(
            results=list(results),
            timestamp=self.clock(),
            query=query,
            options=options.cache_payload(),
        )
        with self._lock:
            self.cache[key] = entry
            self.cache.move_to_end(key)

            while len(self.cache) > self.max_size:
                self.cache.popitem(last=False)
                self.metrics.increment("retrieval.cache.evictions")

            size = len(self.cache)
            self.metrics.gauge("retrieval.cache.size", size)

        logger.debug("Cached results", query=query[:50], results=len(results), cache_size=size)

    def cleanup_expired(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self.clock()
        with self._lock:
            expired = [key for key, entry in self.cache.items() if now - entry.timestamp > self.ttl]
            for key in expired:
                del self.cache[key]
            if expired:
                self.metrics.increment("retrieval.cache.expirations", len(expired))
            self.metrics.gauge("retrieval.cache.size", len(self.cache))

        if expired:
            logger.debug("Removed expired cache entries", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        """Clear the entire cache."""
        with self._lock:
            size = len(self.cache)
            self.cache.clear()
            self.metrics.increment("retrieval.cache.clears")
            self.metrics.gauge("retrieval.cache.size", 0)
        logger.info("Cleared result cache", entries_removed=size)

    def get_hit_rate(self) -> float:
        """
        Hit rate in [0.0, 1.0].
        """
        hits = self.metrics.get("retrieval.cache.hits")
        misses = self.metrics.get("retrieval.cache.misses")
        total = hits + misses
        if total == 0:
            return 0.0
        return hits / total

    def get_stats(self) -> Dict[str, Any]:
        """
        Cache statistics.

        Returns:
            Dict with size, limits, hit/miss counters and cached queries
        """
        with self._lock:
            size = len(self.cache)
            queries = [entry.query for entry in self.cache.values()]
        return {
            "size": size,
            "max_size": self.max_size,
            "ttl": self.ttl,
            "hits": self.metrics.get("retrieval.cache.hits"),
            "misses": self.metrics.get("retrieval.cache.misses"),
            "hit_rate": self.get_hit_rate(),
            "evictions": self.metrics.get("retrieval.cache.evictions"),
            "expirations": self.metrics.get("retrieval.cache.expirations"),
            "queries": queries,
        }
