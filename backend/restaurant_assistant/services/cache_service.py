"""
Cache Service for report API responses.

A short-lived in-memory cache in front of the report endpoints. A manager
asking follow-up questions about the same period triggers the same handful
of requests; caching them for a few seconds keeps the tool step fast without
serving meaningfully stale numbers.
"""

from typing import Dict, Any, Optional, Generic, TypeVar
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import threading

from restaurant_assistant.config import settings


T = TypeVar('T')


@dataclass
class CacheEntry(Generic[T]):
    """A single cached value with expiration."""
    value: T
    expires_at: datetime
    created_at: datetime = field(default_factory=datetime.utcnow)

    def is_expired(self) -> bool:
        return datetime.utcnow() > self.expires_at


class TTLCache(Generic[T]):
    """
    Thread-safe TTL cache with a size cap.

    Expired entries are dropped lazily on read and in bulk every
    `cleanup_interval` writes; when full, the oldest tenth is evicted.
    """

    def __init__(
        self,
        default_ttl_seconds: int = 30,
        max_size: int = 500,
        cleanup_interval: int = 50,
    ):
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._default_ttl = default_ttl_seconds
        self._max_size = max_size
        self._cleanup_interval = cleanup_interval
        self._writes_since_cleanup = 0
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0

    @property
    def enabled(self) -> bool:
        return self._default_ttl > 0

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired():
                del self._entries[key]
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: T, ttl_seconds: Optional[int] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return

        with self._lock:
            self._writes_since_cleanup += 1
            if self._writes_since_cleanup >= self._cleanup_interval:
                self._writes_since_cleanup = 0
                self._drop_expired()

            if len(self._entries) >= self._max_size:
                self._evict_oldest()

            self._entries[key] = CacheEntry(
                value=value,
                expires_at=datetime.utcnow() + timedelta(seconds=ttl),
            )

    def _drop_expired(self) -> None:
        now = datetime.utcnow()
        for key in [k for k, e in self._entries.items() if e.expires_at < now]:
            del self._entries[key]

    def _evict_oldest(self) -> None:
        by_age = sorted(self._entries.items(), key=lambda item: item[1].created_at)
        for key, _ in by_age[:max(1, len(by_age) // 10)]:
            del self._entries[key]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total > 0 else 0,
                "ttl_seconds": self._default_ttl,
            }


class CacheService:
    """Caches shared by the report tooling."""

    def __init__(self, report_ttl_seconds: Optional[int] = None):
        ttl = settings.report_cache_ttl_seconds if report_ttl_seconds is None else report_ttl_seconds
        # Raw JSON bodies keyed by request URL (query string included)
        self.report_cache: TTLCache[Any] = TTLCache(default_ttl_seconds=ttl, max_size=500)

    def get_report(self, url: str) -> Optional[Any]:
        return self.report_cache.get(f"report:{url}")

    def set_report(self, url: str, body: Any) -> None:
        self.report_cache.set(f"report:{url}", body)

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {"report_cache": self.report_cache.get_stats()}


# Singleton instance
cache_service = CacheService()
