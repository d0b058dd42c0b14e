"""
Result Cache
============
Process-local, in-memory cache of catalog results keyed by request
parameters, with a fixed expiration window.

Features:
- 30 minute TTL measured from the moment an entry was stored
- Deterministic, collision-free keys across operation kinds
- Optional LRU bound for long-lived processes
- Hit/miss statistics

Usage:
    from app.utils.cache import ResultCache, make_key

    cache = ResultCache()
    key = make_key("movie", "popular", 1, 40)
    items = cache.get(key)
    if items is None:
        items = await fetch()
        cache.put(key, items)
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import quote
import logging

logger = logging.getLogger(__name__)

CACHE_EXPIRATION = timedelta(minutes=30)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_key(media_type: str, kind: str, *parts: Any) -> str:
    """
    Build a cache key such as ``movie:genre:28:1:popularity:desc``.

    String parts are URL-quoted so free text (search queries) can never
    introduce an extra ``:`` separator.
    """
    segments = [media_type, kind]
    for part in parts:
        if isinstance(part, bool):
            segments.append("desc" if part else "asc")
        elif isinstance(part, str):
            segments.append(quote(part, safe=""))
        else:
            segments.append(str(part))
    return ":".join(segments)


@dataclass(frozen=True)
class CacheEntry:
    items: tuple
    fetched_at: datetime


class ResultCache:
    """
    Key -> results map with a fixed expiration window.

    Expired entries are ignored by ``get`` and replaced by the next ``put``
    for the same key; there is no background sweep.
    """

    def __init__(
        self,
        ttl: timedelta = CACHE_EXPIRATION,
        max_size: Optional[int] = 1000,
        now: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            ttl: How long an entry stays servable
            max_size: LRU bound, ``None`` for an unbounded cache
            now: Clock used for ``fetched_at`` and expiry checks
        """
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._ttl = ttl
        self._max_size = max_size
        self._now = now
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[List[Any]]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._now() - entry.fetched_at >= self._ttl:
            logger.debug(f"Cache entry expired: {key}")
            self._misses += 1
            return None

        self._entries.move_to_end(key)
        self._hits += 1
        logger.debug(f"Cache hit: {key}")
        return list(entry.items)

    def put(self, key: str, items: Sequence[Any]) -> None:
        self._entries[key] = CacheEntry(items=tuple(items), fetched_at=self._now())
        self._entries.move_to_end(key)

        if self._max_size is not None and len(self._entries) > self._max_size:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            logger.debug(f"Evicted cache key: {oldest_key}")

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info("Result cache cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict:
        total_requests = self._hits + self._misses
        hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0

        return {
            'size': len(self._entries),
            'max_size': self._max_size,
            'hits': self._hits,
            'misses': self._misses,
            'hit_rate': f"{hit_rate:.2f}%"
        }
