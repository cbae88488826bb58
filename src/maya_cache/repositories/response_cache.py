"""In-memory implementation of ResponseStore.

Bounded key→value cache for LLM responses with hybrid LRU + TTL eviction
and proactive memory-pressure offload. It satisfies the ResponseStore
protocol.
"""

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from loguru import logger

from maya_cache.config import settings
from maya_cache.entities import CacheEntryEntity, CacheStatsEntity
from maya_cache.errors import require_key


def estimate_size(value: Any) -> int:
    """Approximate the memory footprint of a cached value in bytes.

    Bytes count as their length, text as its UTF-8 length, anything else as
    the length of its JSON encoding.
    """
    if isinstance(value, bytes | bytearray | memoryview):
        return len(value)
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    return len(json.dumps(value, default=str, ensure_ascii=False).encode("utf-8"))


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class ResponseCache:
    """Bounded LRU + TTL cache with memory-pressure offload.

    This class satisfies the ResponseStore protocol through structural
    typing - no explicit inheritance needed.

    Eviction rules:
    - TTL wins: an expired entry is never returned, even if most recent
    - Among live entries, the oldest ``last_accessed_at`` goes first; ties
      go to the earliest inserted entry, and a hit always counts as more
      recent than any earlier insert
    - When bytes exceed ``offload_threshold * max_bytes`` after a write,
      expired entries are purged first, then the coldest live entries are
      evicted until bytes are at or below ``offload_watermark * max_bytes``

    All bookkeeping happens under one lock, so the cache can be shared by
    request-handling threads and the maintenance task.

    Example:
        ```python
        cache = ResponseCache.create(max_entries=3, default_ttl_ms=10_000)
        cache.set("k", "reply")
        cache.get("k")  # "reply"
        cache.stats().hits  # 1
        ```
    """

    def __init__(
        self,
        max_entries: int,
        max_bytes: int,
        default_ttl_ms: int,
        offload_threshold: float | None,
        offload_watermark: float | None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the response cache.

        Args:
            max_entries: Maximum number of entries (0 = unbounded).
            max_bytes: Byte budget (0 = unbounded).
            default_ttl_ms: Lifetime of entries stored without an explicit TTL.
            offload_threshold: Byte fraction above which offload starts (None disables).
            offload_watermark: Byte fraction offload evicts down to (None disables).
            clock: Millisecond clock, defaults to ``time.monotonic``.

        Raises:
            ValueError: If the bounds or fractions are inconsistent
        """
        if max_entries < 0 or max_bytes < 0:
            raise ValueError("max_entries and max_bytes must not be negative")
        if max_entries == 0 and max_bytes == 0:
            raise ValueError("At least one of max_entries or max_bytes must be positive")
        if default_ttl_ms <= 0:
            raise ValueError("default_ttl_ms must be positive")
        if (offload_threshold is None) != (offload_watermark is None):
            raise ValueError("offload_threshold and offload_watermark must be set together")
        if offload_threshold is not None and offload_watermark is not None:
            if not 0 < offload_watermark < offload_threshold <= 1:
                raise ValueError(
                    "Offload fractions must satisfy 0 < offload_watermark < offload_threshold <= 1"
                )

        self._max_entries = max_entries
        self._max_bytes = max_bytes
        self._default_ttl_ms = default_ttl_ms
        self._offload_threshold = offload_threshold
        self._offload_watermark = offload_watermark
        self._clock = clock or _monotonic_ms

        # Ordered by recency: first item is least recently used
        self._entries: OrderedDict[str, CacheEntryEntity] = OrderedDict()
        self._size_bytes = 0
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._offloads = 0

    @classmethod
    def create(
        cls,
        max_entries: int | None = None,
        max_bytes: int | None = None,
        default_ttl_ms: int | None = None,
        offload_threshold: float | None = None,
        offload_watermark: float | None = None,
        clock: Callable[[], float] | None = None,
    ) -> "ResponseCache":
        """Factory method to create ResponseCache with defaults from settings.

        Offload fractions fall back to settings only when both are omitted,
        so passing neither keeps the configured policy.

        Example:
            ```python
            # Use defaults from settings
            cache = ResponseCache.create()

            # Entry-bounded cache without offload
            cache = ResponseCache.create(max_entries=100, max_bytes=0)
            ```
        """
        if offload_threshold is None and offload_watermark is None:
            offload_threshold = settings.cache_offload_threshold
            offload_watermark = settings.cache_offload_watermark

        return cls(
            max_entries=settings.cache_max_entries if max_entries is None else max_entries,
            max_bytes=settings.cache_max_bytes if max_bytes is None else max_bytes,
            default_ttl_ms=default_ttl_ms or settings.cache_default_ttl_ms,
            offload_threshold=offload_threshold,
            offload_watermark=offload_watermark,
            clock=clock,
        )

    def get(self, key: str) -> Any | None:
        """Return the cached value and refresh its recency.

        Args:
            key: The request fingerprint

        Returns:
            The cached value, or None on a miss (absent or expired)

        Raises:
            InvalidKeyError: If the key is empty or not a string
        """
        require_key(key)
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(now):
                self._remove_locked(key)
                self._expirations += 1
                self._misses += 1
                return None

            entry.touch(now)
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl_ms: int | None = None,
        size_bytes: int | None = None,
    ) -> None:
        """Insert or replace an entry, evicting as needed.

        Args:
            key: The request fingerprint
            value: The response payload
            ttl_ms: Entry lifetime in milliseconds, defaults to ``default_ttl_ms``
            size_bytes: Explicit footprint, estimated from the value if None

        Raises:
            InvalidKeyError: If the key is empty or not a string
            ValueError: If the value is None, or the TTL or size is invalid
        """
        require_key(key)
        if value is None:
            raise ValueError("None cannot be cached; it is the miss value")
        if ttl_ms is not None and (isinstance(ttl_ms, bool) or ttl_ms <= 0):
            raise ValueError(f"ttl_ms must be a positive integer, got {ttl_ms!r}")
        if size_bytes is not None and size_bytes < 0:
            raise ValueError(f"size_bytes must not be negative, got {size_bytes!r}")

        size = estimate_size(value) if size_bytes is None else size_bytes

        with self._lock:
            now = self._clock()
            if key in self._entries:
                # Replacement is not an eviction
                self._remove_locked(key)

            if self._max_bytes and size > self._max_bytes:
                logger.warning(
                    f"Response cache: entry of {size} bytes exceeds budget of "
                    f"{self._max_bytes} bytes, not cached"
                )
                return

            self._entries[key] = CacheEntryEntity(
                key=key,
                value=value,
                created_at=now,
                last_accessed_at=now,
                ttl_ms=ttl_ms or self._default_ttl_ms,
                size_bytes=size,
            )
            self._size_bytes += size

            if self._over_capacity_locked():
                self._purge_expired_locked(now)
                evicted = 0
                while self._over_capacity_locked() and self._evict_lru_locked(protected=key):
                    evicted += 1
                if evicted:
                    logger.debug(f"Response cache: evicted {evicted} entries over capacity")

            if self._over_offload_threshold_locked():
                self._offload_locked(protected=key, now=now)

    def delete(self, key: str) -> bool:
        """Delete a specific entry.

        Returns:
            True if the entry existed, False otherwise
        """
        require_key(key)
        with self._lock:
            if key not in self._entries:
                return False
            self._remove_locked(key)
            return True

    def stats(self) -> CacheStatsEntity:
        """Return a read-only snapshot of counters and occupancy."""
        with self._lock:
            return CacheStatsEntity(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                offloads=self._offloads,
                entries=len(self._entries),
                size_bytes=self._size_bytes,
                max_entries=self._max_entries,
                max_bytes=self._max_bytes,
            )

    def clear(self) -> int:
        """Drop all entries. Counters are preserved.

        Returns:
            Number of entries dropped
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._size_bytes = 0
        logger.info(f"Response cache: cleared {count} entries")
        return count

    def reset_stats(self) -> None:
        """Zero all counters (administrative)."""
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0
            self._offloads = 0

    def sweep_expired(self) -> int:
        """Remove all entries whose TTL has elapsed, regardless of pressure.

        Safe to run concurrently with itself and with reads: an entry that is
        already gone is skipped, never counted twice.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = self._purge_expired_locked(self._clock())
        if removed:
            logger.debug(f"Response cache: swept {removed} expired entries")
        return removed

    def provider_hints(self) -> dict[str, Any]:
        """Hints for the LLM provider about server-side KV cache offload.

        Returns:
            Dict with ``kv_cache_offload``, ``offload_strategy`` and
            ``cache_utilization``
        """
        utilization = self.stats().utilization
        return {
            "kv_cache_offload": self.offload_enabled and utilization > 0.5,
            "offload_strategy": "aggressive" if utilization > 0.7 else "balanced",
            "cache_utilization": utilization,
        }

    @property
    def offload_enabled(self) -> bool:
        return bool(self._max_bytes) and self._offload_threshold is not None

    @property
    def default_ttl_ms(self) -> int:
        return self._default_ttl_ms

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Membership check that does not touch stats or recency."""
        if not isinstance(key, str):
            return False
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    # Internal helpers; callers must hold self._lock

    def _remove_locked(self, key: str) -> CacheEntryEntity | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._size_bytes -= entry.size_bytes
        return entry

    def _over_capacity_locked(self) -> bool:
        if self._max_entries and len(self._entries) > self._max_entries:
            return True
        return bool(self._max_bytes) and self._size_bytes > self._max_bytes

    def _over_offload_threshold_locked(self) -> bool:
        if not self.offload_enabled:
            return False
        return self._size_bytes > self._offload_threshold * self._max_bytes  # type: ignore[operator]

    def _purge_expired_locked(self, now: float) -> int:
        # Snapshot the keys so removal never mutates the structure being iterated
        expired = [key for key, entry in list(self._entries.items()) if entry.is_expired(now)]
        for key in expired:
            if self._remove_locked(key) is not None:
                self._expirations += 1
        return len(expired)

    def _pick_victim_locked(self, protected: str | None = None) -> str | None:
        # Recency order: hits move to the end, so the first key is the coldest
        # and untouched entries keep their insertion order
        for key in self._entries:
            if key != protected:
                return key
        return None

    def _evict_lru_locked(self, protected: str | None = None) -> bool:
        key = self._pick_victim_locked(protected)
        if key is None:
            return False
        self._remove_locked(key)
        self._evictions += 1
        return True

    def _offload_locked(self, protected: str, now: float) -> None:
        # Dead entries go before live ones and count as expirations
        self._purge_expired_locked(now)
        if not self._over_offload_threshold_locked():
            return

        target = self._offload_watermark * self._max_bytes  # type: ignore[operator]
        before = self._size_bytes
        offloaded = 0
        while self._size_bytes > target and self._evict_lru_locked(protected=protected):
            offloaded += 1
        self._offloads += offloaded
        logger.info(
            f"Response cache: offloaded {offloaded} entries under memory pressure "
            f"({before} -> {self._size_bytes} bytes, budget {self._max_bytes})"
        )
