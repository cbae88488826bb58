"""Cache entry domain entity."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntryEntity:
    """Domain entity for a cached LLM response.

    Mutable only through access-time updates performed inside ResponseCache.

    Attributes:
        key: Fingerprint of the request (hash of normalized context + params)
        value: Opaque response payload
        created_at: Insertion time in milliseconds (cache clock)
        last_accessed_at: Last hit time in milliseconds (cache clock)
        ttl_ms: Lifetime of this entry in milliseconds
        size_bytes: Approximate memory footprint used for pressure accounting
        access_count: Number of hits served by this entry
    """

    key: str
    value: Any
    created_at: float
    last_accessed_at: float
    ttl_ms: int
    size_bytes: int
    access_count: int = 0

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_ms

    def is_expired(self, now: float) -> bool:
        """Check whether the entry is past its TTL at ``now``."""
        return now >= self.expires_at

    def touch(self, now: float) -> None:
        self.last_accessed_at = now
        self.access_count += 1
