"""Cache statistics snapshot entity."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class CacheStatsEntity:
    """Read-only snapshot of ResponseCache counters and occupancy.

    Counters only grow; they survive ``clear()`` and are zeroed only by an
    explicit ``reset_stats()``.

    Attributes:
        hits: Lookups served from cache
        misses: Lookups that found nothing usable (expired lookups included)
        evictions: Entries removed for capacity (offloads included)
        expirations: Entries removed because their TTL elapsed
        offloads: Entries removed by proactive memory-pressure offload
        entries: Current number of entries
        size_bytes: Current tracked footprint
        max_entries: Entry bound (0 = unbounded)
        max_bytes: Byte budget (0 = unbounded)
    """

    hits: int
    misses: int
    evictions: int
    expirations: int
    offloads: int
    entries: int
    size_bytes: int
    max_entries: int
    max_bytes: int

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    @property
    def utilization(self) -> float:
        """Occupancy as the larger of the entry and byte fractions."""
        fractions = []
        if self.max_entries:
            fractions.append(self.entries / self.max_entries)
        if self.max_bytes:
            fractions.append(self.size_bytes / self.max_bytes)
        return max(fractions, default=0.0)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        data["utilization"] = self.utilization
        return data
