"""Response storage protocol.

Defines the interface the request handler uses to cache LLM responses by
fingerprint. The in-memory ResponseCache is the default; a shared backend
could satisfy the same contract.
"""

from typing import Any, Protocol, runtime_checkable

from maya_cache.entities import CacheStatsEntity


@runtime_checkable
class ResponseStore(Protocol):
    """Protocol for response caches keyed by request fingerprint.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed.

    Example:
        ```python
        from maya_cache.protocols import ResponseStore

        store: ResponseStore = ResponseCache.create()
        ```
    """

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss.

        Args:
            key: The request fingerprint

        Returns:
            The cached value if present and not expired, None otherwise
        """
        ...

    def set(
        self,
        key: str,
        value: Any,
        ttl_ms: int | None = None,
        size_bytes: int | None = None,
    ) -> None:
        """Insert or replace an entry.

        Args:
            key: The request fingerprint
            value: The response payload (must not be None)
            ttl_ms: Entry lifetime in milliseconds, defaults to the store default
            size_bytes: Explicit footprint, estimated from the value if None
        """
        ...

    def stats(self) -> CacheStatsEntity:
        """Return a read-only statistics snapshot."""
        ...

    def clear(self) -> int:
        """Drop all entries, preserving statistics.

        Returns:
            Number of entries dropped
        """
        ...

    def sweep_expired(self) -> int:
        """Remove every entry whose TTL has elapsed.

        Returns:
            Number of entries removed
        """
        ...
