"""Repository layer for data access.

This layer holds the concrete stores and remote clients behind the
protocol-based interfaces:
- ResponseCache: in-memory LRU + TTL response store (ResponseStore)
- HttpCompletionProvider: OpenAI-compatible LLM client (CompletionProvider)

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from maya_cache.protocols import CompletionProvider, ResponseStore

from .http_completion_provider import HttpCompletionProvider
from .response_cache import ResponseCache, estimate_size

__all__ = [
    "CompletionProvider",
    "ResponseStore",
    "HttpCompletionProvider",
    "ResponseCache",
    "estimate_size",
]
