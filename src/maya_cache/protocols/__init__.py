"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (in-memory → shared cache, HTTP LLM → fake)
- Unit testing with fake implementations
- Clear separation of concerns

Usage:
    ```python
    from maya_cache.protocols import CompletionProvider, ResponseStore

    store: ResponseStore = ResponseCache.create()
    provider: CompletionProvider = HttpCompletionProvider.create()
    ```
"""

from .completion_provider import CompletionProvider, PromptContext
from .response_store import ResponseStore
from .similarity import SimilarityComparator

__all__ = [
    "CompletionProvider",
    "PromptContext",
    "ResponseStore",
    "SimilarityComparator",
]
