"""Maya Cache - LLM response caching and conversation state.

This package provides a layered architecture for the Maya travel assistant's
request path:

Layers:
    - protocols: Interface contracts (ResponseStore, CompletionProvider)
    - repositories: ResponseCache and the HTTP completion provider
    - services: Conversation state, chat orchestration, maintenance
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from maya_cache import ConversationStateManager, ResponseCache

    cache = ResponseCache.create()
    conversations = ConversationStateManager.create()
    ```

For HTTP API:
    ```python
    from maya_cache.api.app import app
    ```
"""

from maya_cache.config import settings
from maya_cache.dto import ChatRequest
from maya_cache.entities import (
    CacheEntryEntity,
    CacheStatsEntity,
    ChatResult,
    SessionState,
    SessionView,
    Turn,
)
from maya_cache.errors import InvalidKeyError, InvalidSessionIdError
from maya_cache.handlers import CacheHandler, ChatHandler
from maya_cache.protocols import CompletionProvider, PromptContext, ResponseStore
from maya_cache.repositories import HttpCompletionProvider, ResponseCache
from maya_cache.services import ChatService, ConversationStateManager, MaintenanceService

__all__ = [
    # Configuration
    "settings",
    # Errors
    "InvalidKeyError",
    "InvalidSessionIdError",
    # Protocols (interfaces)
    "CompletionProvider",
    "PromptContext",
    "ResponseStore",
    # Services (business logic)
    "ChatService",
    "ConversationStateManager",
    "MaintenanceService",
    # Handlers (HTTP)
    "CacheHandler",
    "ChatHandler",
    # Repositories (data access)
    "HttpCompletionProvider",
    "ResponseCache",
    # Entities (domain models)
    "CacheEntryEntity",
    "CacheStatsEntity",
    "ChatResult",
    "SessionState",
    "SessionView",
    "Turn",
    # DTOs (API contracts)
    "ChatRequest",
]
