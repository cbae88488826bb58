"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from maya_cache.repositories import ResponseCache
    from maya_cache.services import ChatService, ConversationStateManager

    conversations = ConversationStateManager.create()
    chat = ChatService.create(
        cache=ResponseCache.create(),
        conversations=conversations,
        provider=provider,
    )
    ```
"""

from .chat_service import ChatService
from .conversation_service import ConversationStateManager
from .maintenance import MaintenanceService

__all__ = [
    "ChatService",
    "ConversationStateManager",
    "MaintenanceService",
]
