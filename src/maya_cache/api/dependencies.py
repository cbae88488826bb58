"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from loguru import logger

from maya_cache.handlers import CacheHandler, ChatHandler
from maya_cache.repositories import HttpCompletionProvider, ResponseCache
from maya_cache.services import ChatService, ConversationStateManager, MaintenanceService
from maya_cache.utils import configure_logging


def get_cache_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The CacheHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


def get_chat_handler(request: Request) -> ChatHandler:
    """Dependency injection for ChatHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "chat_handler", None)
    if handler is None:
        raise RuntimeError("ChatHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Configures logging, then initializes all layers and stores in app.state:
    1. Repositories - response cache and completion provider
    2. Services - conversation state, chat orchestration, maintenance
    3. Handlers - stored in app.state.cache_handler / app.state.chat_handler

    A completion provider already set on app.state (tests, host applications)
    is used as-is and left open on shutdown.

    Args:
        app: The FastAPI application instance

    Yields:
        None

    Cleanup:
        Cancels the maintenance loop, closes the provider it created and
        removes all services from app.state on shutdown
    """
    configure_logging()

    cache = ResponseCache.create()
    conversations = ConversationStateManager.create()

    provider = getattr(app.state, "completion_provider", None)
    owns_provider = provider is None
    if provider is None:
        provider = HttpCompletionProvider.create()

    chat_service = ChatService.create(
        cache=cache,
        conversations=conversations,
        provider=provider,
    )
    maintenance = MaintenanceService(cache=cache, conversations=conversations)

    app.state.response_cache = cache
    app.state.conversations = conversations
    app.state.completion_provider = provider
    app.state.chat_service = chat_service
    app.state.maintenance = maintenance
    app.state.cache_handler = CacheHandler(
        cache=cache,
        chat_service=chat_service,
        conversations=conversations,
        maintenance=maintenance,
    )
    app.state.chat_handler = ChatHandler(chat_service=chat_service, conversations=conversations)

    maintenance_task = asyncio.create_task(maintenance.run_forever())

    logger.info(
        f"Response cache ready: max_entries={cache.stats().max_entries}, "
        f"max_bytes={cache.stats().max_bytes}, offload={cache.offload_enabled}"
    )
    logger.info(f"Completion provider: {provider.model_name}")

    yield

    maintenance_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await maintenance_task

    if owns_provider:
        await provider.close()
        del app.state.completion_provider

    del app.state.chat_handler
    del app.state.cache_handler
    del app.state.maintenance
    del app.state.chat_service
    del app.state.conversations
    del app.state.response_cache
    logger.info("Maya cache service shut down")


# Type aliases for cleaner dependency injection
CacheHandlerDep = Annotated[CacheHandler, Depends(get_cache_handler)]
ChatHandlerDep = Annotated[ChatHandler, Depends(get_chat_handler)]
