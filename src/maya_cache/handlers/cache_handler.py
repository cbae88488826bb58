"""HTTP handlers for cache administration and monitoring.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from maya_cache.dto import (
    CacheStatsResponse,
    ClearCacheResponse,
    HealthCheckResponse,
    PerformanceResponse,
    SweepResponse,
)
from maya_cache.repositories import ResponseCache
from maya_cache.services import ChatService, ConversationStateManager, MaintenanceService


class CacheHandler:
    """HTTP handlers for cache operations.

    Example:
        ```python
        handler = CacheHandler(
            cache=cache,
            chat_service=chat_service,
            conversations=conversations,
            maintenance=maintenance,
        )

        @app.get("/performance", response_model=PerformanceResponse)
        async def performance():
            return await handler.get_performance()
        ```
    """

    def __init__(
        self,
        cache: ResponseCache,
        chat_service: ChatService,
        conversations: ConversationStateManager,
        maintenance: MaintenanceService,
    ) -> None:
        self._cache = cache
        self._chat = chat_service
        self._conversations = conversations
        self._maintenance = maintenance

    async def get_performance(self) -> PerformanceResponse:
        """Handle GET /performance requests.

        Returns:
            PerformanceResponse with cache, request, session and provider data

        Raises:
            HTTPException: If an error occurs while collecting stats
        """
        try:
            return PerformanceResponse(
                cache=CacheStatsResponse.from_entity(self._cache.stats()),
                performance=self._chat.metrics.to_dict(),
                sessions=self._conversations.stats(),
                provider_hints=self._cache.provider_hints(),
            )

        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get performance stats: {e}",
            ) from e

    async def clear_cache(self) -> ClearCacheResponse:
        """Handle POST /cache/clear requests.

        Counters are preserved; use reset_stats to zero them.
        """
        try:
            count = self._cache.clear()

            return ClearCacheResponse(
                success=True,
                deleted_count=count,
                message="Cache cleared successfully",
            )

        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clear cache: {e}",
            ) from e

    async def sweep(self) -> SweepResponse:
        """Handle POST /cache/sweep requests."""
        try:
            return SweepResponse(**self._maintenance.run_once())

        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to run maintenance: {e}",
            ) from e

    async def reset_stats(self) -> dict:
        """Handle POST /stats/reset requests.

        Returns:
            Dict with reset confirmation
        """
        self._cache.reset_stats()
        self._chat.reset_metrics()
        return {"message": "Cache statistics and performance metrics reset"}

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        provider = self._chat.provider
        available = await provider.is_available()

        return HealthCheckResponse(
            status="healthy" if available else "degraded",
            cache_entries=len(self._cache),
            active_sessions=self._conversations.active_sessions,
            provider_model=provider.model_name,
            provider_available=available,
        )
