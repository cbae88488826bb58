from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from maya_cache.api.dependencies import CacheHandlerDep, ChatHandlerDep, lifespan
from maya_cache.config import settings
from maya_cache.dto import (
    ChatRequest,
    ChatResponse,
    ClearCacheResponse,
    HealthCheckResponse,
    PerformanceResponse,
    SessionResponse,
    SweepResponse,
)
from maya_cache.protocols import CompletionProvider

API_TITLE = "Maya Cache API"
API_VERSION = "0.1.0"
API_DESCRIPTION = "LLM response caching and conversation state for the Maya travel assistant"


def create_app(completion_provider: CompletionProvider | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        completion_provider: Provider used on cache misses. If None, the
            lifespan creates an HttpCompletionProvider from settings.

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan,
    )
    if completion_provider is not None:
        app.state.completion_provider = completion_provider

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "description": API_DESCRIPTION,
            "endpoints": {
                "chat": "/chat",
                "sessions": "/sessions/{session_id}",
                "performance": "/performance",
                "cache": "/cache",
                "health": "/health",
                "docs": "/docs",
            },
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: CacheHandlerDep) -> HealthCheckResponse:
        """Health check endpoint."""
        return await handler.health_check()

    @app.get("/performance", response_model=PerformanceResponse)
    async def performance(handler: CacheHandlerDep) -> PerformanceResponse:
        """Cache statistics, request metrics, session summary and provider hints."""
        return await handler.get_performance()

    @app.post("/cache/clear", response_model=ClearCacheResponse)
    async def clear_cache(handler: CacheHandlerDep) -> ClearCacheResponse:
        """Drop every cached response. Counters are kept."""
        return await handler.clear_cache()

    @app.post("/cache/sweep", response_model=SweepResponse)
    async def sweep(handler: CacheHandlerDep) -> SweepResponse:
        """Run cache sweep and idle session pruning now."""
        return await handler.sweep()

    @app.post("/stats/reset", response_model=dict[str, str])
    async def reset_stats(handler: CacheHandlerDep) -> dict[str, str]:
        """Reset cache counters and request metrics."""
        return await handler.reset_stats()

    @app.post("/chat", response_model=ChatResponse)
    async def chat(request: ChatRequest, handler: ChatHandlerDep) -> ChatResponse:
        """
        Serve one chat turn.

        Args:
            request: Session id, user message and optional parameters.

        Returns:
            Reply with its source and the session state.
        """
        return await handler.chat(request)

    @app.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, handler: ChatHandlerDep) -> SessionResponse:
        """Get the current state of a session."""
        return await handler.get_session(session_id)

    @app.post("/sessions/{session_id}/reset", response_model=SessionResponse)
    async def reset_session(session_id: str, handler: ChatHandlerDep) -> SessionResponse:
        """Clear a session's history and return it to the active state."""
        return await handler.reset_session(session_id)

    @app.delete("/sessions/{session_id}", response_model=dict[str, str])
    async def end_session(session_id: str, handler: ChatHandlerDep) -> dict[str, str]:
        """End a session."""
        return await handler.end_session(session_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "maya_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
