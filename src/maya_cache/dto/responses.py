"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from maya_cache.entities import CacheStatsEntity, SessionView


class TurnItem(BaseModel):
    """Single turn in a session history."""

    role: str = Field(..., description="user, assistant or system")
    text: str = Field(..., description="Raw turn text")
    timestamp: float = Field(..., description="Append time in milliseconds since the epoch")


class SessionResponse(BaseModel):
    """Response DTO for a session view."""

    session_id: str = Field(..., description="The session id")
    state: str = Field(..., description="active, repeating or terminating")
    history: list[TurnItem] = Field(
        default_factory=list,
        description="Most recent turns, oldest first",
    )
    recent_fingerprints: list[str] = Field(
        default_factory=list,
        description="Turn digests currently in the repetition window",
    )
    turn_count: int = Field(..., description="Turns held in history", ge=0)
    total_turns: int = Field(..., description="Turns appended since creation or reset", ge=0)
    wrap_up_suggested: bool = Field(
        False,
        description="Whether the conversation has run long enough to offer wrapping up",
    )
    created_at: float = Field(..., description="Creation time in milliseconds")
    last_active_at: float = Field(..., description="Last activity time in milliseconds")

    @classmethod
    def from_view(cls, view: SessionView) -> "SessionResponse":
        return cls(
            session_id=view.session_id,
            state=view.state.value,
            history=[
                TurnItem(role=turn.role, text=turn.text, timestamp=turn.timestamp)
                for turn in view.history
            ],
            recent_fingerprints=list(view.recent_fingerprints),
            turn_count=view.turn_count,
            total_turns=view.total_turns,
            wrap_up_suggested=view.wrap_up_suggested,
            created_at=view.created_at,
            last_active_at=view.last_active_at,
        )


class ChatResponse(BaseModel):
    """Response DTO for one chat turn."""

    session_id: str = Field(..., description="The session id")
    reply: str = Field(..., description="Text to send back to the user")
    state: str = Field(..., description="Session state after the turn")
    source: str = Field(
        ...,
        description="Where the reply came from: cache, provider, disambiguation or terminated",
    )
    options: list[str] = Field(
        default_factory=list,
        description="Suggested next steps when the conversation is going in circles",
    )
    fingerprint: str | None = Field(None, description="Context fingerprint used as cache key")
    wrap_up_suggested: bool = Field(False, description="Whether to offer wrapping up")
    response_time_ms: float = Field(..., description="Time taken to serve the turn in milliseconds")


class CacheStatsResponse(BaseModel):
    """Response DTO for response cache statistics."""

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    evictions: int = Field(..., description="Capacity evictions, offloads included", ge=0)
    expirations: int = Field(..., description="Entries dropped because their TTL elapsed", ge=0)
    offloads: int = Field(..., description="Entries dropped by memory-pressure offload", ge=0)
    entries: int = Field(..., description="Current number of entries", ge=0)
    size_bytes: int = Field(..., description="Current tracked footprint", ge=0)
    max_entries: int = Field(..., description="Entry bound (0 = unbounded)", ge=0)
    max_bytes: int = Field(..., description="Byte budget (0 = unbounded)", ge=0)
    hit_rate: float = Field(..., ge=0.0, le=1.0)
    utilization: float = Field(..., description="Larger of entry and byte occupancy", ge=0.0)

    @classmethod
    def from_entity(cls, stats: CacheStatsEntity) -> "CacheStatsResponse":
        return cls(**stats.to_dict())


class PerformanceResponse(BaseModel):
    """Response DTO for GET /performance."""

    cache: CacheStatsResponse = Field(..., description="Response cache statistics")
    performance: dict[str, float | int] = Field(..., description="Request-level metrics")
    sessions: dict[str, Any] = Field(..., description="Conversation state summary")
    provider_hints: dict[str, Any] = Field(
        ...,
        description="KV cache offload hints for the LLM provider",
    )


class ClearCacheResponse(BaseModel):
    """Response DTO for cache clear operation."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Number of entries dropped", ge=0)
    message: str = Field(..., description="Human-readable status message")


class SweepResponse(BaseModel):
    """Response DTO for a manual maintenance run."""

    expired_entries: int = Field(..., description="Expired cache entries removed", ge=0)
    idle_sessions: int = Field(..., description="Idle sessions pruned", ge=0)


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'degraded'")
    cache_entries: int = Field(..., description="Entries currently cached", ge=0)
    active_sessions: int = Field(..., description="Sessions currently held", ge=0)
    provider_model: str = Field(..., description="Model used on cache misses")
    provider_available: bool | None = Field(
        None,
        description="Whether the completion provider is reachable",
    )
