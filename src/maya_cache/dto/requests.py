"""Request DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request DTO for one chat turn.

    The handler will convert this to a ChatService call.
    """

    session_id: str = Field(..., description="Stable per user/chat id", min_length=1)
    message: str = Field(..., description="The user message", min_length=1)
    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters that change the answer (target language, persona, temperature)",
    )
