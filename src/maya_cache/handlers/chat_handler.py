"""HTTP handlers for chat and session operations."""

from fastapi import HTTPException, status

from maya_cache.dto import ChatRequest, ChatResponse, SessionResponse
from maya_cache.services import ChatService, ConversationStateManager


class ChatHandler:
    """HTTP handlers for chat turns and session management.

    Malformed input maps to 422, provider failures to 502 and unknown
    sessions to 404.
    """

    def __init__(
        self,
        chat_service: ChatService,
        conversations: ConversationStateManager,
    ) -> None:
        """Initialize the chat handler.

        Args:
            chat_service: The chat service for business logic (required).
            conversations: Session state manager (required).
        """
        self._chat = chat_service
        self._conversations = conversations

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Handle POST /chat requests.

        Args:
            request: The chat request DTO

        Returns:
            ChatResponse with the reply and the session state

        Raises:
            HTTPException: 422 on malformed input, 502 when the provider fails
        """
        try:
            result = await self._chat.chat(
                session_id=request.session_id,
                message=request.message,
                params=request.params,
            )

        except ValueError as e:
            raise HTTPException(
                status_code=422,
                detail=str(e),
            ) from e
        except RuntimeError as e:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Completion provider failed: {e}",
            ) from e

        return ChatResponse(
            session_id=request.session_id,
            reply=result.reply,
            state=result.state.value,
            source=result.source,
            options=list(result.options),
            fingerprint=result.fingerprint,
            wrap_up_suggested=result.session.wrap_up_suggested,
            response_time_ms=result.response_time_ms,
        )

    async def get_session(self, session_id: str) -> SessionResponse:
        """Handle GET /sessions/{session_id} requests."""
        view = self._run(self._conversations.get_session, session_id)
        if view is None:
            raise _not_found(session_id)
        return SessionResponse.from_view(view)

    async def reset_session(self, session_id: str) -> SessionResponse:
        """Handle POST /sessions/{session_id}/reset requests."""
        view = self._run(self._conversations.reset, session_id)
        if view is None:
            raise _not_found(session_id)
        return SessionResponse.from_view(view)

    async def end_session(self, session_id: str) -> dict:
        """Handle DELETE /sessions/{session_id} requests."""
        if not self._run(self._conversations.end_session, session_id):
            raise _not_found(session_id)
        return {"session_id": session_id, "message": "Session ended"}

    @staticmethod
    def _run(operation, session_id: str):
        try:
            return operation(session_id)
        except ValueError as e:
            raise HTTPException(
                status_code=422,
                detail=str(e),
            ) from e


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Session {session_id!r} not found",
    )
