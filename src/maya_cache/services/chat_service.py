"""Chat service for request orchestration.

This service ties the conversation state and the response cache together:
record the user turn, short-circuit on termination or repetition, otherwise
answer from the cache or fall through to the completion provider.
"""

import time
from collections.abc import Mapping
from typing import Any

from loguru import logger

from maya_cache.config import settings
from maya_cache.entities import ChatResult, PerformanceMetrics
from maya_cache.fingerprint import context_fingerprint
from maya_cache.protocols import CompletionProvider, PromptContext, ResponseStore
from maya_cache.services.conversation_service import ConversationStateManager

FAREWELL_MESSAGE = "Thanks for chatting! Safe travels, and come back any time you need help."

DISAMBIGUATION_MESSAGE = (
    "It looks like we keep coming back to the same question. "
    "How would you like to continue?"
)

DISAMBIGUATION_OPTIONS = (
    "Rephrase the question",
    "Explore a different destination",
    "Get help with a booking",
    "End the conversation",
)


class ChatService:
    """Orchestrates one chat turn.

    This service depends on PROTOCOLS for the cache and the provider, so the
    in-memory cache can be replaced by a shared store and the HTTP provider
    by a fake in tests.

    Example:
        ```python
        service = ChatService.create(
            cache=ResponseCache.create(),
            conversations=ConversationStateManager.create(),
            provider=HttpCompletionProvider.create(),
        )
        result = await service.chat("chat-42", "Best beaches near Alexandria?")
        result.source  # "provider" the first time, "cache" for the same context
        ```
    """

    def __init__(
        self,
        cache: ResponseStore,
        conversations: ConversationStateManager,
        provider: CompletionProvider,
        lookback: int,
        system_prompt: str | None = None,
        context_turns: int = 10,
        metrics: PerformanceMetrics | None = None,
    ) -> None:
        """Initialize the chat service.

        Args:
            cache: Response store keyed by context fingerprint.
            conversations: Per-session state manager.
            provider: LLM called on cache misses.
            lookback: Turns covered by the cache key.
            system_prompt: Optional persona prepended to provider requests.
            context_turns: History turns sent to the provider.
            metrics: Shared metrics object, a fresh one by default.
        """
        self._cache = cache
        self._conversations = conversations
        self._provider = provider
        self._lookback = lookback
        self._system_prompt = system_prompt
        self._context_turns = context_turns
        self._metrics = metrics or PerformanceMetrics()

    @classmethod
    def create(
        cls,
        cache: ResponseStore,
        conversations: ConversationStateManager,
        provider: CompletionProvider,
        lookback: int | None = None,
        system_prompt: str | None = None,
    ) -> "ChatService":
        """Factory method to create ChatService with defaults from settings.

        Returns:
            Configured ChatService instance
        """
        return cls(
            cache=cache,
            conversations=conversations,
            provider=provider,
            lookback=lookback or settings.fingerprint_lookback,
            system_prompt=system_prompt or settings.llm_system_prompt,
        )

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._metrics

    @property
    def provider(self) -> CompletionProvider:
        return self._provider

    def reset_metrics(self) -> None:
        self._metrics = PerformanceMetrics()

    async def chat(
        self,
        session_id: str,
        message: str,
        params: Mapping[str, Any] | None = None,
    ) -> ChatResult:
        """Serve one user message.

        Business logic:
        1. Append the user turn (termination and repetition are detected here)
        2. TERMINATING: return a farewell, no provider call
        3. REPEATING: return disambiguation options, no provider call
        4. Look up the context fingerprint; on a miss call the provider and
           store the reply
        5. Append the assistant turn

        Args:
            session_id: Stable per user/chat
            message: Raw user message
            params: Request parameters that change the answer (target
                language, persona, temperature...)

        Returns:
            ChatResult with the reply, its source and the session view

        Raises:
            InvalidSessionIdError: If the session id is malformed
            ValueError: If the message is not a string
            RuntimeError: If the provider fails on a cache miss
        """
        started = time.perf_counter()
        params = dict(params or {})
        self._metrics.total_requests += 1

        view = self._conversations.append_turn(session_id, "user", message)

        if view.is_terminating:
            self._metrics.terminations += 1
            return ChatResult(
                reply=FAREWELL_MESSAGE,
                source="terminated",
                session=view,
                response_time_ms=_elapsed_ms(started),
            )

        if view.is_repeating:
            self._metrics.disambiguations += 1
            logger.debug(f"Offering disambiguation to session {session_id}")
            return ChatResult(
                reply=DISAMBIGUATION_MESSAGE,
                source="disambiguation",
                session=view,
                options=DISAMBIGUATION_OPTIONS,
                response_time_ms=_elapsed_ms(started),
            )

        fingerprint = self._conversations.build_fingerprint(session_id, self._lookback, params)
        if fingerprint is None:
            # Session pruned concurrently; key off the view we already hold
            fingerprint = context_fingerprint(view.history[-self._lookback :], params)

        lookup_started = time.perf_counter()
        cached = self._cache.get(fingerprint)
        lookup_ms = _elapsed_ms(lookup_started)

        if cached is not None:
            self._metrics.record_hit(lookup_ms)
            reply = cached
            source = "cache"
        else:
            self._metrics.record_miss(lookup_ms)
            reply = await self._complete(session_id, params)
            self._cache.set(fingerprint, reply)
            source = "provider"

        view = self._conversations.append_turn(session_id, "assistant", reply)
        return ChatResult(
            reply=reply,
            source=source,
            session=view,
            fingerprint=fingerprint,
            response_time_ms=_elapsed_ms(started),
        )

    async def _complete(self, session_id: str, params: dict[str, Any]) -> str:
        messages: list[dict[str, str]] = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        for turn in self._conversations.history(session_id, limit=self._context_turns) or ():
            messages.append({"role": turn.role, "content": turn.text})

        llm_started = time.perf_counter()
        try:
            reply = await self._provider.complete(PromptContext(messages=messages, params=params))
        except RuntimeError as e:
            self._metrics.llm_failures += 1
            logger.error(f"Completion provider failed for session {session_id}: {e}")
            raise
        self._metrics.record_llm_call(_elapsed_ms(llm_started))
        return reply


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
