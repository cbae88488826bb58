"""Completion provider protocol.

Defines the interface for the remote LLM call that produces an assistant
reply. It is invoked only on a cache miss; its latency, retries and error
handling belong to the implementation.

Implementations can include:
- OpenAI-compatible chat completions over HTTP (default)
- Gemini / Z.ai / vLLM clients
- Fakes for tests
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class PromptContext:
    """Everything the provider needs to answer one request.

    Attributes:
        messages: Chat messages as ``{"role": ..., "content": ...}`` dicts
        params: Request parameters (target language, persona, temperature...)
    """

    messages: list[dict[str, str]]
    params: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol for LLM completion services.

    Example:
        ```python
        provider: CompletionProvider = HttpCompletionProvider.create()
        reply = await provider.complete(PromptContext(messages=[...]))
        ```
    """

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def complete(self, context: PromptContext) -> str:
        """Generate a reply for the given context.

        Args:
            context: Messages and request parameters

        Returns:
            The reply text
        """
        ...

    async def is_available(self) -> bool:
        """Check if the provider is reachable."""
        ...
