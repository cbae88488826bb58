"""OpenAI-compatible chat completion provider.

Calls a ``/chat/completions`` endpoint over HTTP. Z.ai, OpenAI, vLLM and
Ollama's OpenAI shim all speak this format, so switching providers is a
matter of LLM_BASE_URL / LLM_MODEL.

Requirements:
    - LLM_BASE_URL pointing at the API root (e.g. https://api.z.ai/api/paas/v4)
    - LLM_API_KEY when the provider requires bearer auth
"""

import httpx
from loguru import logger

from maya_cache.config import settings
from maya_cache.protocols import PromptContext

# Request params forwarded verbatim to the provider; anything else stays local
_FORWARDED_PARAMS = ("temperature", "max_tokens", "top_p")


class HttpCompletionProvider:
    """HTTP implementation of the CompletionProvider protocol.

    This class satisfies the CompletionProvider protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        provider = HttpCompletionProvider.create(
            model_name="glm-4.6",
            base_url="https://api.z.ai/api/paas/v4",
        )
        reply = await provider.complete(
            PromptContext(messages=[{"role": "user", "content": "Best time to visit Cairo?"}])
        )
        ```
    """

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the completion provider.

        Args:
            model_name: Model identifier. Defaults to settings.llm_model.
            base_url: API root URL. Defaults to settings.llm_base_url.
            api_key: Bearer token. Defaults to settings.llm_api_key.
            timeout: Request timeout in seconds. Defaults to settings.llm_timeout_seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._model_name = model_name or settings.llm_model
        self._base_url = (base_url or settings.llm_base_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.llm_api_key
        self._timeout = timeout or settings.llm_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ) -> "HttpCompletionProvider":
        """Factory method to create HttpCompletionProvider with defaults.

        Args:
            model_name: Model name. If None, uses settings.
            base_url: API URL. If None, uses settings.
            api_key: Bearer token. If None, uses settings.

        Returns:
            Configured HttpCompletionProvider
        """
        return cls(model_name=model_name, base_url=base_url, api_key=api_key)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def model_name(self) -> str:
        return self._model_name

    async def complete(self, context: PromptContext) -> str:
        """Generate a reply for the given context.

        Args:
            context: Messages and request parameters

        Returns:
            The assistant reply text

        Raises:
            RuntimeError: If the API request fails or the response is malformed
        """
        url = f"{self._base_url}/chat/completions"
        payload: dict = {
            "model": context.params.get("model", self._model_name),
            "messages": context.messages,
        }
        for name in _FORWARDED_PARAMS:
            if name in context.params:
                payload[name] = context.params[name]

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise RuntimeError(f"LLM API error: {e}") from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected response format: {data}") from e

    async def is_available(self) -> bool:
        """Check if the provider answers at all.

        Returns:
            True if the models endpoint responds without a server error
        """
        try:
            response = await self.client.get(f"{self._base_url}/models")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning(f"LLM provider unavailable: {e}")
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
