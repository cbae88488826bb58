import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str, default: str) -> float | None:
    # An empty value disables the option
    raw = os.getenv(name, default)
    return float(raw) if raw.strip() else None


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Response cache
    cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "1000"))  # 0 = unbounded
    cache_max_bytes: int = int(os.getenv("CACHE_MAX_BYTES", str(64 * 1024 * 1024)))  # 0 = unbounded
    cache_default_ttl_ms: int = int(os.getenv("CACHE_DEFAULT_TTL_MS", "3600000"))  # 1 hour
    cache_offload_threshold: float | None = _optional_float("CACHE_OFFLOAD_THRESHOLD", "0.8")
    cache_offload_watermark: float | None = _optional_float("CACHE_OFFLOAD_WATERMARK", "0.6")

    # Background maintenance (cache sweep + idle session pruning)
    maintenance_interval_ms: int = int(os.getenv("MAINTENANCE_INTERVAL_MS", "60000"))

    # Conversation state
    session_idle_timeout_ms: int = int(os.getenv("SESSION_IDLE_TIMEOUT_MS", "1800000"))  # 30 min
    fingerprint_window_size: int = int(os.getenv("FINGERPRINT_WINDOW_SIZE", "6"))
    repeat_match_threshold: int = int(os.getenv("REPEAT_MATCH_THRESHOLD", "3"))
    near_duplicate_threshold: float = float(os.getenv("NEAR_DUPLICATE_THRESHOLD", "0.2"))
    repetition_comparator: str = os.getenv("REPETITION_COMPARATOR", "edit")  # edit | overlap
    max_history_turns: int = int(os.getenv("MAX_HISTORY_TURNS", "50"))
    fingerprint_lookback: int = int(os.getenv("FINGERPRINT_LOOKBACK", "5"))
    wrap_up_turn_limit: int = int(os.getenv("WRAP_UP_TURN_LIMIT", "15"))  # 0 = disabled

    # LLM provider (OpenAI-compatible chat completions)
    llm_base_url: str = os.getenv("LLM_BASE_URL", "https://api.z.ai/api/paas/v4")
    llm_api_key: str | None = os.getenv("LLM_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "glm-4.6")
    llm_timeout_seconds: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
    llm_system_prompt: str | None = os.getenv("LLM_SYSTEM_PROMPT")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def offload_enabled(self) -> bool:
        """Check if proactive memory-pressure offload is configured.

        Returns:
            True if both threshold and watermark are set, False otherwise
        """
        return self.cache_offload_threshold is not None and self.cache_offload_watermark is not None

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_max_entries < 0 or self.cache_max_bytes < 0:
            raise ValueError("CACHE_MAX_ENTRIES and CACHE_MAX_BYTES must not be negative")

        if self.cache_max_entries == 0 and self.cache_max_bytes == 0:
            raise ValueError("At least one of CACHE_MAX_ENTRIES or CACHE_MAX_BYTES must be positive")

        if self.cache_default_ttl_ms <= 0:
            raise ValueError("CACHE_DEFAULT_TTL_MS must be positive")

        if (self.cache_offload_threshold is None) != (self.cache_offload_watermark is None):
            raise ValueError(
                "CACHE_OFFLOAD_THRESHOLD and CACHE_OFFLOAD_WATERMARK must be set together"
            )

        if self.offload_enabled and not (
            0 < self.cache_offload_watermark < self.cache_offload_threshold <= 1  # type: ignore[operator]
        ):
            raise ValueError(
                "Offload fractions must satisfy 0 < CACHE_OFFLOAD_WATERMARK "
                "< CACHE_OFFLOAD_THRESHOLD <= 1"
            )

        if self.fingerprint_window_size < 1:
            raise ValueError("FINGERPRINT_WINDOW_SIZE must be at least 1")

        if not 2 <= self.repeat_match_threshold <= self.fingerprint_window_size:
            raise ValueError(
                f"REPEAT_MATCH_THRESHOLD must be between 2 and FINGERPRINT_WINDOW_SIZE "
                f"({self.fingerprint_window_size}), got {self.repeat_match_threshold}"
            )

        if not 0 <= self.near_duplicate_threshold <= 1:
            raise ValueError("NEAR_DUPLICATE_THRESHOLD must be between 0 and 1")

        if self.repetition_comparator not in ("edit", "overlap"):
            raise ValueError(
                f"REPETITION_COMPARATOR must be 'edit' or 'overlap', got {self.repetition_comparator!r}"
            )

        if self.max_history_turns < 1 or self.fingerprint_lookback < 1:
            raise ValueError("MAX_HISTORY_TURNS and FINGERPRINT_LOOKBACK must be at least 1")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
