"""Domain entities for internal representation.

These are plain dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for that.

Entities should have:
- No JSON serialization logic beyond ``to_dict`` helpers
- No Pydantic validation
- No external dependencies
"""

from .cache_entry import CacheEntryEntity
from .chat_result import ChatResult
from .cache_stats import CacheStatsEntity
from .performance import PerformanceMetrics
from .session import ConversationSession, SessionState, SessionView, Turn, TurnFingerprint

__all__ = [
    "CacheEntryEntity",
    "CacheStatsEntity",
    "ChatResult",
    "ConversationSession",
    "PerformanceMetrics",
    "SessionState",
    "SessionView",
    "Turn",
    "TurnFingerprint",
]
