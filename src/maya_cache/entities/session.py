"""Conversation session domain entities."""

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum


class SessionState(str, Enum):
    """Dialogue state of a session.

    ACTIVE -> REPEATING on a repetition trigger, REPEATING -> ACTIVE when the
    next turn is different enough, any state -> TERMINATING on an explicit
    termination phrase (terminal, the session is dropped).
    """

    ACTIVE = "active"
    REPEATING = "repeating"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class TurnFingerprint:
    """Content fingerprint of a single turn.

    Attributes:
        digest: SHA-256 of the normalized text
        normalized: The normalized text the digest was computed from
    """

    digest: str
    normalized: str


@dataclass(frozen=True)
class Turn:
    """A single dialogue turn.

    Attributes:
        role: "user", "assistant" or "system"
        text: Raw text as received
        timestamp: Append time in milliseconds
        fingerprint: Fingerprint computed at append time
    """

    role: str
    text: str
    timestamp: float
    fingerprint: TurnFingerprint


@dataclass
class ConversationSession:
    """Mutable per-session state, owned exclusively by ConversationStateManager.

    Attributes:
        session_id: Stable per user/chat
        turns: Chronological history (bounded by truncation)
        recent_fingerprints: Sliding window of the last K tracked fingerprints
        state: Current dialogue state
        created_at: Creation time in milliseconds
        last_active_at: Last append time in milliseconds
        total_turns: Turns appended since creation, unaffected by truncation
        turns_since_reset: User turns appended since creation or the last reset
    """

    session_id: str
    window_size: int
    created_at: float
    last_active_at: float
    turns: list[Turn] = field(default_factory=list)
    recent_fingerprints: deque[TurnFingerprint] = field(init=False)
    state: SessionState = SessionState.ACTIVE
    total_turns: int = 0
    turns_since_reset: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.recent_fingerprints = deque(maxlen=self.window_size)

    def is_idle(self, now: float, idle_timeout_ms: int) -> bool:
        return now - self.last_active_at >= idle_timeout_ms


@dataclass(frozen=True)
class SessionView:
    """Read-only view of a session returned to callers.

    Attributes:
        session_id: The session id
        state: Dialogue state after the operation
        history: Tail of the turn history (oldest first)
        recent_fingerprints: Digests currently in the repetition window
        turn_count: Turns currently held in history
        total_turns: Turns appended since creation
        wrap_up_suggested: True once the conversation has run long enough that
            the caller should offer to wrap up (book, switch topic or end)
        created_at: Creation time in milliseconds
        last_active_at: Last append time in milliseconds
    """

    session_id: str
    state: SessionState
    history: tuple[Turn, ...]
    recent_fingerprints: tuple[str, ...]
    turn_count: int
    total_turns: int
    wrap_up_suggested: bool
    created_at: float
    last_active_at: float

    @property
    def is_repeating(self) -> bool:
        return self.state is SessionState.REPEATING

    @property
    def is_terminating(self) -> bool:
        return self.state is SessionState.TERMINATING
