"""Conversation state service.

Tracks per-session dialogue history, fingerprints every turn and runs the
ACTIVE / REPEATING / TERMINATING state machine that lets the request handler
break loops and end conversations on request.
"""

import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loguru import logger

from maya_cache.config import settings
from maya_cache.entities import ConversationSession, SessionState, SessionView, Turn
from maya_cache.errors import require_session_id
from maya_cache.fingerprint import (
    contains_phrase,
    context_fingerprint,
    build_comparator,
    tokenize,
    turn_fingerprint,
)
from maya_cache.protocols import SimilarityComparator

VALID_ROLES = frozenset({"user", "assistant", "system"})

DEFAULT_TERMINATION_PHRASES = (
    "end",
    "stop",
    "bye",
    "goodbye",
    "end conversation",
    "إنهاء",
    "انهاء",
    "توقف",
    "كفاية",
    "شكرا وداعا",
)

# Courtesy words that may surround a single-word termination phrase
_COURTESY_WORDS = frozenset({"ok", "okay", "please", "pls", "now", "thanks", "thank", "you", "شكرا"})


def _wall_clock_ms() -> float:
    return time.time() * 1000


class ConversationStateManager:
    """Per-session history, fingerprints and repetition state.

    The session map is guarded by one lock; each session carries its own
    re-entrant lock, so work on different sessions never serialises and work
    on one session is linearizable.

    Example:
        ```python
        manager = ConversationStateManager.create()
        manager.append_turn("chat-42", "user", "Best hotels in Dubai?")
        manager.build_fingerprint("chat-42", lookback=5)
        ```
    """

    def __init__(
        self,
        window_size: int,
        repeat_match_threshold: int,
        max_history_turns: int,
        idle_timeout_ms: int,
        fingerprint_lookback: int,
        comparator: SimilarityComparator,
        termination_phrases: Iterable[str] = DEFAULT_TERMINATION_PHRASES,
        tracked_roles: Iterable[str] = ("user",),
        wrap_up_turn_limit: int = 0,
        history_tail: int = 10,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            window_size: Number of recent tracked fingerprints kept for
                repetition detection.
            repeat_match_threshold: Matches (newest included) that trigger REPEATING.
            max_history_turns: History length kept after each append.
            idle_timeout_ms: Sessions idle this long are dropped.
            fingerprint_lookback: Default number of turns covered by build_fingerprint.
            comparator: Decides whether two turn fingerprints match.
            termination_phrases: Phrases that end the conversation.
            tracked_roles: Roles whose turns enter the repetition window.
            wrap_up_turn_limit: User turns after which wrap-up is suggested (0 disables).
            history_tail: Turns included in returned views.
            clock: Millisecond clock, defaults to wall time.

        Raises:
            ValueError: If the bounds are inconsistent
        """
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        if not 2 <= repeat_match_threshold <= window_size:
            raise ValueError(
                f"repeat_match_threshold must be between 2 and window_size ({window_size})"
            )
        if max_history_turns < 1 or fingerprint_lookback < 1:
            raise ValueError("max_history_turns and fingerprint_lookback must be at least 1")
        if idle_timeout_ms <= 0:
            raise ValueError("idle_timeout_ms must be positive")

        self._window_size = window_size
        self._repeat_match_threshold = repeat_match_threshold
        self._max_history_turns = max_history_turns
        self._idle_timeout_ms = idle_timeout_ms
        self._fingerprint_lookback = fingerprint_lookback
        self._comparator = comparator
        self._termination_phrases = [tokenize(phrase) for phrase in termination_phrases]
        self._tracked_roles = frozenset(tracked_roles)
        self._wrap_up_turn_limit = wrap_up_turn_limit
        self._history_tail = history_tail
        self._clock = clock or _wall_clock_ms

        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        window_size: int | None = None,
        repeat_match_threshold: int | None = None,
        max_history_turns: int | None = None,
        idle_timeout_ms: int | None = None,
        fingerprint_lookback: int | None = None,
        comparator: SimilarityComparator | None = None,
        wrap_up_turn_limit: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> "ConversationStateManager":
        """Factory method to create the manager with defaults from settings.

        The default comparator is picked by ``settings.repetition_comparator``:
        exact digest match with a normalized edit distance fallback at
        ``settings.near_duplicate_threshold``, or word overlap.

        Returns:
            Configured ConversationStateManager
        """
        return cls(
            window_size=window_size or settings.fingerprint_window_size,
            repeat_match_threshold=repeat_match_threshold or settings.repeat_match_threshold,
            max_history_turns=max_history_turns or settings.max_history_turns,
            idle_timeout_ms=idle_timeout_ms or settings.session_idle_timeout_ms,
            fingerprint_lookback=fingerprint_lookback or settings.fingerprint_lookback,
            comparator=comparator
            or build_comparator(settings.repetition_comparator, settings.near_duplicate_threshold),
            wrap_up_turn_limit=(
                settings.wrap_up_turn_limit if wrap_up_turn_limit is None else wrap_up_turn_limit
            ),
            clock=clock,
        )

    @property
    def fingerprint_lookback(self) -> int:
        return self._fingerprint_lookback

    @property
    def active_sessions(self) -> int:
        """Number of sessions currently held (idle ones included until pruned)."""
        with self._lock:
            return len(self._sessions)

    def append_turn(self, session_id: str, role: str, text: str) -> SessionView:
        """Append a turn, creating the session if needed.

        The turn is fingerprinted and, for tracked roles, pushed into the
        repetition window. A user turn carrying a termination phrase moves the
        session to TERMINATING and drops it; otherwise repetition detection
        runs. History is truncated to ``max_history_turns`` afterwards.

        Args:
            session_id: Stable per user/chat
            role: "user", "assistant" or "system"
            text: Raw turn text

        Returns:
            View of the session after the append

        Raises:
            InvalidSessionIdError: If the session id is empty or not a string
            ValueError: If the role is unknown or the text is not a string
        """
        require_session_id(session_id)
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown role {role!r}, expected one of {sorted(VALID_ROLES)}")
        if not isinstance(text, str):
            raise ValueError(f"Turn text must be a string, got {type(text).__name__}")

        now = self._clock()
        fingerprint = turn_fingerprint(text)
        session = self._acquire(session_id, now)

        with session.lock:
            session.turns.append(Turn(role=role, text=text, timestamp=now, fingerprint=fingerprint))
            session.total_turns += 1
            session.last_active_at = now
            if role == "user":
                session.turns_since_reset += 1
            if role in self._tracked_roles:
                session.recent_fingerprints.append(fingerprint)

            if role == "user" and self._is_termination(text):
                session.state = SessionState.TERMINATING
                self._discard(session)
                logger.info(f"Session {session_id} terminated by user request")
            elif role in self._tracked_roles:
                self._detect_repetition_locked(session)

            self._truncate_locked(session, self._max_history_turns)
            return self._view(session)

    def detect_repetition(self, session_id: str) -> bool | None:
        """Re-run repetition detection on the current window.

        Returns:
            True if the newest fingerprint has enough matches in the window,
            None if the session is unknown or expired
        """
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            return self._detect_repetition_locked(session)

    def build_fingerprint(
        self,
        session_id: str,
        lookback: int | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> str | None:
        """Cache key over the last ``lookback`` turns and the request params.

        Args:
            session_id: Session to fingerprint
            lookback: Turns to cover. Defaults to the configured lookback.
            params: Relevant request parameters

        Returns:
            SHA-256 hex digest, or None if the session is unknown or expired

        Raises:
            ValueError: If lookback is smaller than 1
        """
        lookback = self._fingerprint_lookback if lookback is None else lookback
        if lookback < 1:
            raise ValueError("lookback must be at least 1")
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            return context_fingerprint(session.turns[-lookback:], params)

    def truncate_history(self, session_id: str, max_turns: int | None = None) -> int | None:
        """Drop the oldest turns beyond ``max_turns``.

        The repetition window is left untouched.

        Returns:
            Number of turns dropped, or None if the session is unknown or expired
        """
        max_turns = self._max_history_turns if max_turns is None else max_turns
        if max_turns < 0:
            raise ValueError("max_turns must not be negative")
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            return self._truncate_locked(session, max_turns)

    def reset(self, session_id: str) -> SessionView | None:
        """Clear history, window and counters and return the session to ACTIVE.

        Idempotent: resetting twice leaves the same empty state.
        """
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            session.turns.clear()
            session.recent_fingerprints.clear()
            session.state = SessionState.ACTIVE
            session.total_turns = 0
            session.turns_since_reset = 0
            session.last_active_at = self._clock()
            logger.debug(f"Session {session_id} reset")
            return self._view(session)

    def get_session(self, session_id: str) -> SessionView | None:
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            return self._view(session)

    def history(self, session_id: str, limit: int | None = None) -> tuple[Turn, ...] | None:
        """Return the turn history, optionally only the last ``limit`` turns."""
        session = self._lookup(session_id)
        if session is None:
            return None
        with session.lock:
            if limit is None:
                return tuple(session.turns)
            return tuple(session.turns[-limit:]) if limit > 0 else ()

    def end_session(self, session_id: str) -> bool:
        """Drop a session.

        Returns:
            True if the session existed
        """
        require_session_id(session_id)
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug(f"Session {session_id} ended")
        return removed is not None

    def prune_idle(self) -> int:
        """Drop every session idle for longer than the timeout.

        Returns:
            Number of sessions dropped
        """
        now = self._clock()
        with self._lock:
            idle = [
                session_id
                for session_id, session in list(self._sessions.items())
                if session.is_idle(now, self._idle_timeout_ms)
            ]
            for session_id in idle:
                del self._sessions[session_id]

        if idle:
            logger.info(f"Pruned {len(idle)} idle session(s)")
        return len(idle)

    def stats(self) -> dict[str, Any]:
        """Session counts by state plus the active configuration."""
        with self._lock:
            sessions = list(self._sessions.values())

        by_state = {state.value: 0 for state in SessionState}
        for session in sessions:
            by_state[session.state.value] += 1

        return {
            "active_sessions": len(sessions),
            "sessions_by_state": by_state,
            "window_size": self._window_size,
            "repeat_match_threshold": self._repeat_match_threshold,
            "idle_timeout_ms": self._idle_timeout_ms,
        }

    def _acquire(self, session_id: str, now: float) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.is_idle(now, self._idle_timeout_ms):
                logger.debug(f"Session {session_id} expired, starting fresh")
                session = None
            if session is None:
                session = ConversationSession(
                    session_id=session_id,
                    window_size=self._window_size,
                    created_at=now,
                    last_active_at=now,
                )
                self._sessions[session_id] = session
            else:
                # Claimed under the map lock so a concurrent prune skips it
                session.last_active_at = now
            return session

    def _lookup(self, session_id: str) -> ConversationSession | None:
        require_session_id(session_id)
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.is_idle(now, self._idle_timeout_ms):
                del self._sessions[session_id]
                return None
            return session

    def _discard(self, session: ConversationSession) -> None:
        with self._lock:
            if self._sessions.get(session.session_id) is session:
                del self._sessions[session.session_id]

    def _is_termination(self, text: str) -> bool:
        tokens = tokenize(text)
        # A lone word only counts as the whole request ("stop", "ok, stop"),
        # never inside a phrase like "bus stop"
        remaining = {token for token in tokens if token not in _COURTESY_WORDS}
        for phrase in self._termination_phrases:
            if len(phrase) == 1:
                if remaining == {phrase[0]}:
                    return True
            elif contains_phrase(tokens, phrase):
                return True
        return False

    def _detect_repetition_locked(self, session: ConversationSession) -> bool:
        window = list(session.recent_fingerprints)
        if window:
            newest = window[-1]
            matches = 1 + sum(1 for other in window[:-1] if self._comparator(newest, other))
            repeating = matches >= self._repeat_match_threshold
        else:
            repeating = False

        if repeating and session.state is SessionState.ACTIVE:
            session.state = SessionState.REPEATING
            logger.info(f"Session {session.session_id} is repeating itself")
        elif not repeating and session.state is SessionState.REPEATING:
            session.state = SessionState.ACTIVE
            logger.info(f"Session {session.session_id} moved on, back to active")
        return repeating

    def _truncate_locked(self, session: ConversationSession, max_turns: int) -> int:
        excess = len(session.turns) - max_turns
        if excess <= 0:
            return 0
        del session.turns[:excess]
        return excess

    def _view(self, session: ConversationSession) -> SessionView:
        tail = session.turns[-self._history_tail :] if self._history_tail > 0 else []
        return SessionView(
            session_id=session.session_id,
            state=session.state,
            history=tuple(tail),
            recent_fingerprints=tuple(fp.digest for fp in session.recent_fingerprints),
            turn_count=len(session.turns),
            total_turns=session.total_turns,
            wrap_up_suggested=(
                self._wrap_up_turn_limit > 0
                and session.turns_since_reset >= self._wrap_up_turn_limit
            ),
            created_at=session.created_at,
            last_active_at=session.last_active_at,
        )
