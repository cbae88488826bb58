"""Chat result entity."""

from dataclasses import dataclass, field

from .session import SessionState, SessionView


@dataclass(frozen=True)
class ChatResult:
    """Outcome of one chat request.

    Attributes:
        reply: Text to send back to the user
        source: "cache", "provider", "disambiguation" or "terminated"
        session: Session view after the request
        fingerprint: Context fingerprint used as cache key (None when the
            cache was not consulted)
        options: Suggested next steps when the user is going in circles
        response_time_ms: Wall time spent serving the request
    """

    reply: str
    source: str
    session: SessionView
    fingerprint: str | None = None
    options: tuple[str, ...] = field(default_factory=tuple)
    response_time_ms: float = 0.0

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_cache_hit(self) -> bool:
        return self.source == "cache"
