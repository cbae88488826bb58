"""Programming errors raised by the cache and conversation layers.

Expected absence (a cache miss, an unknown session) is never an exception;
these are only for malformed input that callers must fix.
"""


class InvalidKeyError(ValueError):
    """Raised for an empty or non-string cache key."""


class InvalidSessionIdError(ValueError):
    """Raised for an empty or non-string session id."""


def require_key(key: object) -> str:
    """Validate a cache key.

    Args:
        key: The candidate key

    Returns:
        The key, unchanged

    Raises:
        InvalidKeyError: If the key is not a non-empty string
    """
    if not isinstance(key, str):
        raise InvalidKeyError(f"Cache key must be a string, got {type(key).__name__}")
    if not key:
        raise InvalidKeyError("Cache key must not be empty")
    return key


def require_session_id(session_id: object) -> str:
    """Validate a session id.

    Raises:
        InvalidSessionIdError: If the id is not a non-empty string
    """
    if not isinstance(session_id, str):
        raise InvalidSessionIdError(
            f"Session id must be a string, got {type(session_id).__name__}"
        )
    if not session_id.strip():
        raise InvalidSessionIdError("Session id must not be empty")
    return session_id
