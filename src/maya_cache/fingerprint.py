"""Text normalisation, fingerprints and similarity comparators.

This is the contract between ConversationStateManager and ResponseCache:
turn fingerprints feed repetition detection, and context fingerprints are
the keys the request handler looks up in the cache. Everything here is a
pure function of its inputs.
"""

import hashlib
import json
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from difflib import SequenceMatcher
from typing import Any

from maya_cache.entities import Turn, TurnFingerprint

_PUNCTUATION = re.compile(r"[^\w\s]+")
_UNDERSCORES = re.compile(r"_+")

# Fillers and articles only; content words must survive normalisation
STOP_WORDS = frozenset(
    {
        "a",
        "an",
        "the",
        "is",
        "are",
        "am",
        "be",
        "to",
        "of",
        "and",
        "or",
        "please",
        "pls",
        "just",
        "so",
        "um",
        "uh",
        "hey",
        "hi",
        "hello",
    }
)


def tokenize(text: str) -> list[str]:
    """Case-fold, strip punctuation and split on whitespace.

    Args:
        text: Raw text

    Returns:
        List of tokens, stop words kept
    """
    folded = _PUNCTUATION.sub(" ", text.casefold())
    folded = _UNDERSCORES.sub(" ", folded)
    return folded.split()


def normalize_text(text: str, stop_words: Iterable[str] = STOP_WORDS) -> str:
    """Normalize text for fingerprinting.

    Case-folded, punctuation stripped, whitespace collapsed and light stop
    words removed. Works for any script (Arabic, Latin...) since ``\\w`` is
    unicode-aware.

    Args:
        text: Raw text
        stop_words: Words to drop

    Returns:
        Normalized text, tokens joined by single spaces

    Example:
        ```python
        normalize_text("  What's the   WEATHER in Dubai?? ")
        # "what s weather in dubai"
        ```
    """
    drop = frozenset(stop_words)
    return " ".join(token for token in tokenize(text) if token not in drop)


def _digest(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def turn_fingerprint(text: str) -> TurnFingerprint:
    """Compute the content fingerprint of one turn."""
    normalized = normalize_text(text)
    return TurnFingerprint(digest=_digest(normalized), normalized=normalized)


def context_fingerprint(
    turns: Sequence[Turn],
    params: Mapping[str, Any] | None = None,
) -> str:
    """Deterministic cache key over recent turns and request parameters.

    Uses the normalized text stored on each turn at append time, so two
    requests that differ only in case, punctuation or spacing share a key.
    There is no wall-clock input: identical content gives an identical key
    across processes.

    Args:
        turns: The turns to cover (typically the last N)
        params: Relevant request parameters (target language, persona...)

    Returns:
        SHA-256 hex digest
    """
    payload = json.dumps(
        {
            "turns": [[turn.role, turn.fingerprint.normalized] for turn in turns],
            "params": dict(params or {}),
        },
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )
    return _digest(payload)


def normalized_edit_distance(first: str, second: str) -> float:
    """Distance in [0, 1] between two strings (0 = identical).

    Uses ``difflib.SequenceMatcher``'s ratio, so this is an edit-distance
    style measure normalised by combined length.
    """
    if first == second:
        return 0.0
    return 1.0 - SequenceMatcher(None, first, second).ratio()


def exact_match(first: TurnFingerprint, second: TurnFingerprint) -> bool:
    return first.digest == second.digest


def edit_distance_comparator(
    threshold: float,
) -> Callable[[TurnFingerprint, TurnFingerprint], bool]:
    """Build the default comparator: exact digest first, edit distance fallback.

    Args:
        threshold: Near-duplicates must have a normalized edit distance
            strictly below this value (0 disables the fallback)

    Returns:
        Comparator function
    """

    def compare(first: TurnFingerprint, second: TurnFingerprint) -> bool:
        if first.digest == second.digest:
            return True
        if not first.normalized or not second.normalized:
            return False
        return normalized_edit_distance(first.normalized, second.normalized) < threshold

    return compare


def word_overlap_comparator(
    min_common: int = 3,
    min_word_length: int = 4,
) -> Callable[[TurnFingerprint, TurnFingerprint], bool]:
    """Comparator matching turns that share enough significant words.

    Two turns match when they have at least ``min_common`` distinct words of
    ``min_word_length`` characters or more in common.
    """

    def significant(fingerprint: TurnFingerprint) -> set[str]:
        return {word for word in fingerprint.normalized.split() if len(word) >= min_word_length}

    def compare(first: TurnFingerprint, second: TurnFingerprint) -> bool:
        if first.digest == second.digest:
            return True
        return len(significant(first) & significant(second)) >= min_common

    return compare


def contains_phrase(tokens: Sequence[str], phrase: Sequence[str]) -> bool:
    """Check whether ``phrase`` occurs as a contiguous run inside ``tokens``."""
    size = len(phrase)
    if size == 0 or size > len(tokens):
        return False
    return any(list(tokens[i : i + size]) == list(phrase) for i in range(len(tokens) - size + 1))


COMPARATOR_NAMES = ("edit", "overlap")


def build_comparator(
    name: str,
    near_duplicate_threshold: float,
) -> Callable[[TurnFingerprint, TurnFingerprint], bool]:
    """Build a comparator by its configured name.

    Args:
        name: "edit" for the edit distance comparator, "overlap" for word overlap
        near_duplicate_threshold: Edit distance cut-off, used by "edit" only

    Raises:
        ValueError: If the name is unknown
    """
    if name == "edit":
        return edit_distance_comparator(near_duplicate_threshold)
    if name == "overlap":
        return word_overlap_comparator()
    raise ValueError(f"Unknown comparator {name!r}, expected one of {COMPARATOR_NAMES}")
