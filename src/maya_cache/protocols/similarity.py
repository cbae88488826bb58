"""Similarity comparator protocol.

Repetition detection asks one question of a pair of turn fingerprints: are
these the same question? The answer is pluggable so the threshold and the
algorithm can change without touching the session state machine.
"""

from typing import Protocol

from maya_cache.entities import TurnFingerprint


class SimilarityComparator(Protocol):
    """Callable deciding whether two turn fingerprints match."""

    def __call__(self, first: TurnFingerprint, second: TurnFingerprint) -> bool: ...
