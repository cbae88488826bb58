"""
Evaluation utilities for repetition detection.

This module provides tools for tuning the near-duplicate threshold used by
ConversationStateManager: label message pairs, sweep thresholds and pick the
one that best separates real repeats from merely related questions.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from loguru import logger

from maya_cache.entities import TurnFingerprint
from maya_cache.fingerprint import edit_distance_comparator, turn_fingerprint

ComparatorFactory = Callable[[float], Callable[[TurnFingerprint, TurnFingerprint], bool]]


@dataclass
class EvalResult:
    """Result of evaluating one threshold."""

    threshold: float
    total_pairs: int = 0
    true_positives: int = 0
    false_positives: int = 0
    true_negatives: int = 0
    false_negatives: int = 0

    @property
    def matches(self) -> int:
        return self.true_positives + self.false_positives

    @property
    def match_rate(self) -> float:
        """Fraction of pairs the comparator called repeats."""
        if self.total_pairs == 0:
            return 0.0
        return self.matches / self.total_pairs

    @property
    def precision(self) -> float:
        """Calculate precision (TP / (TP + FP))."""
        denominator = self.true_positives + self.false_positives
        if denominator == 0:
            return 0.0
        return self.true_positives / denominator

    @property
    def recall(self) -> float:
        """Calculate recall (TP / (TP + FN))."""
        denominator = self.true_positives + self.false_negatives
        if denominator == 0:
            return 0.0
        return self.true_positives / denominator

    @property
    def f1_score(self) -> float:
        """Calculate F1 score (2 * precision * recall / (precision + recall))."""
        p = self.precision
        r = self.recall
        if p + r == 0:
            return 0.0
        return 2 * p * r / (p + r)

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "threshold": self.threshold,
            "match_rate": self.match_rate,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "total_pairs": self.total_pairs,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "true_negatives": self.true_negatives,
            "false_negatives": self.false_negatives,
        }


@dataclass
class MessagePair:
    """Two user messages with their expected repeat relationship."""

    first: str
    second: str
    should_match: bool  # True if the second message repeats the first


class RepetitionEvaluator:
    """Evaluator for the repetition comparator."""

    def __init__(self, comparator_factory: ComparatorFactory = edit_distance_comparator) -> None:
        """
        Initialize the evaluator.

        Args:
            comparator_factory: Builds a comparator for a given threshold.
        """
        self.comparator_factory = comparator_factory
        self.results: list[EvalResult] = []

    def evaluate_threshold(self, threshold: float, pairs: list[MessagePair]) -> EvalResult:
        """
        Evaluate the comparator at a specific threshold.

        Args:
            threshold: Near-duplicate threshold to test.
            pairs: Labelled message pairs.

        Returns:
            EvalResult with metrics for this threshold.
        """
        compare = self.comparator_factory(threshold)
        result = EvalResult(threshold=threshold)

        for pair in pairs:
            matched = compare(turn_fingerprint(pair.first), turn_fingerprint(pair.second))
            result.total_pairs += 1
            if matched and pair.should_match:
                result.true_positives += 1
            elif matched:
                result.false_positives += 1
            elif pair.should_match:
                result.false_negatives += 1
            else:
                result.true_negatives += 1

        self.results.append(result)
        return result

    def sweep_thresholds(
        self,
        pairs: list[MessagePair],
        min_threshold: float = 0.05,
        max_threshold: float = 0.50,
        steps: int = 10,
    ) -> list[EvalResult]:
        """
        Sweep across multiple threshold values to find the optimal one.

        Args:
            pairs: Labelled message pairs.
            min_threshold: Minimum threshold to test.
            max_threshold: Maximum threshold to test.
            steps: Number of threshold steps to test.

        Returns:
            List of EvalResult for each threshold tested.
        """
        self.results = []

        for threshold in np.linspace(min_threshold, max_threshold, steps):
            result = self.evaluate_threshold(float(threshold), pairs)
            logger.debug(
                f"Threshold {result.threshold:.3f}: "
                f"precision {result.precision:.2%}, recall {result.recall:.2%}, "
                f"F1 {result.f1_score:.2%}"
            )

        return self.results

    def find_optimal_threshold(self, metric: str = "f1_score") -> tuple[float, EvalResult]:
        """
        Find the optimal threshold based on a metric.

        Args:
            metric: Metric to optimize ('f1_score', 'precision', 'recall', 'match_rate').

        Returns:
            Tuple of (threshold, result) for the optimal threshold.
        """
        if not self.results:
            raise ValueError("No evaluation results available. Run sweep_thresholds first.")

        best_result = max(self.results, key=lambda r: getattr(r, metric))
        return best_result.threshold, best_result

    def summary(self) -> str:
        """Format all evaluation results as a table."""
        if not self.results:
            return "No evaluation results available."

        lines = [
            "=" * 64,
            f"{'Threshold':<12} {'Matches':<12} {'Precision':<12} {'Recall':<12} {'F1 Score':<12}",
            "-" * 64,
        ]
        for result in self.results:
            lines.append(
                f"{result.threshold:<12.3f} "
                f"{result.match_rate:<12.2%} "
                f"{result.precision:<12.2%} "
                f"{result.recall:<12.2%} "
                f"{result.f1_score:<12.2%}"
            )
        lines.append("=" * 64)
        return "\n".join(lines)
