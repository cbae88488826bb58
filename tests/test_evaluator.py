"""
Tests for the repetition threshold evaluator.
"""

import pytest

from maya_cache.evaluator import EvalResult, MessagePair, RepetitionEvaluator

PAIRS = [
    MessagePair("Best time to visit Petra?", "best time to visit petra", should_match=True),
    MessagePair("best hotels in dubai", "best hotel in dubai", should_match=True),
    MessagePair("Hotels in Dubai Marina", "Flights to Cairo", should_match=False),
    MessagePair("Visa rules for Jordan", "Cheap hostels in Istanbul", should_match=False),
]


def test_evaluate_threshold_counts_outcomes():
    evaluator = RepetitionEvaluator()

    result = evaluator.evaluate_threshold(0.2, PAIRS)

    assert result.total_pairs == 4
    assert result.true_positives == 2
    assert result.true_negatives == 2
    assert result.precision == 1.0
    assert result.recall == 1.0
    assert result.f1_score == 1.0
    assert result.match_rate == pytest.approx(0.5)


def test_zero_threshold_misses_near_duplicates():
    result = RepetitionEvaluator().evaluate_threshold(0.0, PAIRS)

    assert result.true_positives == 1
    assert result.false_negatives == 1
    assert result.recall == pytest.approx(0.5)


def test_sweep_and_find_optimal():
    evaluator = RepetitionEvaluator()

    results = evaluator.sweep_thresholds(PAIRS, min_threshold=0.0, max_threshold=0.3, steps=4)

    assert [round(r.threshold, 2) for r in results] == [0.0, 0.1, 0.2, 0.3]
    threshold, best = evaluator.find_optimal_threshold("f1_score")
    assert best.f1_score == 1.0
    assert threshold > 0.0
    assert "Threshold" in evaluator.summary()


def test_find_optimal_requires_results():
    with pytest.raises(ValueError):
        RepetitionEvaluator().find_optimal_threshold()


def test_empty_result_metrics():
    result = EvalResult(threshold=0.1)

    assert result.precision == 0.0
    assert result.recall == 0.0
    assert result.f1_score == 0.0
    assert result.to_dict()["total_pairs"] == 0
