"""
Tests for text normalisation, fingerprints and comparators.
"""

import pytest

from maya_cache.entities import Turn
from maya_cache.fingerprint import (
    contains_phrase,
    context_fingerprint,
    build_comparator,
    edit_distance_comparator,
    normalize_text,
    normalized_edit_distance,
    tokenize,
    turn_fingerprint,
    word_overlap_comparator,
)


def make_turn(role, text):
    return Turn(role=role, text=text, timestamp=0.0, fingerprint=turn_fingerprint(text))


def test_normalize_text():
    assert normalize_text("  What's the   WEATHER in Dubai?? ") == "what s weather in dubai"


def test_normalize_arabic_text():
    assert normalize_text("مرحبا،  كيف الحال؟") == "مرحبا كيف الحال"


def test_tokenize_keeps_stop_words():
    assert tokenize("Please, STOP_now") == ["please", "stop", "now"]


def test_turn_fingerprint_ignores_formatting():
    first = turn_fingerprint("Best Hotels, Dubai")
    second = turn_fingerprint("best   hotels dubai!")

    assert first == second
    assert len(first.digest) == 64


def test_context_fingerprint_params_are_order_insensitive():
    turns = [make_turn("user", "Best hotels in Dubai?")]

    assert context_fingerprint(turns, {"a": 1, "b": 2}) == context_fingerprint(
        turns, {"b": 2, "a": 1}
    )
    assert context_fingerprint(turns) == context_fingerprint(turns, {})


def test_context_fingerprint_depends_on_role():
    user = [make_turn("user", "Petra opens at 6am")]
    assistant = [make_turn("assistant", "Petra opens at 6am")]

    assert context_fingerprint(user) != context_fingerprint(assistant)


def test_normalized_edit_distance_bounds():
    assert normalized_edit_distance("abc", "abc") == 0.0
    assert normalized_edit_distance("abc", "xyz") == 1.0


def test_edit_distance_comparator():
    compare = edit_distance_comparator(0.2)

    assert compare(turn_fingerprint("best hotels in dubai"), turn_fingerprint("best hotel in dubai"))
    assert not compare(
        turn_fingerprint("best hotels in dubai"), turn_fingerprint("cheap flights to cairo")
    )


def test_zero_threshold_means_exact_only():
    compare = edit_distance_comparator(0.0)

    assert compare(turn_fingerprint("Best hotels"), turn_fingerprint("best hotels!"))
    assert not compare(turn_fingerprint("best hotels"), turn_fingerprint("best hotel"))


def test_empty_text_matches_only_empty_text():
    compare = edit_distance_comparator(0.5)

    assert compare(turn_fingerprint("?!"), turn_fingerprint(""))
    assert not compare(turn_fingerprint(""), turn_fingerprint("petra"))


def test_word_overlap_comparator():
    compare = word_overlap_comparator()

    assert compare(
        turn_fingerprint("cheap hotels near dubai marina"),
        turn_fingerprint("luxury hotels dubai marina beach"),
    )
    assert not compare(turn_fingerprint("hotels in cairo"), turn_fingerprint("hotels in dubai"))


def test_build_comparator_by_name():
    near = turn_fingerprint("best hotels in dubai")
    other = turn_fingerprint("best hotel in dubai")
    overlapping = turn_fingerprint("luxury hotels dubai marina beach")
    similar = turn_fingerprint("cheap hotels near dubai marina")

    edit = build_comparator("edit", 0.2)
    overlap = build_comparator("overlap", 0.2)

    assert edit(near, other)
    assert not edit(overlapping, similar)
    assert overlap(overlapping, similar)
    assert not overlap(near, other)

    with pytest.raises(ValueError):
        build_comparator("cosine", 0.2)


def test_contains_phrase():
    assert contains_phrase(["end", "conversation", "now"], ["end", "conversation"])
    assert not contains_phrase(["end"], ["end", "conversation"])
    assert not contains_phrase(["conversation", "end"], ["end", "conversation"])
    assert not contains_phrase(["end"], [])
