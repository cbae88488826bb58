"""
Tests for per-session conversation state.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from maya_cache.entities import SessionState
from maya_cache.errors import InvalidSessionIdError
from maya_cache.fingerprint import edit_distance_comparator, exact_match
from maya_cache.services import ConversationStateManager

DISTINCT_MESSAGES = [
    "Tell me about Petra",
    "Flights from Amman to Cairo",
    "Is Dubai hot in July",
    "Visa rules for Jordan",
    "Cheap hostels in Istanbul",
    "Best souks in Marrakesh",
]


def make_manager(clock, **overrides):
    options = {
        "window_size": 6,
        "repeat_match_threshold": 3,
        "max_history_turns": 50,
        "idle_timeout_ms": 60_000,
        "fingerprint_lookback": 5,
        "comparator": edit_distance_comparator(0.2),
        "clock": clock,
    }
    options.update(overrides)
    return ConversationStateManager(**options)


def test_append_creates_session(clock):
    manager = make_manager(clock)

    view = manager.append_turn("s1", "user", "Best hotels in Dubai?")

    assert view.session_id == "s1"
    assert view.state is SessionState.ACTIVE
    assert view.turn_count == 1
    assert view.history[0].text == "Best hotels in Dubai?"
    assert manager.active_sessions == 1


def test_repeated_question_triggers_repeating(clock):
    manager = make_manager(clock)

    states = [manager.append_turn("s1", "user", "Best hotels in Dubai?").state for _ in range(3)]

    assert states == [SessionState.ACTIVE, SessionState.ACTIVE, SessionState.REPEATING]
    assert manager.detect_repetition("s1") is True


def test_near_duplicates_count_as_repeats(clock):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "best hotels in dubai")
    manager.append_turn("s1", "user", "Best hotels in Dubai!!")

    view = manager.append_turn("s1", "user", "best hotel in dubai")

    assert view.is_repeating


def test_exact_comparator_ignores_near_duplicates(clock):
    manager = make_manager(clock, comparator=exact_match)
    manager.append_turn("s1", "user", "best hotels in dubai")
    manager.append_turn("s1", "user", "best hotel in dubai")

    view = manager.append_turn("s1", "user", "best hotels in dubai?")

    assert view.state is SessionState.ACTIVE


def test_assistant_turns_do_not_enter_window(clock):
    manager = make_manager(clock)
    for _ in range(2):
        manager.append_turn("s1", "user", "Where can I surf in Morocco?")
        manager.append_turn("s1", "assistant", "Taghazout is the classic spot.")

    view = manager.append_turn("s1", "user", "Where can I surf in Morocco?")

    assert view.is_repeating
    assert len(view.recent_fingerprints) == 3


def test_distinct_turn_returns_to_active(clock):
    manager = make_manager(clock)
    for _ in range(3):
        manager.append_turn("s1", "user", "Best hotels in Dubai?")

    view = manager.append_turn("s1", "user", "What about flights to Cairo?")

    assert view.state is SessionState.ACTIVE
    assert manager.detect_repetition("s1") is False


def test_reset_is_idempotent(clock):
    manager = make_manager(clock)
    for _ in range(3):
        manager.append_turn("s1", "user", "Best hotels in Dubai?")

    first = manager.reset("s1")
    second = manager.reset("s1")

    for view in (first, second):
        assert view.state is SessionState.ACTIVE
        assert view.history == ()
        assert view.recent_fingerprints == ()
        assert view.turn_count == 0
        assert view.total_turns == 0
    assert first == second


def test_reset_session_behaves_like_new(clock):
    manager = make_manager(clock)
    for _ in range(3):
        manager.append_turn("s1", "user", "Best hotels in Dubai?")
    manager.reset("s1")

    view = manager.append_turn("s1", "user", "Best hotels in Dubai?")

    assert view.state is SessionState.ACTIVE
    assert view.total_turns == 1


@pytest.mark.parametrize(
    "message",
    ["bye", "Goodbye!", "ok, stop", "please end conversation now", "إنهاء", "شكرا وداعا"],
)
def test_termination_phrase_ends_session(clock, message):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Tell me about Petra")

    view = manager.append_turn("s1", "user", message)

    assert view.state is SessionState.TERMINATING
    assert view.is_terminating
    assert manager.get_session("s1") is None
    assert manager.active_sessions == 0


@pytest.mark.parametrize(
    "message",
    ["When does the Ramadan festival end in Cairo?", "Bus stop?", "the end?", "stop over in Doha"],
)
def test_termination_word_inside_phrase_is_ignored(clock, message):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Tell me about Petra")

    view = manager.append_turn("s1", "user", message)

    assert view.state is SessionState.ACTIVE
    assert view.turn_count == 2


def test_assistant_farewell_does_not_terminate(clock):
    manager = make_manager(clock)

    view = manager.append_turn("s1", "assistant", "bye")

    assert view.state is SessionState.ACTIVE


def test_append_after_termination_starts_fresh(clock):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Tell me about Petra")
    manager.append_turn("s1", "user", "bye")

    view = manager.append_turn("s1", "user", "Tell me about Petra")

    assert view.state is SessionState.ACTIVE
    assert view.total_turns == 1


def test_history_is_bounded_but_window_is_not_truncated(clock):
    manager = make_manager(clock, max_history_turns=4)
    for message in DISTINCT_MESSAGES:
        view = manager.append_turn("s1", "user", message)

    assert view.turn_count == 4
    assert view.total_turns == 6
    assert len(view.recent_fingerprints) == 6

    assert manager.truncate_history("s1", 2) == 2
    assert manager.truncate_history("s1", 2) == 0

    view = manager.get_session("s1")
    assert [turn.text for turn in view.history] == DISTINCT_MESSAGES[-2:]
    assert len(view.recent_fingerprints) == 6


def test_window_keeps_last_k_fingerprints(clock):
    manager = make_manager(clock, window_size=3, repeat_match_threshold=2)
    for message in DISTINCT_MESSAGES:
        manager.append_turn("s1", "user", message)

    view = manager.get_session("s1")
    assert len(view.recent_fingerprints) == 3
    assert view.recent_fingerprints[-1] == view.history[-1].fingerprint.digest


def test_fingerprint_is_stable_across_time_and_formatting(clock):
    first = make_manager(clock)
    first.append_turn("a", "user", "Best hotels in Dubai?")
    clock.advance(5_000)
    second = make_manager(clock)
    second.append_turn("b", "user", "  best HOTELS in dubai ")

    assert first.build_fingerprint("a") == second.build_fingerprint("b")


def test_fingerprint_depends_on_params(clock):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Best hotels in Dubai?")

    english = manager.build_fingerprint("s1", params={"lang": "en"})
    arabic = manager.build_fingerprint("s1", params={"lang": "ar"})

    assert english != arabic
    assert english == manager.build_fingerprint("s1", params={"lang": "en"})


def test_fingerprint_lookback(clock):
    manager = make_manager(clock)
    manager.append_turn("a", "user", "Tell me about Petra")
    manager.append_turn("a", "user", "Is Dubai hot in July")
    manager.append_turn("b", "user", "Visa rules for Jordan")
    manager.append_turn("b", "user", "Is Dubai hot in July")

    assert manager.build_fingerprint("a", lookback=1) == manager.build_fingerprint("b", lookback=1)
    assert manager.build_fingerprint("a", lookback=2) != manager.build_fingerprint("b", lookback=2)

    with pytest.raises(ValueError):
        manager.build_fingerprint("a", lookback=0)


def test_unknown_session_returns_none(clock):
    manager = make_manager(clock)

    assert manager.get_session("ghost") is None
    assert manager.detect_repetition("ghost") is None
    assert manager.build_fingerprint("ghost") is None
    assert manager.truncate_history("ghost") is None
    assert manager.reset("ghost") is None
    assert manager.history("ghost") is None
    assert manager.end_session("ghost") is False


@pytest.mark.parametrize("session_id", ["", "   ", None, 7])
def test_invalid_session_id(clock, session_id):
    manager = make_manager(clock)

    with pytest.raises(InvalidSessionIdError):
        manager.append_turn(session_id, "user", "hi")
    with pytest.raises(InvalidSessionIdError):
        manager.get_session(session_id)


def test_invalid_role_and_text(clock):
    manager = make_manager(clock)

    with pytest.raises(ValueError):
        manager.append_turn("s1", "bot", "hi")
    with pytest.raises(ValueError):
        manager.append_turn("s1", "user", 42)
    assert manager.active_sessions == 0


def test_idle_session_expires(clock):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Tell me about Petra")
    manager.append_turn("s1", "user", "Is Dubai hot in July")

    clock.advance(60_000)

    assert manager.get_session("s1") is None
    view = manager.append_turn("s1", "user", "Tell me about Petra")
    assert view.total_turns == 1


def test_prune_idle(clock):
    manager = make_manager(clock)
    manager.append_turn("old", "user", "Tell me about Petra")
    clock.advance(30_000)
    manager.append_turn("recent", "user", "Is Dubai hot in July")
    clock.advance(30_000)

    assert manager.prune_idle() == 1
    assert manager.active_sessions == 1
    assert manager.get_session("recent") is not None


def test_end_session(clock):
    manager = make_manager(clock)
    manager.append_turn("s1", "user", "Tell me about Petra")

    assert manager.end_session("s1") is True
    assert manager.get_session("s1") is None


def test_history_limit(clock):
    manager = make_manager(clock)
    for message in DISTINCT_MESSAGES[:3]:
        manager.append_turn("s1", "user", message)

    assert [turn.text for turn in manager.history("s1")] == DISTINCT_MESSAGES[:3]
    assert [turn.text for turn in manager.history("s1", limit=1)] == DISTINCT_MESSAGES[2:3]
    assert manager.history("s1", limit=0) == ()


def test_wrap_up_suggested_after_limit(clock):
    manager = make_manager(clock, wrap_up_turn_limit=3)

    views = [manager.append_turn("s1", "user", message) for message in DISTINCT_MESSAGES[:3]]

    assert [view.wrap_up_suggested for view in views] == [False, False, True]
    assert manager.reset("s1").wrap_up_suggested is False


def test_stats(clock):
    manager = make_manager(clock)
    manager.append_turn("a", "user", "Tell me about Petra")
    for _ in range(3):
        manager.append_turn("b", "user", "Best hotels in Dubai?")

    stats = manager.stats()

    assert stats["active_sessions"] == 2
    assert stats["sessions_by_state"] == {"active": 1, "repeating": 1, "terminating": 0}


@pytest.mark.parametrize(
    "options",
    [
        {"window_size": 0},
        {"repeat_match_threshold": 1},
        {"repeat_match_threshold": 7},
        {"max_history_turns": 0},
        {"idle_timeout_ms": 0},
    ],
)
def test_invalid_configuration(clock, options):
    with pytest.raises(ValueError):
        make_manager(clock, **options)


def test_concurrent_appends_to_one_session_are_serialised():
    workers = 8
    rounds = 50
    manager = ConversationStateManager(
        window_size=6,
        repeat_match_threshold=3,
        max_history_turns=1_000,
        idle_timeout_ms=600_000,
        fingerprint_lookback=5,
        comparator=exact_match,
    )
    start = threading.Barrier(workers)

    def client(worker):
        start.wait()
        for i in range(rounds):
            manager.append_turn("shared", "user", f"question {i} from traveller {worker}")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        for future in [pool.submit(client, worker) for worker in range(workers)]:
            future.result()

    view = manager.get_session("shared")
    assert view.total_turns == workers * rounds
    assert view.turn_count == workers * rounds
    assert len(manager.history("shared")) == workers * rounds
    assert len(view.recent_fingerprints) == 6
    assert manager.active_sessions == 1
