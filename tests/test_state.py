import threading

import pytest

from relcrawl.errors import InvalidTargetIdentifier, PersistenceFailure
from relcrawl.orchestrator.state import TARGET_PROMPT, CrawlState, parse_target_id, prompt_target_id
from relcrawl.orchestrator.window import WINDOW_MS

BASE = 1_700_000_000_000


def test_fresh_state_defaults():
    state = CrawlState.create(42)
    assert state.target_id == 42
    assert state.subset == 1
    assert state.cursor == -1
    assert state.snapshot().calls == ()
    assert state.describe() == "Subsets: 1\nTarget ID: 42\nCursor: -1\nAccess times: 0"


@pytest.mark.parametrize("value", [0, -3, "abc", "", "4.5", True, None, 2**63, str(2**64)])
def test_invalid_targets_are_rejected(value):
    with pytest.raises(InvalidTargetIdentifier):
        CrawlState.create(value)


def test_parse_target_id_accepts_numeric_text():
    assert parse_target_id(" 42\n") == 42
    assert parse_target_id(str(2**63 - 1)) == 2**63 - 1
    with pytest.raises(ValueError):
        parse_target_id("-1")


def test_advance_subset_is_monotonic():
    state = CrawlState.create(7)
    for _ in range(5):
        state.advance_subset()
    assert state.subset == 6


def test_cursor_is_stored_verbatim():
    state = CrawlState.create(7)
    state.set_cursor(1_489_999_123_456)
    assert state.cursor == 1_489_999_123_456
    state.set_cursor("opaque-token")
    assert state.cursor == "opaque-token"
    state.reset_cursor()
    assert state.cursor == -1


def test_quota_scenario():
    state = CrawlState.create(42)
    for idx in range(15):
        state.register_call(BASE + idx * 4000)
    now = BASE + 60_000
    assert not state.can_make_call(now)
    assert "unable (14 minutes and 0 seconds)" in state.window_report(now)
    assert state.next_available_at(now) == BASE + WINDOW_MS
    assert state.can_make_call(BASE + WINDOW_MS)
    assert state.describe().endswith("Access times: 15")


def test_window_report_when_idle():
    state = CrawlState.create(42)
    assert state.window_report(BASE) == (
        "Identified 0 API calls in the past 15 minutes, the system is able to make more calls"
    )


def test_restore_validates_invariants():
    state = CrawlState.restore(target_id=9, subset=3, cursor="abc", calls=[BASE, BASE + 5])
    assert state.snapshot().calls == (BASE, BASE + 5)
    with pytest.raises(PersistenceFailure):
        CrawlState.restore(target_id=9, subset=0)
    with pytest.raises(PersistenceFailure):
        CrawlState.restore(target_id=0, subset=1)
    with pytest.raises(PersistenceFailure):
        CrawlState.restore(target_id=9, subset=1, calls=[BASE + 5, BASE])


def test_prompt_repeats_until_valid():
    answers = iter(["abc", "-1", "77"])
    prompts = []
    target = prompt_target_id(lambda: next(answers), write=prompts.append)
    assert target == 77
    assert prompts == [TARGET_PROMPT] * 3


def test_prompt_gives_up_at_end_of_input():
    with pytest.raises(InvalidTargetIdentifier):
        prompt_target_id(lambda: None, write=lambda _: None)


def test_snapshot_is_consistent_under_concurrent_registration():
    state = CrawlState.create(42)
    snapshots = []

    def register() -> None:
        for _ in range(100):
            state.register_call(BASE)

    def observe() -> None:
        for _ in range(50):
            snapshots.append(state.snapshot())

    threads = [threading.Thread(target=register) for _ in range(4)]
    threads.append(threading.Thread(target=observe))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(state.snapshot().calls) == 400
    assert all(set(snap.calls) <= {BASE} for snap in snapshots)
