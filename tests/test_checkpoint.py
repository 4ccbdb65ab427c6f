import pytest

from relcrawl.errors import PersistenceFailure
from relcrawl.orchestrator.checkpoint import (
    checkpoint_path,
    clear_checkpoint,
    list_checkpoints,
    load_checkpoint,
    load_or_create,
    save_checkpoint,
)
from relcrawl.orchestrator.state import CrawlState

BASE = 1_700_000_000_000


def test_checkpoint_roundtrip(tmp_path):
    state = CrawlState.create(42)
    state.advance_subset()
    state.set_cursor(1_512_345_678_901)
    state.register_call(BASE)
    state.register_call(BASE + 2000)
    save_checkpoint(tmp_path, state)

    restored = load_checkpoint(tmp_path, 42)
    assert restored is not None
    assert restored.snapshot() == state.snapshot()
    assert restored.calls_in_window(BASE + 3000) == 2

    clear_checkpoint(tmp_path, 42)
    assert load_checkpoint(tmp_path, 42) is None


def test_checkpoint_keeps_text_cursor(tmp_path):
    state = CrawlState.create(8)
    state.set_cursor("next-page-token")
    save_checkpoint(tmp_path, state)
    assert load_checkpoint(tmp_path, 8).cursor == "next-page-token"


def test_load_or_create(tmp_path):
    fresh = load_or_create(tmp_path, 5)
    assert fresh.subset == 1
    fresh.advance_subset()
    save_checkpoint(tmp_path, fresh)
    assert load_or_create(tmp_path, 5).subset == 2


def test_list_checkpoints(tmp_path):
    for target in (30, 4, 100):
        save_checkpoint(tmp_path, CrawlState.create(target))
    (tmp_path / "notes.json").write_text("{}", encoding="utf-8")
    assert list_checkpoints(tmp_path) == [4, 30, 100]
    assert list_checkpoints(tmp_path / "missing") == []


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        '{"version": 1, "target_id": 42, "subset": 0, "cursor": -1, "calls": []}',
        '{"version": 2, "target_id": 42, "subset": 1, "cursor": -1, "calls": []}',
        '{"version": 1, "target_id": 43, "subset": 1, "cursor": -1, "calls": []}',
        '{"version": 1, "target_id": 42, "subset": 1, "cursor": -1, "calls": [5, 3]}',
    ],
)
def test_broken_checkpoints_raise(tmp_path, content):
    checkpoint_path(tmp_path, 42).write_text(content, encoding="utf-8")
    with pytest.raises(PersistenceFailure):
        load_checkpoint(tmp_path, 42)


def test_list_checkpoints_ignores_non_target_names(tmp_path):
    save_checkpoint(tmp_path, CrawlState.create(12))
    for name in ("0.json", "007.json", "².json"):
        (tmp_path / name).write_text("{}", encoding="utf-8")
    assert list_checkpoints(tmp_path) == [12]


@pytest.mark.parametrize("cursor", [None, 1.5, 2**64])
def test_unsavable_cursor_raises_persistence_failure(tmp_path, cursor):
    state = CrawlState.create(42)
    state.set_cursor(cursor)
    with pytest.raises(PersistenceFailure):
        save_checkpoint(tmp_path, state)
    assert not checkpoint_path(tmp_path, 42).exists()
