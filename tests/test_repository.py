import pytest

from relcrawl.errors import PersistenceFailure
from relcrawl.storage.models import Profile, Relation
from relcrawl.storage.repository import JsonlRepository


def _profiles(start, count):
    return [Profile(user_id=idx, screen_name=f"user{idx}") for idx in range(start, start + count)]


def test_load_caps_at_limit_in_file_order(tmp_path):
    repository = JsonlRepository(tmp_path, Profile)
    repository.append(_profiles(1, 3), name="a")
    repository.append(_profiles(10, 2), name="b")

    loaded = repository.load(4)
    assert [profile.user_id for profile in loaded] == [1, 2, 3, 10]
    assert len(repository.load(50)) == 5
    assert all(isinstance(profile, Profile) for profile in loaded)


def test_append_extends_existing_file(tmp_path):
    repository = JsonlRepository(tmp_path, Profile)
    repository.append(_profiles(1, 1), name="batch")
    path = repository.append(_profiles(2, 1), name="batch")
    assert path == tmp_path / "batch.jsonl"
    assert [profile.user_id for profile in repository.load(10)] == [1, 2]


def test_missing_directory_loads_nothing(tmp_path):
    assert JsonlRepository(tmp_path / "absent", Profile).load(10) == []


def test_malformed_line_raises(tmp_path):
    (tmp_path / "bad.jsonl").write_text('{"user_id": 1}\n{"user_id": -4}\n', encoding="utf-8")
    with pytest.raises(PersistenceFailure):
        JsonlRepository(tmp_path, Profile).load(10)


def test_relation_repository(tmp_path):
    repository = JsonlRepository(tmp_path, Relation)
    repository.append(
        [Relation(source_id=3, target_id=42, kind="followers"), Relation(source_id=42, target_id=3, kind="following")],
        name="edges",
    )
    edges = repository.load(10)
    assert {edge.key for edge in edges} == {"42_3"}
