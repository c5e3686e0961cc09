"""Tests for the JSON snapshot storage."""
import json

from builder_scout.domain.evaluation import evaluate_repo
from builder_scout.domain.models import BuilderRecord, RateBudget, RepoRecord, Store
from builder_scout.infrastructure.json_storage import JsonStoreStorage
from conftest import NOW, make_repo


def _populated_store() -> Store:
    repo = make_repo(repo_id=7)
    store = Store()
    store.repos[7] = RepoRecord.from_evaluation(repo, evaluate_repo(repo, NOW), "alice", NOW)
    store.builders["alice"] = BuilderRecord(
        id=1,
        username="alice",
        name="Alice",
        avatar="https://avatars.githubusercontent.com/alice",
        profile_url="https://github.com/alice",
        bio=None,
        location="Lisbon",
        website=None,
        twitter=None,
        total_repos=25,
        quality_repos=[7],
        focus_areas=["defi", "crypto"],
        followers=200,
        public_repos=25,
        reputation_score=57,
        consistency_score=78,
        first_seen_at="2024-06-01T12:00:00Z",
        last_active_at="2024-05-27T12:00:00Z",
        last_scanned_at="2024-06-01T12:00:00Z",
    )
    store.scan_state.mark_scanned("alice", NOW)
    store.scan_state.rate_limit = RateBudget(4200, 5000, NOW)
    return store


def test_round_trip(tmp_path):
    """Test that a saved store loads back equal."""
    storage = JsonStoreStorage(tmp_path / "store.json")
    store = _populated_store()

    storage.save(store, NOW)
    loaded = storage.load()

    assert loaded == store
    assert loaded.last_updated == "2024-06-01T12:00:00Z"


def test_save_creates_parent_directories(tmp_path):
    """Test saving into a directory that does not exist yet."""
    path = tmp_path / "nested" / "data" / "store.json"

    JsonStoreStorage(path).save(Store(), NOW)

    assert json.loads(path.read_text())["builders"] == {}
    assert [p.name for p in path.parent.iterdir()] == ["store.json"]


def test_missing_file_gives_empty_store(tmp_path):
    """Test first run without a snapshot."""
    assert JsonStoreStorage(tmp_path / "store.json").load() == Store()


def test_blank_file_gives_empty_store(tmp_path):
    """Test a snapshot that exists but is empty."""
    path = tmp_path / "store.json"
    path.write_text("  \n")

    assert JsonStoreStorage(path).load() == Store()


def test_corrupt_file_is_backed_up(tmp_path):
    """Test that an unreadable snapshot is copied aside and replaced by an empty store."""
    path = tmp_path / "store.json"
    path.write_text("{\"builders\": {")

    store = JsonStoreStorage(path).load()
    backups = list(tmp_path.glob("store.json.corrupt-*"))

    assert store == Store()
    assert len(backups) == 1
    assert backups[0].read_text() == "{\"builders\": {"


def test_wrong_shape_is_treated_as_corrupt(tmp_path):
    """Test valid JSON that is not a store."""
    path = tmp_path / "store.json"
    path.write_text("[1, 2, 3]")

    assert JsonStoreStorage(path).load() == Store()
    assert len(list(tmp_path.glob("store.json.corrupt-*"))) == 1


def test_wrong_section_shapes_are_treated_as_corrupt(tmp_path):
    """Test store sections holding the wrong JSON types."""
    for index, content in enumerate(['{"builders": [1, 2]}', '{"scan_state": {"rate_limit": 5}}']):
        path = tmp_path / f"store{index}.json"
        path.write_text(content)

        assert JsonStoreStorage(path).load() == Store()
        assert len(list(tmp_path.glob(f"store{index}.json.corrupt-*"))) == 1


def test_undecodable_file_is_treated_as_corrupt(tmp_path):
    """Test a snapshot that is not valid UTF-8."""
    path = tmp_path / "store.json"
    path.write_bytes(b'{"builders": \xff\xfe}')

    store = JsonStoreStorage(path).load()
    backups = list(tmp_path.glob("store.json.corrupt-*"))

    assert store == Store()
    assert len(backups) == 1
    assert backups[0].read_bytes() == b'{"builders": \xff\xfe}'


def test_quarantine_can_be_disabled(tmp_path):
    """Test resetting without keeping a backup."""
    path = tmp_path / "store.json"
    path.write_text("not json")

    assert JsonStoreStorage(path, quarantine_corrupt=False).load() == Store()
    assert list(tmp_path.glob("store.json.corrupt-*")) == []
