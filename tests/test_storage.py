"""Tests for snapshot persistence and JSONL helpers."""

import json

import pytest

from dwellmap.errors import PersistenceError
from dwellmap.ranges import Interval, RangeStore
from dwellmap.storage import (
    FileStorage,
    SnapshotStore,
    append_jsonl,
    read_jsonl,
    rotate_jsonl,
)


class TestFileStorage:
    """Test the key/value file layer."""

    def test_save_load(self, data_dir):
        """Saved bytes come back unchanged."""
        storage = FileStorage(data_dir)
        storage.save("positions.json", b"{}")
        assert storage.load("positions.json") == b"{}"
        assert storage.exists("positions.json")

    def test_missing_key(self, data_dir):
        """Unknown keys load as None."""
        assert FileStorage(data_dir).load("nothing.json") is None

    def test_nested_keys_and_listing(self, data_dir):
        """Keys with directories are created and listed by prefix."""
        storage = FileStorage(data_dir)
        storage.save("backups/one.json", b"1")
        storage.save("backups/two.json", b"2")
        storage.save("positions.json", b"3")
        assert storage.keys("backups/") == ["backups/one.json", "backups/two.json"]

    def test_no_temp_file_left_behind(self, data_dir):
        """Atomic writes clean up after themselves."""
        FileStorage(data_dir).save("positions.json", b"{}")
        assert [p.name for p in data_dir.iterdir()] == ["positions.json"]

    def test_rejects_escaping_keys(self, data_dir):
        """Keys cannot climb out of the storage root."""
        with pytest.raises(PersistenceError):
            FileStorage(data_dir).save("../outside.json", b"x")

    def test_write_failure_raises(self, tmp_path):
        """A root that is a file cannot be written under."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            FileStorage(blocker).save("positions.json", b"{}")

    def test_preserve(self, data_dir):
        """preserve() copies a key aside."""
        storage = FileStorage(data_dir)
        storage.save("a.json", b"data")
        assert storage.preserve("a.json", ".bak") == "a.json.bak"
        assert storage.load("a.json.bak") == b"data"
        assert storage.preserve("missing.json", ".bak") is None


class TestSnapshotStore:
    """Test RangeStore snapshots."""

    def test_missing_snapshot_is_empty(self, data_dir):
        """First run starts with an empty store."""
        assert SnapshotStore(FileStorage(data_dir)).load().is_empty()

    def test_save_and_load(self, data_dir):
        """A saved store is restored."""
        snapshots = SnapshotStore(FileStorage(data_dir))
        store = RangeStore()
        store.upsert("src/a.ts", Interval(0, 50, 1000))
        snapshots.save(store)

        assert snapshots.load().get("src/a.ts") == [Interval(0, 50, 1000)]
        on_disk = json.loads((data_dir / "positions.json").read_text())
        assert on_disk["format"] == "dwellmap.ranges"

    def test_corrupt_snapshot_preserved(self, data_dir):
        """Unreadable JSON yields an empty store and a kept copy."""
        (data_dir / "positions.json").write_text("{not json")
        store = SnapshotStore(FileStorage(data_dir)).load()
        assert store.is_empty()
        kept = [p.name for p in data_dir.iterdir() if p.name.startswith("positions.json.corrupt-")]
        assert len(kept) == 1
        assert (data_dir / kept[0]).read_text() == "{not json"
        assert (data_dir / "positions.json").exists()

    def test_corrupt_snapshot_copied_once(self, data_dir):
        """Loading the same broken snapshot again does not pile up copies."""
        snapshots = SnapshotStore(FileStorage(data_dir))
        (data_dir / "positions.json").write_text("{not json")
        snapshots.load()
        snapshots.load()
        assert len(snapshots.storage.keys("positions.json.corrupt-")) == 1

        (data_dir / "positions.json").write_text("[[[")
        snapshots.load()
        copies = snapshots.storage.keys("positions.json.corrupt-")
        assert len(copies) == 2
        assert (data_dir / copies[-1]).read_text() == "[[["

    def test_wrong_shape_preserved(self, data_dir):
        """Valid JSON with the wrong structure is treated as corrupt."""
        (data_dir / "positions.json").write_text(json.dumps({"format": "other", "root": {}}))
        assert SnapshotStore(FileStorage(data_dir)).load().is_empty()
        assert any(p.name.startswith("positions.json.corrupt-") for p in data_dir.iterdir())

    def test_archive(self, data_dir):
        """archive() writes a timestamped backup."""
        snapshots = SnapshotStore(FileStorage(data_dir))
        store = RangeStore()
        store.upsert("a.ts", Interval(0, 1, 5))
        first = snapshots.archive(store)
        second = snapshots.archive(store)
        assert first != second
        assert first.startswith("backups/positions-") and first.endswith(".json")
        assert snapshots.backups() == sorted([first, second])


class TestJsonl:
    """Test the JSONL helpers."""

    def test_append_and_read(self, tmp_path):
        """Records come back in order, malformed lines are skipped."""
        path = tmp_path / "log" / "events.jsonl"
        append_jsonl(path, {"n": 1})
        with open(path, "a", encoding="utf-8") as f:
            f.write("garbage\n")
        append_jsonl(path, {"n": 2})
        assert [r["n"] for r in read_jsonl(path)] == [1, 2]

    def test_rotate_keeps_tail(self, tmp_path):
        """Rotation keeps the newest lines."""
        path = tmp_path / "events.jsonl"
        for n in range(10):
            append_jsonl(path, {"n": n})
        rotate_jsonl(path, 3)
        assert [r["n"] for r in read_jsonl(path)] == [7, 8, 9]

    def test_rotate_missing_file(self, tmp_path):
        """Rotating a missing file does nothing."""
        rotate_jsonl(tmp_path / "none.jsonl", 3)
        assert not (tmp_path / "none.jsonl").exists()
