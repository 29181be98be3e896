"""
dwellmap.storage - Snapshot persistence and JSONL helpers

Layout of a project data directory:

    ~/.dwellmap/projects/<hash>/
      positions.json                      current RangeStore snapshot
      positions.json.corrupt-<ts>         unreadable snapshots, kept for forensics
      backups/positions-<ts>.json         snapshots archived by reset
      interactions.jsonl                  interaction log
      dwellmap.json                       optional config overrides

Writes go through a temp file and os.replace so a crash mid-write never
leaves a truncated snapshot behind.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from dwellmap.errors import PersistenceError, StoreFormatError
from dwellmap.ranges import RangeStore

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "positions.json"
BACKUP_PREFIX = "backups/positions-"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S-%f"


def timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


# ============================================================================
# KEY/VALUE FILE STORAGE
# ============================================================================

class FileStorage:
    """Byte blobs keyed by "/"-separated relative paths under root."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        parts = [p for p in key.replace("\\", "/").split("/") if p]
        if not parts or any(p == ".." for p in parts):
            raise PersistenceError(f"invalid storage key: {key!r}")
        return self.root.joinpath(*parts)

    def save(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(f"cannot write {path}: {e}") from e

    def load(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"cannot read {path}: {e}") from e

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def keys(self, prefix: str = "") -> list[str]:
        if not self.root.exists():
            return []
        out = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.name.endswith(".tmp"):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                out.append(key)
        return sorted(out)

    def preserve(self, key: str, suffix: str) -> str | None:
        """Copy key aside as key + suffix. Returns the new key, None if key is absent."""
        data = self.load(key)
        if data is None:
            return None
        target = f"{key}{suffix}"
        self.save(target, data)
        return target


# ============================================================================
# RANGE STORE SNAPSHOTS
# ============================================================================

class SnapshotStore:
    """Loads and saves the RangeStore as JSON through a FileStorage."""

    def __init__(self, storage: FileStorage, key: str = SNAPSHOT_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> RangeStore:
        """Restore the snapshot. Missing or corrupt snapshots yield an empty store."""
        data = self.storage.load(self.key)
        if data is None:
            return RangeStore()
        try:
            return RangeStore.from_dict(json.loads(data.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, StoreFormatError) as e:
            preserved = self._preserve_corrupt(data)
            logger.warning("snapshot %s is unreadable (%s); starting empty, kept copy as %s",
                           self.key, e, preserved)
            return RangeStore()

    def _preserve_corrupt(self, data: bytes) -> str | None:
        """Keep a copy of a broken snapshot, once per distinct content."""
        copies = self.storage.keys(f"{self.key}.corrupt-")
        if copies and self.storage.load(copies[-1]) == data:
            return copies[-1]
        return self.storage.preserve(self.key, f".corrupt-{timestamp()}")

    def _encode(self, store: RangeStore) -> bytes:
        return json.dumps(store.to_dict(), indent=2).encode("utf-8")

    def save(self, store: RangeStore) -> None:
        self.storage.save(self.key, self._encode(store))

    def archive(self, store: RangeStore) -> str:
        """Write store as a timestamped backup and return its key."""
        key = f"{BACKUP_PREFIX}{timestamp()}.json"
        n = 1
        while self.storage.exists(key):
            key = f"{BACKUP_PREFIX}{timestamp()}-{n}.json"
            n += 1
        self.storage.save(key, self._encode(store))
        logger.info("archived snapshot to %s", key)
        return key

    def backups(self) -> list[str]:
        return self.storage.keys(BACKUP_PREFIX)


# ============================================================================
# JSONL
# ============================================================================

def append_jsonl(path: Path, record: dict) -> None:
    """Append one JSON record to a JSONL file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, default=str) + "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)


def rotate_jsonl(path: Path, max_lines: int) -> None:
    """Keep only the last max_lines entries of a JSONL file."""
    if not path.exists():
        return
    with open(path, encoding="utf-8", errors="replace") as f:
        lines = f.readlines()
    if len(lines) > max_lines:
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.writelines(lines[-max_lines:])
        os.replace(tmp, path)


def read_jsonl(path: Path) -> list[dict]:
    """All well-formed object records of a JSONL file, in order."""
    if not path.exists():
        return []
    entries = []
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                entries.append(entry)
    return entries
