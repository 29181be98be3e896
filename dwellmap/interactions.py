"""
dwellmap.interactions - JSONL log of user interactions

One record per interaction, appended to interactions.jsonl in the project
data directory:

    {"timestamp_ms": 1718000000000, "interaction_type": "NavigationJump",
     "backwards": true, "source_file_path": "src/b.ts", "source_range": "0-20",
     "target_file_path": "src/a.ts", "target_line": 0}

Logging an interaction must never break the engine, so write failures are
reported as warnings and dropped.
"""

import logging
import time
from collections import Counter
from pathlib import Path

from dwellmap.config import INTERACTION_LOG_MAX_LINES
from dwellmap.ranges import LineRange
from dwellmap.storage import append_jsonl, read_jsonl, rotate_jsonl

logger = logging.getLogger(__name__)

INTERACTIONS_FILENAME = "interactions.jsonl"
ROTATE_EVERY = 100

CHANGE_VISIBLE_RANGES = "ChangeVisibleRanges"
CHANGE_FILE = "ChangeFile"
NAVIGATION_JUMP = "NavigationJump"
CLICK_HISTOGRAM = "ClickHistogram"
CLICK_JUMP_BUTTON = "ClickJumpButton"
EDIT_FILE = "EditFile"

INTERACTION_TYPES = (
    CHANGE_VISIBLE_RANGES,
    CHANGE_FILE,
    NAVIGATION_JUMP,
    CLICK_HISTOGRAM,
    CLICK_JUMP_BUTTON,
    EDIT_FILE,
)


def stringify_range(line_range: LineRange | None) -> str:
    return str(line_range) if line_range is not None else ""


class InteractionLog:
    def __init__(self, data_dir: Path | str, max_lines: int = INTERACTION_LOG_MAX_LINES, enabled: bool = True):
        self.path = Path(data_dir) / INTERACTIONS_FILENAME
        self.max_lines = max_lines
        self.enabled = enabled
        self._writes = 0

    def _record(self, interaction_type: str, **fields) -> dict | None:
        if not self.enabled:
            return None
        record = {"timestamp_ms": int(time.time() * 1000), "interaction_type": interaction_type}
        record.update(fields)
        try:
            append_jsonl(self.path, record)
            self._writes += 1
            if self._writes % ROTATE_EVERY == 0:
                rotate_jsonl(self.path, self.max_lines)
        except OSError as e:
            logger.warning("could not log %s interaction: %s", interaction_type, e)
            return None
        return record

    def rotate(self) -> None:
        try:
            rotate_jsonl(self.path, self.max_lines)
        except OSError as e:
            logger.warning("could not rotate %s: %s", self.path, e)

    # ========================================================================
    # EVENTS
    # ========================================================================

    def changed_visible_ranges(self, path: str | None, source_range: LineRange | None,
                               target_range: LineRange | None):
        """View moved within the same file."""
        return self._record(
            CHANGE_VISIBLE_RANGES,
            source_file_path=path or "",
            source_range=stringify_range(source_range),
            target_range=stringify_range(target_range),
        )

    def changed_file(self, source_path: str | None, source_range: LineRange | None,
                     target_path: str | None, target_range: LineRange | None):
        return self._record(
            CHANGE_FILE,
            source_file_path=source_path or "",
            source_range=stringify_range(source_range),
            target_file_path=target_path or "",
            target_range=stringify_range(target_range),
        )

    def navigation_jump(self, backwards: bool, source_path: str | None, source_range: LineRange | None,
                        target_path: str | None, target_line: int | None):
        return self._record(
            NAVIGATION_JUMP,
            backwards=backwards,
            source_file_path=source_path or "",
            source_range=stringify_range(source_range),
            target_file_path=target_path or "",
            target_line=target_line,
        )

    def click_histogram(self, path: str | None, visible_range: LineRange | None, target_line: int):
        return self._record(
            CLICK_HISTOGRAM,
            source_file_path=path or "",
            visible_range=stringify_range(visible_range),
            target_line=target_line,
        )

    def click_jump_button(self, direction: str):
        return self._record(CLICK_JUMP_BUTTON, direction=direction)

    def edit_file(self, path: str | None):
        return self._record(EDIT_FILE, file_path=path or "")

    # ========================================================================
    # READING
    # ========================================================================

    def load(self, last: int | None = None, interaction_type: str | None = None) -> list[dict]:
        """Logged records, oldest first, optionally filtered and limited to the last N."""
        entries = read_jsonl(self.path)
        if interaction_type:
            entries = [e for e in entries if e.get("interaction_type") == interaction_type]
        if last is not None:
            entries = entries[-last:] if last > 0 else []
        return entries


def summarize(events: list[dict]) -> dict:
    """Counts per interaction type and per file touched."""
    by_type = Counter()
    by_file = Counter()
    for event in events:
        by_type[event.get("interaction_type", "?")] += 1
        path = event.get("target_file_path") or event.get("source_file_path") or event.get("file_path")
        if path:
            by_file[path] += 1
    return {
        "total": len(events),
        "by_type": dict(by_type.most_common()),
        "by_file": dict(by_file.most_common()),
    }
