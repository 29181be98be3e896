"""
dwellmap.edits - Keep stored line ranges aligned with document edits

Change events arrive after the edit has been applied, so for an edit that
overlaps a stored range we cannot know where exactly the added or removed
lines went. The overlap case therefore uses a fixed proportional heuristic:
the share of the edit lying before the range's start moves the start line,
the share overlapping the range grows or shrinks it. It is approximate but
deterministic.

Edits entirely after a range leave it alone; edits entirely before it shift
it by the net line delta.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

from dwellmap.ranges import Interval, LineRange, RangeStore, compact_intervals, split_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentEdit:
    """
    One content change: lines [start_line, end_line] (pre-edit coordinates)
    were replaced by text spanning lines_added newlines.
    """

    path: str
    start_line: int
    end_line: int
    lines_added: int

    @property
    def lines_removed(self) -> int:
        return self.end_line - self.start_line

    @property
    def line_count_change(self) -> int:
        return self.lines_added - self.lines_removed

    @property
    def is_single_line(self) -> bool:
        return self.start_line == self.end_line

    @property
    def line_range(self) -> LineRange:
        return LineRange(self.start_line, self.end_line)

    @classmethod
    def from_text(cls, path: str, start_line: int, end_line: int, text: str) -> "DocumentEdit":
        """Build from the replacement text of a change event."""
        return cls(path, start_line, end_line, text.count("\n"))


def same_file(a: str, b: str) -> bool:
    return split_path(a) == split_path(b)


def adjust_range(edit: DocumentEdit, stored: LineRange) -> LineRange:
    """Return stored moved/resized to account for edit."""
    if edit.start_line > stored.end_line:
        return stored

    delta = edit.line_count_change
    if delta == 0:
        return stored

    overlap = stored.intersection(edit.line_range)
    if overlap is None:
        start = stored.start_line + delta
        end = stored.end_line + delta
    else:
        # A pure insertion replaces zero lines but still spans lines_added
        change_size = max(edit.end_line - edit.start_line, edit.lines_added)
        fraction_below = max(0.0, (overlap.start_line - edit.start_line) / change_size)
        if edit.is_single_line:
            overlap_fraction = 1.0
        else:
            overlap_fraction = (overlap.end_line - overlap.start_line) / change_size
        overlap_change = math.floor(delta * overlap_fraction)

        start = stored.start_line + math.floor(fraction_below * delta)
        end = start + stored.length + overlap_change

    start = max(0, start)
    end = max(start, end)
    return LineRange(start, end)


def adjust_range_for_edits(edits: Iterable[DocumentEdit], path: str, stored: LineRange) -> LineRange:
    """Apply every edit that targets path, in order."""
    for edit in edits:
        if same_file(edit.path, path):
            stored = adjust_range(edit, stored)
    return stored


def adjust_store(store: RangeStore, edits: list[DocumentEdit]) -> int:
    """
    Rewrite the intervals of every edited file in store.

    Intervals that end up on the same span are merged. Returns the number of
    intervals whose coordinates changed.
    """
    changed = 0
    for path in {"/".join(split_path(e.path)) for e in edits}:
        intervals = store.get(path)
        if not intervals:
            continue
        adjusted = []
        for interval in intervals:
            new_range = adjust_range_for_edits(edits, path, interval.line_range)
            if new_range != interval.line_range:
                changed += 1
            adjusted.append(Interval(new_range.start_line, new_range.end_line, interval.total_duration_ms))
        store.replace_file(path, compact_intervals(adjusted))
    if changed:
        logger.debug("edit adjusted %d stored intervals", changed)
    return changed
