"""
dwellmap.navigation - Back/forward navigation history

Behaves like a browser history whose entries are code locations, with two
twists:

  - Near-duplicate views merge. Scrolling a little within the same region
    refines the current entry instead of adding a new one.
  - A new location starts out as *pending*. It is only committed once the
    user has stayed there for the commit delay, so skimming through files
    does not flood the history. After a long stay with no commit, the next
    location is committed straight away.

Committing while standing somewhere in the middle of the history discards the
forward entries, the same way writing after an undo drops the redo branch.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from dwellmap.clock import Clock, Debouncer
from dwellmap.config import EngineConfig
from dwellmap.edits import DocumentEdit, adjust_range_for_edits, same_file
from dwellmap.ranges import LineRange
from dwellmap.sampler import DocumentInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackedLocation:
    relative_path: str
    range: LineRange

    def __str__(self) -> str:
        return f"{self.relative_path}:{self.range}"


class Revealer(Protocol):
    def reveal(self, file_path: str, start_line: int, end_line: int) -> None:
        ...


def location_from(document: DocumentInfo | None, ranges) -> TrackedLocation | None:
    """Current location: the active file and the span of its visible ranges."""
    if document is None or not ranges:
        return None
    ranges = list(ranges)
    return TrackedLocation(
        document.relative_path,
        LineRange(ranges[0].start_line, ranges[-1].end_line),
    )


def merge_locations(
    previous: TrackedLocation | None,
    current: TrackedLocation | None,
    min_overlap_fraction: float,
) -> TrackedLocation | None:
    """
    Merge current into previous if they describe the same place.

    Containment always merges into the larger range (the view shrank or grew
    in place). Otherwise the overlap must cover at least min_overlap_fraction
    of the current range, and the result spans both.
    """
    if previous is None or current is None:
        return None
    if not same_file(previous.relative_path, current.relative_path):
        return None

    overlap = previous.range.intersection(current.range)
    if overlap is None:
        return None

    if overlap == current.range:
        return TrackedLocation(current.relative_path, previous.range)
    if overlap == previous.range:
        return TrackedLocation(current.relative_path, current.range)

    # current.range.length > 0 here, otherwise overlap would equal it
    if overlap.length / current.range.length < min_overlap_fraction:
        return None
    return TrackedLocation(current.relative_path, previous.range.union(current.range))


class NavigationHistory:
    """Committed locations, a cursor into them, and one pending candidate."""

    def __init__(
        self,
        clock: Clock,
        config: EngineConfig | None = None,
        revealer: Revealer | None = None,
    ):
        self.clock = clock
        self.config = config or EngineConfig()
        self.revealer = revealer
        self.debounce = Debouncer(clock, self.config.navigation_debounce_ms, ready_at_start=True)

        self.history: list[TrackedLocation] = []
        self.current_index = -1
        self.pending: TrackedLocation | None = None
        self.pending_since: float | None = None
        self.last_commit_time: float | None = None
        # Where the user is right now, as of the last update or jump
        self.live: TrackedLocation | None = None

    # ========================================================================
    # STATE HELPERS
    # ========================================================================

    @property
    def is_empty(self) -> bool:
        return not self.history

    @property
    def current(self) -> TrackedLocation | None:
        if self.current_index < 0:
            return None
        return self.history[self.current_index]

    def merge(self, previous, current) -> TrackedLocation | None:
        return merge_locations(previous, current, self.config.merge_overlap_fraction)

    def _pending_is_stable(self, now: float) -> bool:
        return self.pending_since is not None and now - self.pending_since >= self.config.commit_delay_ms

    def _commit_delay_elapsed(self, now: float) -> bool:
        return self.last_commit_time is not None and now - self.last_commit_time >= self.config.commit_delay_ms

    def _set_pending(self, location: TrackedLocation, now: float) -> None:
        self.pending = location
        self.pending_since = now

    def _clear_pending(self) -> None:
        self.pending = None
        self.pending_since = None

    def _promote(self, location: TrackedLocation) -> None:
        """Commit location, merge-checked against the current entry first."""
        if self.current_index >= 0:
            merged = self.merge(self.history[self.current_index], location)
            if merged is not None:
                self.history[self.current_index] = merged
                self._clear_pending()
                return

        del self.history[self.current_index + 1:]
        self.history.append(location)
        self.current_index = len(self.history) - 1
        self.last_commit_time = self.clock.now_ms()
        self._clear_pending()
        logger.debug("history[%d] = %s", self.current_index, location)

    def _pending_is_distinct(self) -> bool:
        if self.pending is None:
            return False
        return self.current is None or self.merge(self.current, self.pending) is None

    def _effective(self) -> tuple[list[TrackedLocation], int]:
        """History as it would look with a distinct pending entry flushed."""
        if self._pending_is_distinct():
            flushed = self.history[: self.current_index + 1] + [self.pending]
            return flushed, len(flushed) - 1
        return self.history, self.current_index

    def live_location(self) -> TrackedLocation | None:
        if self.live is not None:
            return self.live
        return self.pending or self.current

    def _is_here(self, location: TrackedLocation) -> bool:
        live = self.live_location()
        return live is not None and self.merge(location, live) is not None

    # ========================================================================
    # UPDATES
    # ========================================================================

    def update_location(self, document: DocumentInfo | None, ranges, trackable: bool = True) -> bool:
        """
        Feed the current viewport. Returns False when debounced or when there
        is no active document.
        """
        if not self.debounce.try_acquire():
            return False

        current = location_from(document, ranges)
        if current is None:
            return False

        now = self.clock.now_ms()
        self.live = current

        if self.current_index < 0:
            if trackable:
                self._promote(current)
            return True

        target = self.pending or self.history[self.current_index]
        merged = self.merge(target, current)

        if merged is not None:
            if self.pending is None:
                self.history[self.current_index] = merged
            elif self._pending_is_stable(now):
                self._promote(merged)
            else:
                self.pending = merged
            return True

        if not trackable:
            # Browsing a buffer we do not track never pollutes the history
            self._clear_pending()
            return True

        if self._pending_is_stable(now) or self._commit_delay_elapsed(now):
            # Long enough since the last commit: record where the user was
            had_pending = self.pending is not None
            self._promote(self.pending or current)
            if not had_pending:
                return True
        self._set_pending(current, now)
        return True

    def apply_edits(self, edits: Iterable[DocumentEdit]) -> None:
        """Move every stored location of the edited files along with the text."""
        edits = list(edits)
        if not edits:
            return

        def adjust(location: TrackedLocation | None) -> TrackedLocation | None:
            if location is None:
                return None
            touched = [e for e in edits if same_file(e.path, location.relative_path)]
            if not touched:
                return location
            new_range = adjust_range_for_edits(touched, location.relative_path, location.range)
            return TrackedLocation(location.relative_path, new_range)

        self.history = [adjust(loc) for loc in self.history]
        self.pending = adjust(self.pending)
        self.live = adjust(self.live)

    def clear(self) -> None:
        self.history = []
        self.current_index = -1
        self._clear_pending()
        self.live = None
        self.last_commit_time = None

    # ========================================================================
    # QUERIES
    # ========================================================================

    def _window(self, indices, n: int, current_file_only: bool) -> list[TrackedLocation | None]:
        history, _ = self._effective()
        live = self.live_location()
        out: list[TrackedLocation | None] = []
        for i in indices:
            if len(out) >= n:
                break
            location = history[i]
            if self._is_here(location):
                continue
            if current_file_only and (live is None or not same_file(location.relative_path, live.relative_path)):
                out.append(None)
            else:
                out.append(location)
        return out

    def get_previous_positions(self, n: int, current_file_only: bool = False) -> list[TrackedLocation | None]:
        """Up to n earlier locations, newest first."""
        if n <= 0:
            return []
        _, index = self._effective()
        return self._window(range(index, -1, -1), n, current_file_only)

    def get_next_positions(self, n: int, current_file_only: bool = False) -> list[TrackedLocation | None]:
        """Up to n later locations, nearest first."""
        if n <= 0:
            return []
        history, index = self._effective()
        return self._window(range(index + 1, len(history)), n, current_file_only)

    def _find_previous(self, history, index) -> int | None:
        for i in range(index, -1, -1):
            if not self._is_here(history[i]):
                return i
        return None

    def _find_next(self, history, index) -> int | None:
        for i in range(index + 1, len(history)):
            if not self._is_here(history[i]):
                return i
        return None

    def has_previous_position(self) -> bool:
        history, index = self._effective()
        return self._find_previous(history, index) is not None

    def has_next_position(self) -> bool:
        history, index = self._effective()
        return self._find_next(history, index) is not None

    # ========================================================================
    # JUMPS
    # ========================================================================

    def _flush_pending(self) -> None:
        if self._pending_is_distinct():
            self._promote(self.pending)
        else:
            self._clear_pending()

    def _jump_to(self, index: int) -> TrackedLocation:
        self.current_index = index
        location = self.history[index]
        self.live = location
        # The viewport change caused by the reveal is not organic navigation
        self.debounce.mark()
        if self.revealer is not None:
            self.revealer.reveal(location.relative_path, location.range.start_line, location.range.end_line)
        logger.debug("jumped to history[%d] = %s", index, location)
        return location

    def move_to_previous(self) -> TrackedLocation | None:
        if not self.has_previous_position():
            return None
        self._flush_pending()
        target = self._find_previous(self.history, self.current_index)
        if target is None:
            return None
        return self._jump_to(target)

    def move_to_next(self) -> TrackedLocation | None:
        if not self.has_next_position():
            return None
        self._flush_pending()
        target = self._find_next(self.history, self.current_index)
        if target is None:
            return None
        return self._jump_to(target)
