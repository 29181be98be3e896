"""
dwellmap.sampler - Debounced viewport sampling into the RangeStore

The editor tells us what is visible; we remember it as the "last known"
viewport and, once the last commit is at least the dwell threshold old, credit
the elapsed time to each visible interval. Continuous scrolling therefore
commits at most once per threshold instead of producing a storm of tiny
samples, and a document shown for less than the threshold is dropped.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from dwellmap.clock import Clock, Debouncer
from dwellmap.config import EngineConfig
from dwellmap.ranges import Interval, LineRange, RangeStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentInfo:
    """Identity of the document shown in the active editor."""

    path: str                 # Workspace-relative, "/"-separated
    language_id: str
    scheme: str = "file"
    line_count: int = 0

    @property
    def relative_path(self) -> str:
        return self.path.replace("\\", "/").lstrip("/")


class ViewportProvider(Protocol):
    def active_document(self) -> DocumentInfo | None:
        ...

    def visible_line_intervals(self) -> list[LineRange] | None:
        ...


@dataclass(frozen=True)
class Viewport:
    """What the provider reported at one instant."""

    document: DocumentInfo | None
    ranges: tuple[LineRange, ...] = ()

    @classmethod
    def capture(cls, provider: ViewportProvider) -> "Viewport":
        document = provider.active_document()
        if document is None:
            return cls(None)
        ranges = provider.visible_line_intervals() or []
        return cls(document, tuple(ranges))

    @property
    def span(self) -> LineRange | None:
        """One range covering every visible interval."""
        if not self.ranges:
            return None
        return LineRange(self.ranges[0].start_line, self.ranges[-1].end_line)


class LocationSampler:
    """Decides when a viewport is worth tracking and commits its dwell time."""

    def __init__(self, store: RangeStore, clock: Clock, config: EngineConfig | None = None):
        self.store = store
        self.clock = clock
        self.config = config or EngineConfig()
        self.debounce = Debouncer(clock, self.config.sample_debounce_ms)
        self.is_tracking = False
        self.last_document: DocumentInfo | None = None
        self.last_ranges: tuple[LineRange, ...] = ()

    def should_track(self, viewport: Viewport) -> bool:
        document = viewport.document
        if document is None:
            return False
        if document.language_id not in self.config.tracked_languages:
            return False
        if document.scheme not in self.config.tracked_schemes:
            return False
        return True

    def should_commit(self) -> bool:
        if not self.is_tracking or self.last_document is None:
            return False
        return self.debounce.ready()

    def record_viewport(self, document: DocumentInfo, ranges) -> None:
        self.is_tracking = True
        self.last_document = document
        self.last_ranges = tuple(ranges)

    def commit(self) -> int:
        """Credit time since the last commit to the last known viewport."""
        if self.last_document is None:
            return 0
        view_duration = int(max(0.0, self.debounce.elapsed_ms()))
        path = self.last_document.relative_path
        for visible in self.last_ranges:
            self.store.upsert(path, Interval(visible.start_line, visible.end_line, view_duration))
        self.debounce.mark()
        logger.debug("committed %dms to %s (%d ranges)", view_duration, path, len(self.last_ranges))
        return view_duration

    def sample(self, viewport: Viewport) -> int:
        """
        Event entry point: commit the previous viewport if the last commit is
        at least the dwell threshold old, then remember the current one.
        Returns committed milliseconds.
        """
        committed = 0
        if self.should_commit():
            committed = self.commit()

        if self.should_track(viewport):
            # A new document starts its dwell now, not at the last commit
            if not self.is_tracking or self.last_document.relative_path != viewport.document.relative_path:
                self.debounce.mark()
            self.record_viewport(viewport.document, viewport.ranges)
        else:
            self.is_tracking = False
        return committed

    def flush(self) -> int:
        """Commit whatever is pending regardless of the debounce (used at shutdown)."""
        if not self.is_tracking:
            return 0
        return self.commit()
