"""
dwellmap.engine - The attention engine: one context object per workspace

Wires the pieces together:

    editor events ──► on_viewport_changed ──► LocationSampler ──► RangeStore
                                        └──► NavigationHistory
    document edits ─► on_document_changed ─► RangeStore + NavigationHistory
    tickers ────────► tick_sampler / tick_navigation / autosave
    sidebar ────────► handle_view_message, hotspots(), histogram()

All mutation of the store and the history happens under one RLock. Symbol
resolution and disk I/O run on copies taken under the lock, outside it.

Usage:
    with AttentionEngine(provider, workspace_root=root) as engine:
        engine.on_viewport_changed()
        ...
"""

import atexit
import logging
import threading
from pathlib import Path

from dwellmap.clock import Clock, SystemClock, Ticker
from dwellmap.config import EngineConfig, default_data_dir, load_config
from dwellmap.edits import DocumentEdit, adjust_store
from dwellmap.errors import DwellmapError, PersistenceError
from dwellmap.histogram import HistogramBucket, bucket_file
from dwellmap.hotspots import EnrichedHotspot, HotspotAggregator, ImportanceRecord
from dwellmap.interactions import InteractionLog
from dwellmap.navigation import NavigationHistory, Revealer, TrackedLocation
from dwellmap.ranges import LineRange, RangeStore
from dwellmap.sampler import LocationSampler, Viewport, ViewportProvider
from dwellmap.storage import FileStorage, SnapshotStore
from dwellmap.symbols import SymbolResolver

logger = logging.getLogger(__name__)


class AttentionEngine:
    def __init__(
        self,
        provider: ViewportProvider,
        config: EngineConfig | None = None,
        revealer: Revealer | None = None,
        resolver: SymbolResolver | None = None,
        workspace_root: Path | str | None = None,
        data_dir: Path | str | None = None,
        clock: Clock | None = None,
    ):
        self.provider = provider
        self.revealer = revealer
        self.workspace_root = Path(workspace_root) if workspace_root else Path.cwd()
        self.data_dir = Path(data_dir) if data_dir else default_data_dir(self.workspace_root)
        self.config = config or load_config(self.data_dir)
        self.clock = clock or SystemClock()
        self._resolver = resolver

        self.store = RangeStore()
        self.snapshots = SnapshotStore(FileStorage(self.data_dir))
        self.sampler = LocationSampler(self.store, self.clock, self.config)
        self.navigation = NavigationHistory(self.clock, self.config, revealer)
        self.interactions = InteractionLog(
            self.data_dir,
            max_lines=self.config.interaction_log_max_lines,
            enabled=self.config.record_interactions,
        )

        self._lock = threading.RLock()
        self._tickers = [
            Ticker("sampler", self.config.sample_interval_s, self.tick_sampler),
            Ticker("navigation", self.config.navigation_interval_s, self.tick_navigation),
            Ticker("autosave", self.config.autosave_interval_s, self.autosave),
        ]
        self._initialized = False
        self._closed = False
        self._last_viewport: Viewport | None = None

    @property
    def resolver(self) -> SymbolResolver:
        if self._resolver is None:
            from dwellmap.outliner import TreeSitterSymbolResolver
            self._resolver = TreeSitterSymbolResolver()
        return self._resolver

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def init(self) -> "AttentionEngine":
        with self._lock:
            if self._initialized:
                return self
            if self._closed:
                raise DwellmapError("engine has been shut down")
            loaded = self.snapshots.load()
            # Keep the object identity: the sampler holds a reference to it
            self.store.root = loaded.root
            self._initialized = True
            logger.info("restored %d tracked files from %s", self.store.file_count(), self.data_dir)

        if self.config.start_timers:
            for ticker in self._tickers:
                ticker.start()
        atexit.register(self._atexit)
        return self

    def shutdown(self) -> None:
        """Stop tickers, commit the last sample and save. Runs at most once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        # Outside the lock: a ticker callback may be waiting on it
        for ticker in self._tickers:
            ticker.stop()
        atexit.unregister(self._atexit)

        if not self._initialized:
            return
        with self._lock:
            self.sampler.flush()
            snapshot = self.store.copy()
        self.interactions.rotate()
        self.snapshots.save(snapshot)
        logger.info("saved %d tracked files to %s", snapshot.file_count(), self.data_dir)

    def _atexit(self) -> None:
        try:
            self.shutdown()
        except DwellmapError as e:
            logger.error("shutdown save failed: %s", e)

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "AttentionEngine":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ========================================================================
    # EDITOR EVENTS
    # ========================================================================

    def _record_view_change(self, viewport: Viewport) -> None:
        previous = self._last_viewport
        self._last_viewport = viewport
        if viewport.document is None:
            return
        target_path = viewport.document.relative_path
        if previous is None or previous.document is None:
            self.interactions.changed_file(None, None, target_path, viewport.span)
        elif previous.document.relative_path != target_path:
            self.interactions.changed_file(
                previous.document.relative_path, previous.span, target_path, viewport.span
            )
        elif previous.span != viewport.span:
            self.interactions.changed_visible_ranges(target_path, previous.span, viewport.span)

    def _update(self, viewport: Viewport, sample: bool, navigate: bool) -> int:
        committed = 0
        if sample:
            committed = self.sampler.sample(viewport)
        if navigate:
            self.navigation.update_location(
                viewport.document, viewport.ranges, trackable=self.sampler.should_track(viewport)
            )
        return committed

    def on_viewport_changed(self) -> int:
        """Visible ranges or active editor changed. Returns committed ms."""
        viewport = Viewport.capture(self.provider)
        with self._lock:
            self._record_view_change(viewport)
            return self._update(viewport, sample=True, navigate=True)

    def tick_sampler(self) -> int:
        viewport = Viewport.capture(self.provider)
        with self._lock:
            return self._update(viewport, sample=True, navigate=False)

    def tick_navigation(self) -> None:
        viewport = Viewport.capture(self.provider)
        with self._lock:
            self._update(viewport, sample=False, navigate=True)

    def on_document_changed(self, edits: list[DocumentEdit]) -> int:
        """Shift stored ranges and history entries with the edited text."""
        edits = list(edits)
        if not edits:
            return 0
        with self._lock:
            changed = adjust_store(self.store, edits)
            self.navigation.apply_edits(edits)
        for path in dict.fromkeys(e.path for e in edits):
            self.interactions.edit_file(path)
        return changed

    # ========================================================================
    # NAVIGATION
    # ========================================================================

    def _jump(self, backwards: bool) -> TrackedLocation | None:
        with self._lock:
            source = self.navigation.live_location()
            if backwards:
                target = self.navigation.move_to_previous()
            else:
                target = self.navigation.move_to_next()
        if target is not None:
            self.interactions.navigation_jump(
                backwards,
                source.relative_path if source else None,
                source.range if source else None,
                target.relative_path,
                target.range.start_line,
            )
        return target

    def move_to_previous(self) -> TrackedLocation | None:
        return self._jump(backwards=True)

    def move_to_next(self) -> TrackedLocation | None:
        return self._jump(backwards=False)

    def has_previous_position(self) -> bool:
        with self._lock:
            return self.navigation.has_previous_position()

    def has_next_position(self) -> bool:
        with self._lock:
            return self.navigation.has_next_position()

    def previous_positions(self, n: int, current_file_only: bool = False) -> list[TrackedLocation | None]:
        with self._lock:
            return self.navigation.get_previous_positions(n, current_file_only)

    def next_positions(self, n: int, current_file_only: bool = False) -> list[TrackedLocation | None]:
        with self._lock:
            return self.navigation.get_next_positions(n, current_file_only)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def snapshot(self) -> RangeStore:
        with self._lock:
            return self.store.copy()

    def _aggregator(self) -> HotspotAggregator:
        return HotspotAggregator(self.resolver, self.workspace_root, self.config.resolver_workers)

    def hotspots(self) -> list[EnrichedHotspot]:
        return self._aggregator().aggregate(self.snapshot())

    def importance_ranking(self) -> list[ImportanceRecord]:
        return self._aggregator().rank(self.snapshot())

    def histogram(self, path: str | None = None, line_count: int | None = None,
                  buckets: int | None = None) -> list[HistogramBucket]:
        """Dwell histogram of path, the active document when omitted."""
        if path is None:
            document = self.provider.active_document()
            if document is None:
                return []
            path = document.relative_path
            if line_count is None and document.line_count > 0:
                line_count = document.line_count
        if line_count is None:
            line_count = count_lines(self.workspace_root / path)
        with self._lock:
            intervals = self.store.get(path)
        return bucket_file(intervals, line_count, buckets or self.config.histogram_buckets)

    # ========================================================================
    # SIDEBAR MESSAGES
    # ========================================================================

    def handle_view_message(self, message: dict):
        """Dispatch a message sent back by the rendering layer."""
        command = message.get("command") if isinstance(message, dict) else None

        if command == "showRange":
            try:
                start = int(message["startLine"])
                end = int(message["endLine"])
            except (KeyError, TypeError, ValueError):
                logger.warning("malformed showRange message: %r", message)
                return None
            document = self.provider.active_document()
            if document is None:
                return None
            visible = Viewport.capture(self.provider).span
            self.interactions.click_histogram(document.relative_path, visible, start)
            if self.revealer is not None:
                self.revealer.reveal(document.relative_path, start, max(start, end))
            return LineRange(start, max(start, end))

        if command == "navigate":
            direction = message.get("direction")
            if direction not in ("back", "forward"):
                logger.warning("unknown navigation direction: %r", direction)
                return None
            self.interactions.click_jump_button(direction)
            return self._jump(backwards=direction == "back")

        logger.warning("ignoring unknown view message: %r", command)
        return None

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def save(self) -> None:
        """Synchronous save. Raises PersistenceError."""
        self.snapshots.save(self.snapshot())

    def autosave(self) -> bool:
        try:
            self.save()
        except PersistenceError as e:
            logger.warning("autosave failed, retrying next tick: %s", e)
            return False
        return True

    def reset(self) -> str:
        """Archive the current store, then start over empty. Returns the backup key."""
        with self._lock:
            backup = self.snapshots.archive(self.store)
            self.store.reset()
            self.snapshots.save(self.store)
        logger.info("store reset, previous data archived as %s", backup)
        return backup


def count_lines(path: Path) -> int:
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            return sum(1 for _ in f)
    except OSError:
        return 0
