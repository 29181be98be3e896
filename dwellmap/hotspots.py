"""
dwellmap.hotspots - Turn raw dwell intervals into ranked, symbol-aware hotspots

Pipeline:
  1. Flatten the RangeStore into (absolute path, interval) pairs, summing
     duplicate spans.
  2. Resolve each file's symbol tree once, files in parallel, and match the
     symbols overlapping each interval.
  3. Score: importance = sum(kind weights) * (1 + ln(ms + 1)). The log keeps
     an hour-long stare from drowning out everything glanced at briefly.
  4. Flatten to one record per (hotspot, symbol) and condense duplicates of
     the same symbol in the same file.

The RangeStore stays the source of truth; everything here is recomputed on
demand.
"""

import logging
import math
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path

from dwellmap.ranges import Interval, LineRange, RangeStore
from dwellmap.symbols import SymbolInfo, SymbolKind, SymbolResolver, iter_symbols, symbol_kind_name

logger = logging.getLogger(__name__)

# ============================================================================
# SCORING
# ============================================================================

KIND_WEIGHTS = {
    SymbolKind.CLASS: 10,
    SymbolKind.STRUCT: 10,
    SymbolKind.INTERFACE: 9,
    SymbolKind.ENUM: 8,
    SymbolKind.CONSTRUCTOR: 7,
    SymbolKind.METHOD: 6,
    SymbolKind.FUNCTION: 6,
    SymbolKind.NAMESPACE: 6,
    SymbolKind.PACKAGE: 6,
    SymbolKind.MODULE: 6,
    SymbolKind.FIELD: 5,
    SymbolKind.PROPERTY: 5,
    SymbolKind.ENUM_MEMBER: 4,
    SymbolKind.VARIABLE: 3,
    SymbolKind.CONSTANT: 3,
}
DEFAULT_KIND_WEIGHT = 1


def kind_weight(kind: int) -> int:
    try:
        return KIND_WEIGHTS.get(SymbolKind(kind), DEFAULT_KIND_WEIGHT)
    except ValueError:
        return DEFAULT_KIND_WEIGHT


def calculate_importance(kinds, time_spent_ms: float) -> float:
    symbol_importance = sum(kind_weight(k) for k in kinds)
    time_factor = 1 + math.log(max(0.0, time_spent_ms) + 1)
    return symbol_importance * time_factor


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True)
class MatchedSymbol:
    kind: int
    name: str
    start_line: int
    end_line: int


@dataclass
class EnrichedHotspot:
    file_path: str                  # Absolute
    range: LineRange
    matched_symbols: list[MatchedSymbol] = field(default_factory=list)
    time_spent_ms: int = 0
    importance: float = 0.0

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "start_line": self.range.start_line,
            "end_line": self.range.end_line,
            "matched_symbols": [asdict(s) for s in self.matched_symbols],
            "time_spent_ms": self.time_spent_ms,
            "importance": self.importance,
        }


@dataclass
class ImportanceRecord:
    """One (symbol, file) row of the importance ranking."""

    importance: float
    file_path: str
    hotspot_start_line: int
    hotspot_end_line: int
    time_spent_ms: int
    symbol_name: str
    symbol_kind_name: str
    symbol_start_line: int
    symbol_end_line: int

    @property
    def key(self) -> tuple[str, int, str]:
        return (self.symbol_name, self.symbol_start_line, self.file_path)

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name

    def to_dict(self) -> dict:
        return asdict(self)


def importance_records(hotspots: list[EnrichedHotspot]) -> list[ImportanceRecord]:
    """One record per matched symbol of every hotspot."""
    records = []
    for hotspot in hotspots:
        for symbol in hotspot.matched_symbols:
            records.append(ImportanceRecord(
                importance=hotspot.importance,
                file_path=hotspot.file_path,
                hotspot_start_line=hotspot.range.start_line,
                hotspot_end_line=hotspot.range.end_line,
                time_spent_ms=hotspot.time_spent_ms,
                symbol_name=symbol.name,
                symbol_kind_name=symbol_kind_name(symbol.kind),
                symbol_start_line=symbol.start_line,
                symbol_end_line=symbol.end_line,
            ))
    return records


def condense(records: list[ImportanceRecord]) -> list[ImportanceRecord]:
    """Sum importance and time of records that name the same symbol."""
    condensed: dict[tuple, ImportanceRecord] = {}
    for record in records:
        existing = condensed.get(record.key)
        if existing is None:
            condensed[record.key] = replace(record)
        else:
            existing.importance += record.importance
            existing.time_spent_ms += record.time_spent_ms
    return list(condensed.values())


def rank_records(records: list[ImportanceRecord]) -> list[ImportanceRecord]:
    return sorted(records, key=lambda r: (-r.importance, r.file_path, r.symbol_start_line, r.symbol_name))


# ============================================================================
# AGGREGATION
# ============================================================================

def collect_intervals(store: RangeStore, workspace_root: Path) -> dict[Path, list[Interval]]:
    """Absolute path -> intervals, duplicate spans summed, missing files dropped."""
    merged: dict[Path, dict[tuple[int, int], Interval]] = defaultdict(dict)
    for rel_path, intervals in store.traverse_all():
        absolute = (workspace_root / rel_path).resolve()
        if not absolute.exists():
            logger.debug("skipping %s: no longer on disk", absolute)
            continue
        spans = merged[absolute]
        for interval in intervals:
            existing = spans.get(interval.span)
            if existing is None:
                spans[interval.span] = Interval(interval.start_line, interval.end_line, interval.total_duration_ms)
            else:
                existing.total_duration_ms += interval.total_duration_ms
    return {path: list(spans.values()) for path, spans in merged.items() if spans}


def match_symbols(symbols: list[SymbolInfo], interval: Interval) -> list[MatchedSymbol]:
    return [
        MatchedSymbol(s.kind, s.name, s.start_line, s.end_line)
        for s in iter_symbols(symbols)
        if s.overlaps(interval.start_line, interval.end_line)
    ]


def enrich_file(file_path: Path, intervals: list[Interval], symbols: list[SymbolInfo]) -> list[EnrichedHotspot]:
    hotspots = []
    for interval in sorted(intervals, key=lambda i: i.span):
        matched = match_symbols(symbols, interval)
        hotspots.append(EnrichedHotspot(
            file_path=str(file_path),
            range=interval.line_range,
            matched_symbols=matched,
            time_spent_ms=interval.total_duration_ms,
            importance=calculate_importance([m.kind for m in matched], interval.total_duration_ms),
        ))
    return hotspots


class HotspotAggregator:
    """Builds EnrichedHotspots from a RangeStore using a SymbolResolver."""

    def __init__(self, resolver: SymbolResolver, workspace_root: Path | str, max_workers: int = 4):
        self.resolver = resolver
        self.workspace_root = Path(workspace_root)
        self.max_workers = max(1, max_workers)

    def _resolve(self, file_path: Path) -> list[SymbolInfo] | None:
        try:
            symbols = self.resolver.resolve_symbols(file_path)
        except Exception as e:
            logger.warning("symbol resolution failed for %s: %s", file_path, e)
            return None
        if not file_path.exists():
            # Deleted or renamed while we were resolving
            logger.debug("discarding symbols for vanished file %s", file_path)
            return None
        return symbols or []

    def aggregate(self, store: RangeStore) -> list[EnrichedHotspot]:
        by_file = collect_intervals(store, self.workspace_root)
        if not by_file:
            return []

        paths = sorted(by_file)
        workers = min(self.max_workers, len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dwellmap-resolve") as pool:
            resolved = list(pool.map(self._resolve, paths))

        hotspots: list[EnrichedHotspot] = []
        for path, symbols in zip(paths, resolved):
            if symbols is None:
                continue
            hotspots.extend(enrich_file(path, by_file[path], symbols))
        return hotspots

    def rank(self, store: RangeStore) -> list[ImportanceRecord]:
        """Condensed importance ranking, most important first."""
        return rank_records(condense(importance_records(self.aggregate(store))))
