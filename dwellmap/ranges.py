"""
dwellmap.ranges - Line ranges, dwell intervals and the hierarchical RangeStore

The store mirrors the workspace directory layout:

    src/                     subtree
      app/                   subtree
        main.py              leaf -> [Interval(0, 40, 1200ms), ...]

Every node carries an explicit kind so a directory and a file that happen to
share a name are never confused, and the persisted JSON keeps that tag:

    {"format": "dwellmap.ranges", "version": 1,
     "root": {"kind": "subtree", "children": {
         "src": {"kind": "subtree", "children": {
             "main.py": {"kind": "leaf", "intervals": [
                 {"start_line": 0, "end_line": 40, "total_duration_ms": 1200}]}}}}}}
"""

import copy
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from dwellmap.errors import StoreFormatError

logger = logging.getLogger(__name__)

STORE_FORMAT = "dwellmap.ranges"
STORE_VERSION = 1


# ============================================================================
# VALUE TYPES
# ============================================================================

@dataclass(frozen=True, order=True)
class LineRange:
    """Inclusive, 0-based line span."""

    start_line: int
    end_line: int

    def __post_init__(self):
        if self.start_line > self.end_line:
            raise ValueError(f"start_line {self.start_line} > end_line {self.end_line}")

    @property
    def length(self) -> int:
        return self.end_line - self.start_line

    def intersection(self, other: "LineRange") -> "LineRange | None":
        start = max(self.start_line, other.start_line)
        end = min(self.end_line, other.end_line)
        if start > end:
            return None
        return LineRange(start, end)

    def contains(self, other: "LineRange") -> bool:
        return self.start_line <= other.start_line and other.end_line <= self.end_line

    def union(self, other: "LineRange") -> "LineRange":
        return LineRange(min(self.start_line, other.start_line), max(self.end_line, other.end_line))

    def __str__(self) -> str:
        return f"{self.start_line}-{self.end_line}"


@dataclass
class Interval:
    """A line span plus the time spent looking at it."""

    start_line: int
    end_line: int
    total_duration_ms: int = 0

    def __post_init__(self):
        if self.start_line > self.end_line:
            raise ValueError(f"start_line {self.start_line} > end_line {self.end_line}")
        if self.total_duration_ms < 0:
            raise ValueError("total_duration_ms must be >= 0")

    @property
    def span(self) -> tuple[int, int]:
        return (self.start_line, self.end_line)

    @property
    def line_range(self) -> LineRange:
        return LineRange(self.start_line, self.end_line)

    def to_dict(self) -> dict:
        return {
            "start_line": self.start_line,
            "end_line": self.end_line,
            "total_duration_ms": self.total_duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Interval":
        try:
            start = data["start_line"] if "start_line" in data else data["startLine"]
            end = data["end_line"] if "end_line" in data else data["endLine"]
            if "total_duration_ms" in data:
                duration = data["total_duration_ms"]
            else:
                duration = data.get("totalDuration", 0)
            return cls(int(start), int(end), int(duration))
        except (KeyError, TypeError, ValueError) as e:
            raise StoreFormatError(f"malformed interval record: {data!r}") from e


def merge_interval(intervals: list[Interval], interval: Interval) -> None:
    """Add interval to intervals in place, summing into an identical span."""
    for existing in intervals:
        if existing.span == interval.span:
            existing.total_duration_ms += interval.total_duration_ms
            return
    intervals.append(Interval(interval.start_line, interval.end_line, interval.total_duration_ms))


def compact_intervals(intervals: list[Interval]) -> list[Interval]:
    """Return a copy with identical spans merged, first-seen order kept."""
    out: list[Interval] = []
    for interval in intervals:
        merge_interval(out, interval)
    return out


# ============================================================================
# TREE NODES
# ============================================================================

class NodeKind(str, Enum):
    SUBTREE = "subtree"
    LEAF = "leaf"


@dataclass
class StoreNode:
    """Tagged tree node: a SUBTREE has children, a LEAF has intervals."""

    kind: NodeKind
    children: dict[str, "StoreNode"] = field(default_factory=dict)
    intervals: list[Interval] = field(default_factory=list)

    @classmethod
    def subtree(cls) -> "StoreNode":
        return cls(NodeKind.SUBTREE)

    @classmethod
    def leaf(cls) -> "StoreNode":
        return cls(NodeKind.LEAF)

    def to_dict(self) -> dict:
        if self.kind is NodeKind.LEAF:
            return {"kind": NodeKind.LEAF.value, "intervals": [i.to_dict() for i in self.intervals]}
        return {
            "kind": NodeKind.SUBTREE.value,
            "children": {name: child.to_dict() for name, child in self.children.items()},
        }

    @classmethod
    def from_dict(cls, data) -> "StoreNode":
        if not isinstance(data, dict):
            raise StoreFormatError(f"store node must be an object, got {type(data).__name__}")
        kind = data.get("kind")
        if kind == NodeKind.LEAF.value:
            records = data.get("intervals")
            if not isinstance(records, list):
                raise StoreFormatError("leaf node without an intervals list")
            node = cls.leaf()
            node.intervals = compact_intervals([Interval.from_dict(r) for r in records])
            return node
        if kind == NodeKind.SUBTREE.value:
            children = data.get("children")
            if not isinstance(children, dict):
                raise StoreFormatError("subtree node without a children object")
            node = cls.subtree()
            node.children = {str(name): cls.from_dict(child) for name, child in children.items()}
            return node
        raise StoreFormatError(f"store node has missing or unknown kind: {kind!r}")


def _looks_like_interval_list(value) -> bool:
    if not isinstance(value, list) or not value:
        return False
    return all(
        isinstance(v, dict)
        and ("start_line" in v or "startLine" in v)
        and ("end_line" in v or "endLine" in v)
        for v in value
    )


def _from_legacy(data: dict) -> StoreNode:
    """Untagged nested map: an interval list is a leaf, anything else a subtree."""
    node = StoreNode.subtree()
    for name, value in data.items():
        if _looks_like_interval_list(value):
            leaf = StoreNode.leaf()
            leaf.intervals = compact_intervals([Interval.from_dict(r) for r in value])
            node.children[str(name)] = leaf
        elif isinstance(value, dict):
            node.children[str(name)] = _from_legacy(value)
        elif isinstance(value, list) and not value:
            node.children[str(name)] = StoreNode.leaf()
        else:
            raise StoreFormatError(f"unrecognised legacy entry for {name!r}")
    return node


def split_path(path: str) -> list[str]:
    """Split a workspace-relative path into its non-empty segments."""
    return [seg for seg in path.replace("\\", "/").split("/") if seg and seg != "."]


# ============================================================================
# RANGE STORE
# ============================================================================

class RangeStore:
    """Hierarchical map of relative file path -> dwell intervals."""

    def __init__(self, root: StoreNode | None = None):
        self.root = root or StoreNode.subtree()

    # --- mutation -----------------------------------------------------------

    def _leaf_for(self, path: str, create: bool) -> StoreNode | None:
        segments = split_path(path)
        if not segments:
            return None

        node = self.root
        for i, segment in enumerate(segments):
            last = i == len(segments) - 1
            child = node.children.get(segment)
            if child is None:
                if not create:
                    return None
                child = StoreNode.leaf() if last else StoreNode.subtree()
                node.children[segment] = child
            expected = NodeKind.LEAF if last else NodeKind.SUBTREE
            if child.kind is not expected:
                if create:
                    logger.warning(
                        "path collision at %r in %r: stored %s, need %s",
                        segment, path, child.kind.value, expected.value,
                    )
                return None
            node = child
        return node

    def upsert(self, path: str, interval: Interval) -> bool:
        """Record interval for path. Returns False if the path collides."""
        leaf = self._leaf_for(path, create=True)
        if leaf is None:
            return False
        merge_interval(leaf.intervals, interval)
        return True

    def replace_file(self, path: str, intervals: list[Interval]) -> bool:
        leaf = self._leaf_for(path, create=True)
        if leaf is None:
            return False
        leaf.intervals = compact_intervals(intervals)
        return True

    def reset(self) -> dict:
        """Empty the store, returning the serialised tree it held."""
        old = self.to_dict()
        self.root = StoreNode.subtree()
        return old

    # --- queries ------------------------------------------------------------

    def get(self, path: str) -> list[Interval]:
        leaf = self._leaf_for(path, create=False)
        if leaf is None:
            return []
        return list(leaf.intervals)

    def traverse_all(self) -> Iterator[tuple[str, list[Interval]]]:
        """Yield (relative path, intervals) for every file, sorted by path."""
        stack: list[tuple[str, StoreNode]] = [("", self.root)]
        leaves: list[tuple[str, list[Interval]]] = []
        while stack:
            prefix, node = stack.pop()
            if node.kind is NodeKind.LEAF:
                leaves.append((prefix, node.intervals))
                continue
            for name, child in node.children.items():
                stack.append((f"{prefix}/{name}" if prefix else name, child))
        leaves.sort(key=lambda item: item[0])
        yield from leaves

    def file_count(self) -> int:
        return sum(1 for _ in self.traverse_all())

    def total_duration_ms(self) -> int:
        return sum(i.total_duration_ms for _, intervals in self.traverse_all() for i in intervals)

    def is_empty(self) -> bool:
        return not self.root.children

    def copy(self) -> "RangeStore":
        return RangeStore(copy.deepcopy(self.root))

    # --- serialisation ------------------------------------------------------

    def to_dict(self) -> dict:
        return {"format": STORE_FORMAT, "version": STORE_VERSION, "root": self.root.to_dict()}

    @classmethod
    def from_dict(cls, data) -> "RangeStore":
        if not isinstance(data, dict):
            raise StoreFormatError("snapshot must be a JSON object")
        if "root" in data or "format" in data:
            if data.get("format") != STORE_FORMAT:
                raise StoreFormatError(f"unknown snapshot format {data.get('format')!r}")
            if data.get("version") != STORE_VERSION:
                raise StoreFormatError(f"unsupported snapshot version {data.get('version')!r}")
            root = StoreNode.from_dict(data.get("root"))
            if root.kind is not NodeKind.SUBTREE:
                raise StoreFormatError("snapshot root must be a subtree")
            return cls(root)
        return cls(_from_legacy(data))
