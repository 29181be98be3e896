"""
dwellmap.histogram - Per-file dwell histogram

Splits a file into equal line buckets and spreads each interval's dwell time
over the buckets it covers, proportionally to how many of its lines land in
each one. The result feeds the sidebar bar chart (and `dwellmap histogram`).
"""

import math
from dataclasses import dataclass

from dwellmap.ranges import Interval

DEFAULT_BUCKETS = 20


@dataclass
class HistogramBucket:
    label: str          # "start - end", 0-based inclusive lines
    start_line: int
    end_line: int
    value: float = 0.0

    def to_dict(self) -> dict:
        return {"label": self.label, "start_line": self.start_line, "end_line": self.end_line, "value": self.value}


def bucket_size(line_count: int, buckets: int = DEFAULT_BUCKETS) -> int:
    return max(1, math.ceil(line_count / max(1, buckets)))


def bucket_file(intervals: list[Interval], line_count: int, buckets: int = DEFAULT_BUCKETS) -> list[HistogramBucket]:
    """Bucket dwell time of one file's intervals over its line_count lines."""
    if line_count <= 0:
        return []

    size = bucket_size(line_count, buckets)
    count = math.ceil(line_count / size)
    out = []
    for i in range(count):
        start = i * size
        end = min(start + size, line_count) - 1
        out.append(HistogramBucket(f"{start} - {end}", start, end))

    for interval in intervals:
        if interval.total_duration_ms <= 0:
            continue
        first = max(0, interval.start_line)
        last = max(first, interval.end_line)
        total_lines = last - first + 1
        for i, bucket in enumerate(out):
            lo = max(first, bucket.start_line)
            # The last bucket swallows anything past the end of the file
            hi = last if i == count - 1 else min(last, bucket.end_line)
            if lo > hi:
                continue
            bucket.value += interval.total_duration_ms * (hi - lo + 1) / total_lines
    return out


def render_bars(histogram: list[HistogramBucket], width: int = 40) -> list[str]:
    """Text bar chart, one line per bucket."""
    if not histogram:
        return []
    peak = max(b.value for b in histogram)
    label_width = max(len(b.label) for b in histogram)
    lines = []
    for bucket in histogram:
        filled = round(width * bucket.value / peak) if peak > 0 else 0
        lines.append(f"{bucket.label:>{label_width}} | {'#' * filled:<{width}} {bucket.value / 1000:.1f}s")
    return lines
