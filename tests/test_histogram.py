"""Tests for the per-file dwell histogram."""

import pytest

from dwellmap.histogram import bucket_file, render_bars
from dwellmap.ranges import Interval


class TestBucketFile:
    """Test bucket layout and time distribution."""

    def test_layout(self):
        """100 lines in 20 buckets gives 5-line buckets."""
        buckets = bucket_file([], 100)
        assert len(buckets) == 20
        assert buckets[0].label == "0 - 4"
        assert buckets[-1].label == "95 - 99"
        assert all(b.value == 0 for b in buckets)

    def test_uneven_line_count(self):
        """Bucket size rounds up, the last bucket is shorter."""
        buckets = bucket_file([], 101)
        assert len(buckets) == 17
        assert (buckets[-1].start_line, buckets[-1].end_line) == (96, 100)

    def test_short_file(self):
        """Files shorter than the bucket count get one bucket per line."""
        assert len(bucket_file([], 7)) == 7

    def test_empty_file(self):
        """An empty file has no buckets."""
        assert bucket_file([Interval(0, 10, 100)], 0) == []

    def test_proportional_split(self):
        """An interval spanning two buckets splits its time by line share."""
        buckets = bucket_file([Interval(0, 9, 1000)], 100)
        assert buckets[0].value == pytest.approx(500)
        assert buckets[1].value == pytest.approx(500)
        assert sum(b.value for b in buckets[2:]) == 0

    def test_uneven_split(self):
        """Three lines in one bucket and one in the next: 3/4 and 1/4."""
        buckets = bucket_file([Interval(2, 5, 400)], 100)
        assert buckets[0].value == pytest.approx(300)
        assert buckets[1].value == pytest.approx(100)

    def test_lines_past_end_clamp_into_last_bucket(self):
        """Stale ranges beyond the end of the file land in the last bucket."""
        buckets = bucket_file([Interval(95, 120, 1000)], 100)
        assert buckets[-1].value == pytest.approx(1000)

    def test_total_is_conserved(self):
        """Bucket values add up to the total dwell time."""
        intervals = [Interval(0, 99, 1000), Interval(13, 47, 250), Interval(80, 81, 3)]
        buckets = bucket_file(intervals, 100, buckets=7)
        assert sum(b.value for b in buckets) == pytest.approx(1253)


class TestRenderBars:
    """Test the text bar chart."""

    def test_peak_gets_full_width(self):
        """The busiest bucket fills the bar."""
        lines = render_bars(bucket_file([Interval(0, 4, 2000)], 10, buckets=2), width=10)
        assert len(lines) == 2
        assert "#" * 10 in lines[0]
        assert "#" not in lines[1]
        assert lines[0].endswith("2.0s")

    def test_empty(self):
        """No buckets, no lines."""
        assert render_bars([]) == []
