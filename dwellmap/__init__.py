"""
dwellmap - Attention sampling and navigation history for code editors

Records which lines of which files are actually on screen, and for how long,
then turns that into:

- Symbol-aware hotspots (which classes/functions got your attention)
- Per-file dwell histograms
- Browser-style back/forward navigation over code locations

Quick start:
    pip install dwellmap
    dwellmap status
    dwellmap hotspots --top 10
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "AttentionEngine",
    "EngineConfig",
    "DocumentInfo",
    "DocumentEdit",
    "HotspotAggregator",
    "Interval",
    "LineRange",
    "LocationSampler",
    "NavigationHistory",
    "RangeStore",
    "TrackedLocation",
]

from dwellmap.config import EngineConfig  # noqa: E402
from dwellmap.edits import DocumentEdit  # noqa: E402
from dwellmap.engine import AttentionEngine  # noqa: E402
from dwellmap.hotspots import HotspotAggregator  # noqa: E402
from dwellmap.navigation import NavigationHistory, TrackedLocation  # noqa: E402
from dwellmap.ranges import Interval, LineRange, RangeStore  # noqa: E402
from dwellmap.sampler import DocumentInfo, LocationSampler  # noqa: E402
