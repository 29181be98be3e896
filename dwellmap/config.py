"""
dwellmap.config - Tunable constants and per-project configuration

Defaults are the last values the sampling and navigation heuristics were tuned
to. A project can override any of them with a dwellmap.json file in its data
directory:

    {
      "sample_debounce_ms": 250,
      "commit_delay_ms": 4000,
      "tracked_languages": ["python", "go"]
    }
"""

import hashlib
import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

from dwellmap.errors import ConfigError

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

DWELLMAP_HOME_ENV = "DWELLMAP_HOME"
DEFAULT_HOME = Path.home() / ".dwellmap"
CONFIG_FILENAME = "dwellmap.json"

SAMPLE_DEBOUNCE_MS = 400          # Minimum dwell before a viewport counts
NAVIGATION_DEBOUNCE_MS = 1000     # Minimum gap between navigation updates
MERGE_OVERLAP_FRACTION = 0.5      # Overlap share of the current view needed to merge
COMMIT_DELAY_MS = 5000            # Age a location needs before it is committed
SAMPLE_INTERVAL_S = 1.0
NAVIGATION_INTERVAL_S = 1.0
AUTOSAVE_INTERVAL_S = 60.0
HISTOGRAM_BUCKETS = 20
INTERACTION_LOG_MAX_LINES = 5000
RESOLVER_WORKERS = 4

TRACKED_LANGUAGES = ("java", "python", "javascript", "typescript", "rust")
TRACKED_SCHEMES = ("file",)


@dataclass(frozen=True)
class EngineConfig:
    """All knobs of the sampling/navigation engine."""

    sample_debounce_ms: float = SAMPLE_DEBOUNCE_MS
    navigation_debounce_ms: float = NAVIGATION_DEBOUNCE_MS
    merge_overlap_fraction: float = MERGE_OVERLAP_FRACTION
    commit_delay_ms: float = COMMIT_DELAY_MS
    sample_interval_s: float = SAMPLE_INTERVAL_S
    navigation_interval_s: float = NAVIGATION_INTERVAL_S
    autosave_interval_s: float = AUTOSAVE_INTERVAL_S
    tracked_languages: tuple[str, ...] = TRACKED_LANGUAGES
    tracked_schemes: tuple[str, ...] = TRACKED_SCHEMES
    histogram_buckets: int = HISTOGRAM_BUCKETS
    record_interactions: bool = True
    interaction_log_max_lines: int = INTERACTION_LOG_MAX_LINES
    resolver_workers: int = RESOLVER_WORKERS
    start_timers: bool = True

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = list(value) if isinstance(value, tuple) else value
        return out


# ============================================================================
# DATA DIRECTORY
# ============================================================================

def dwellmap_home() -> Path:
    """Root directory holding every project's data directory."""
    env = os.environ.get(DWELLMAP_HOME_ENV)
    return Path(env).expanduser() if env else DEFAULT_HOME


def project_key(workspace_root: Path | str) -> str:
    """Short hash of the workspace path, stable across sessions."""
    normalized = str(Path(workspace_root).resolve()).lower().replace("\\", "/")
    return hashlib.md5(normalized.encode()).hexdigest()[:8]


def default_data_dir(workspace_root: Path | str) -> Path:
    return dwellmap_home() / "projects" / project_key(workspace_root)


# ============================================================================
# LOADING
# ============================================================================

def _coerce(name: str, expected, value):
    """Check one override against the type of its default."""
    if isinstance(expected, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"Config field '{name}' must be a boolean.")
        return value
    if isinstance(expected, int) and not isinstance(expected, bool) and name in (
        "histogram_buckets", "interaction_log_max_lines", "resolver_workers"
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"Config field '{name}' must be a positive integer.")
        return value
    if isinstance(expected, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ConfigError(f"Config field '{name}' must be a non-negative number.")
        return float(value)
    if isinstance(expected, tuple):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"Config field '{name}' must be a list of strings.")
        return tuple(value)
    raise ConfigError(f"Config field '{name}' cannot be overridden.")


def merge_config(base: EngineConfig, payload: dict) -> EngineConfig:
    """Overlay a parsed dwellmap.json payload on top of base."""
    if not isinstance(payload, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a JSON object.")

    known = {f.name for f in fields(base)}
    changes = {}
    for name, value in payload.items():
        if name not in known:
            logger.warning("ignoring unknown config field %r", name)
            continue
        changes[name] = _coerce(name, getattr(base, name), value)

    fraction = changes.get("merge_overlap_fraction", base.merge_overlap_fraction)
    if fraction > 1.0:
        raise ConfigError("Config field 'merge_overlap_fraction' must be between 0 and 1.")
    return replace(base, **changes)


def load_config(path: Path | None, base: EngineConfig | None = None) -> EngineConfig:
    """
    Load config from path (a file, or a data directory containing dwellmap.json).

    A missing file yields the defaults. Malformed JSON or a wrongly typed value
    raises ConfigError.
    """
    base = base or EngineConfig()
    if path is None:
        return base
    path = Path(path)
    if path.is_dir():
        path = path / CONFIG_FILENAME
    if not path.exists():
        return base

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON ({e})") from e
    except OSError as e:
        raise ConfigError(f"{path}: cannot read config ({e})") from e

    return merge_config(base, payload)
