"""Tests for configuration loading."""

import json

import pytest

from dwellmap.config import (
    EngineConfig,
    default_data_dir,
    load_config,
    merge_config,
    project_key,
)
from dwellmap.errors import ConfigError


class TestDefaults:
    """Test default values."""

    def test_defaults(self):
        """Defaults are the tuned thresholds."""
        config = EngineConfig()
        assert config.sample_debounce_ms == 400
        assert config.navigation_debounce_ms == 1000
        assert config.commit_delay_ms == 5000
        assert config.merge_overlap_fraction == 0.5
        assert "python" in config.tracked_languages

    def test_to_dict_is_json_serialisable(self):
        """to_dict() output can be dumped as JSON."""
        assert json.loads(json.dumps(EngineConfig().to_dict()))["histogram_buckets"] == 20


class TestLoadConfig:
    """Test dwellmap.json overrides."""

    def test_missing_file_gives_defaults(self, data_dir):
        """No config file, default config."""
        assert load_config(data_dir) == EngineConfig()
        assert load_config(None) == EngineConfig()

    def test_overrides(self, data_dir):
        """Values in dwellmap.json replace the defaults."""
        (data_dir / "dwellmap.json").write_text(json.dumps({
            "sample_debounce_ms": 250,
            "tracked_languages": ["go"],
            "record_interactions": False,
        }))
        config = load_config(data_dir)
        assert config.sample_debounce_ms == 250
        assert config.tracked_languages == ("go",)
        assert config.record_interactions is False
        assert config.commit_delay_ms == 5000

    def test_explicit_file_path(self, tmp_path):
        """A file path works as well as a directory."""
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"histogram_buckets": 10}))
        assert load_config(path).histogram_buckets == 10

    def test_unknown_key_is_ignored(self, caplog):
        """Unknown keys are logged and skipped."""
        with caplog.at_level("WARNING"):
            config = merge_config(EngineConfig(), {"no_such_knob": 1})
        assert config == EngineConfig()
        assert "no_such_knob" in caplog.text

    def test_bad_json(self, data_dir):
        """Malformed JSON raises ConfigError."""
        (data_dir / "dwellmap.json").write_text("{oops")
        with pytest.raises(ConfigError):
            load_config(data_dir)

    @pytest.mark.parametrize("payload", [
        {"sample_debounce_ms": "fast"},
        {"sample_debounce_ms": -1},
        {"record_interactions": "yes"},
        {"histogram_buckets": 0},
        {"tracked_languages": "python"},
        {"merge_overlap_fraction": 1.5},
    ])
    def test_wrong_types(self, payload):
        """Wrongly typed or out of range values raise ConfigError."""
        with pytest.raises(ConfigError):
            merge_config(EngineConfig(), payload)

    def test_payload_must_be_object(self):
        """A JSON list is not a config."""
        with pytest.raises(ConfigError):
            merge_config(EngineConfig(), [1, 2])


class TestDataDir:
    """Test per-project data directories."""

    def test_project_key_is_stable(self, tmp_path):
        """The same workspace always maps to the same key."""
        assert project_key(tmp_path) == project_key(tmp_path)
        assert len(project_key(tmp_path)) == 8
        assert project_key(tmp_path) != project_key(tmp_path / "other")

    def test_home_override(self, tmp_path, monkeypatch):
        """DWELLMAP_HOME relocates every project directory."""
        monkeypatch.setenv("DWELLMAP_HOME", str(tmp_path / "home"))
        data_dir = default_data_dir(tmp_path / "ws")
        assert data_dir.parent == tmp_path / "home" / "projects"
