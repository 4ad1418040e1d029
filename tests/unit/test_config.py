"""Unit tests for eventfeed configuration loading."""

import os
from pathlib import Path

import pytest

from eventfeed.config_loader import FeedConfig, load_config
from eventfeed.core.config_manager import ConfigManager, get_config_value, parse_env_file
from eventfeed.core.connectivity import DEFAULT_PROBE_URL

pytestmark = pytest.mark.unit


class TestFeedConfig:
    def test_defaults(self):
        cfg = FeedConfig.from_dict(None)
        assert cfg.probe_url == DEFAULT_PROBE_URL
        assert cfg.probe_timeout_seconds == 3.0
        assert cfg.cache_max_age_hours == 24
        assert cfg.cache_max_age_ms == 24 * 60 * 60 * 1000
        assert cfg.horizon_months == 12
        assert cfg.display_limit == 3
        assert cfg.firestore_project_id is None

    def test_string_values_are_coerced(self):
        cfg = FeedConfig.from_dict({"horizon_months": "6", "probe_timeout_seconds": "1.5"})
        assert cfg.horizon_months == 6
        assert cfg.probe_timeout_seconds == 1.5

    def test_out_of_range_values_are_clamped(self):
        cfg = FeedConfig.from_dict(
            {"horizon_months": 60, "cache_max_age_hours": 0, "display_limit": -4, "probe_timeout_seconds": 120}
        )
        assert cfg.horizon_months == 24
        assert cfg.cache_max_age_hours == 1
        assert cfg.display_limit == 1
        assert cfg.probe_timeout_seconds == 30.0

    def test_garbage_numbers_use_defaults(self):
        cfg = FeedConfig.from_dict({"horizon_months": "soon", "probe_cache_seconds": "never"})
        assert cfg.horizon_months == 12
        assert cfg.probe_cache_seconds == 5.0

    def test_blank_optional_strings_are_none(self):
        cfg = FeedConfig.from_dict({"firestore_api_key": "", "log_level": "debug"})
        assert cfg.firestore_api_key is None
        assert cfg.log_level == "DEBUG"


class TestLoadConfig:
    def test_reads_yaml_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "feed.yaml"
        path.write_text("firestore_project_id: church-app\nhorizon_months: 3\n")

        cfg = load_config(str(path))

        assert cfg.firestore_project_id == "church-app"
        assert cfg.horizon_months == 3

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config(str(tmp_path / "absent.yaml")) == FeedConfig.from_dict({})

    def test_non_mapping_file_is_rejected(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "feed.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "feed.yaml"
        path.write_text("display_limit: 5\n")
        monkeypatch.setenv("EVENTFEED_DISPLAY_LIMIT", "7")

        assert load_config(str(path)).display_limit == 7
        assert load_config(str(path), env_overrides=False).display_limit == 5


class TestConfigManager:
    def test_parse_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text('# comment\nEVENTFEED_CACHE_PATH="/tmp/feed.db"\n\nBROKEN\nEVENTFEED_HORIZON_MONTHS=6\n')
        assert parse_env_file(env) == {
            "EVENTFEED_CACHE_PATH": "/tmp/feed.db",
            "EVENTFEED_HORIZON_MONTHS": "6",
        }

    def test_parse_missing_env_file(self, tmp_path):
        assert parse_env_file(tmp_path / ".env") == {}

    def test_env_file_does_not_override_environment(self, tmp_path, monkeypatch):
        env = tmp_path / ".env"
        env.write_text("EVENTFEED_HORIZON_MONTHS=6\nEVENTFEED_DISPLAY_LIMIT=9\n")
        monkeypatch.setenv("EVENTFEED_HORIZON_MONTHS", "2")
        monkeypatch.delenv("EVENTFEED_DISPLAY_LIMIT", raising=False)

        manager = ConfigManager(env_file_path=Path(env))
        try:
            cfg = manager.load_full_config()
        finally:
            os.environ.pop("EVENTFEED_DISPLAY_LIMIT", None)

        assert cfg["horizon_months"] == "2"
        assert cfg["display_limit"] == "9"

    def test_get_config_value(self):
        assert get_config_value({"a": 1}, "a") == 1
        assert get_config_value({"a": 1}, "b", 2) == 2
        assert get_config_value(FeedConfig(), "display_limit") == 3
        assert get_config_value(FeedConfig(), "missing", "x") == "x"
