"""Tests for configuration loading and validation."""

import json

import pytest
import yaml

from telemetry_svc.config import (
    CONFIG_ENV_VAR,
    Config,
    ConfigError,
    DeliveryConfig,
    TelemetryConfig,
    load_config,
)


class TestDefaults:
    def test_defaults(self):
        config = Config()

        assert config.telemetry.entries_limit == 1000
        assert config.telemetry.batch_size == 1000
        assert config.telemetry.stale_after_seconds == 300.0
        assert config.telemetry.server_url == "https://telemetry.botpress.dev"
        assert config.delivery.sink_type == "http"

    def test_from_dict_partial(self):
        config = Config.from_dict({"telemetry": {"entries_limit": 25}})

        assert config.telemetry.entries_limit == 25
        assert config.telemetry.batch_size == 1000
        assert config.server.port == 8060


class TestValidation:
    @pytest.mark.parametrize("limit", [0, -1, "100", 12.5, True, None])
    def test_bad_entries_limit(self, limit):
        with pytest.raises(ConfigError):
            TelemetryConfig(entries_limit=limit)

    def test_bad_batch_size(self):
        with pytest.raises(ConfigError):
            TelemetryConfig(batch_size=0)

    def test_bad_stale_window(self):
        with pytest.raises(ConfigError):
            TelemetryConfig(stale_after_seconds=-5)

    def test_bad_sink_type(self):
        with pytest.raises(ConfigError):
            DeliveryConfig(sink_type="carrier-pigeon")

    def test_bad_interval(self):
        with pytest.raises(ConfigError):
            DeliveryConfig(delivery_interval_seconds=0)

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            Config.from_dict({"telemetry": {"entries_limt": 10}})

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestLoading:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "telemetry": {"entries_limit": 10, "db_path": "/tmp/t.db"},
            "delivery": {"sink_type": "console", "enabled": False},
        }))

        config = Config.from_yaml(str(path))

        assert config.telemetry.entries_limit == 10
        assert config.telemetry.db_path == "/tmp/t.db"
        assert config.delivery.sink_type == "console"
        assert config.delivery.enabled is False

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_yaml(str(path)) == Config()

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"telemetry": {"batch_size": 50}}))

        assert Config.from_json(str(path)).telemetry.batch_size == 50

    def test_load_config_by_suffix(self, tmp_path):
        yaml_path = tmp_path / "c.yml"
        yaml_path.write_text("telemetry:\n  entries_limit: 7\n")

        assert load_config(str(yaml_path)).telemetry.entries_limit == 7

    def test_load_config_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"telemetry": {"entries_limit": 3}}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_config().telemetry.entries_limit == 3

    def test_load_config_defaults_without_env(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

        assert load_config() == Config()

    def test_load_config_rejects_unknown_suffix(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "config.toml"))

    def test_malformed_limit_fails_on_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("telemetry:\n  entries_limit: -10\n")

        with pytest.raises(ConfigError):
            load_config(str(path))
