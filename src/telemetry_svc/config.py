"""Configuration for the telemetry staging service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


# Environment variable naming the config file loaded at startup
CONFIG_ENV_VAR = "TELEMETRY_CONFIG"

DEFAULT_ENTRIES_LIMIT = 1000
DEFAULT_BATCH_SIZE = 1000
DEFAULT_SERVER_URL = "https://telemetry.botpress.dev"

# Checked-out entries untouched for this long are reclaimed
STALE_AFTER_SECONDS = 5 * 60.0


class ConfigError(ValueError):
    """Raised when configuration values are malformed."""
    pass


def _require_int(section: str, name: str, value: Any, minimum: int) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}.{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{section}.{name} must be >= {minimum}, got {value}")


def _require_positive(section: str, name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{section}.{name} must be a number, got {value!r}")
    if value <= 0:
        raise ConfigError(f"{section}.{name} must be > 0, got {value}")


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060


@dataclass
class TelemetryConfig:
    """Telemetry store configuration."""
    # SQLite database file (":memory:" for a throwaway store)
    db_path: str = "telemetry.db"

    # Maximum number of retained entries; oldest are evicted on insert
    entries_limit: int = DEFAULT_ENTRIES_LIMIT

    # Maximum entries handed out by a single checkout
    batch_size: int = DEFAULT_BATCH_SIZE

    # Collector endpoint returned with every batch
    server_url: str = DEFAULT_SERVER_URL

    # Checked-out entries older than this are made available again
    stale_after_seconds: float = STALE_AFTER_SECONDS

    # How long a writer waits for the SQLite write lock
    busy_timeout_seconds: float = 5.0

    def __post_init__(self):
        _require_int("telemetry", "entries_limit", self.entries_limit, 1)
        _require_int("telemetry", "batch_size", self.batch_size, 1)
        _require_positive("telemetry", "stale_after_seconds", self.stale_after_seconds)
        _require_positive("telemetry", "busy_timeout_seconds", self.busy_timeout_seconds)
        if not self.server_url:
            raise ConfigError("telemetry.server_url must not be empty")


@dataclass
class DeliveryConfig:
    """Background delivery and reclamation configuration."""
    enabled: bool = True
    sink_type: str = "http"  # http | console | file
    sink_config: dict[str, Any] = field(default_factory=dict)

    # Loop intervals
    delivery_interval_seconds: float = 60.0
    reclaim_interval_seconds: float = 60.0

    def __post_init__(self):
        if self.sink_type not in ("http", "console", "file"):
            raise ConfigError(f"delivery.sink_type must be http, console or file, got {self.sink_type!r}")
        _require_positive("delivery", "delivery_interval_seconds", self.delivery_interval_seconds)
        _require_positive("delivery", "reclaim_interval_seconds", self.reclaim_interval_seconds)


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        try:
            return cls(
                server=ServerConfig(**data.get("server", {})),
                telemetry=TelemetryConfig(**data.get("telemetry", {})),
                delivery=DeliveryConfig(**data.get("delivery", {})),
            )
        except TypeError as e:
            # Unknown keys or a section that is not a mapping
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


def load_config(path: str | None = None) -> Config:
    """
    Load configuration from a YAML or JSON file.

    Falls back to $TELEMETRY_CONFIG, then to defaults when neither is set.
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()

    suffix = Path(path).suffix.lower()
    if suffix in (".yaml", ".yml"):
        return Config.from_yaml(path)
    if suffix == ".json":
        return Config.from_json(path)
    raise ConfigError(f"Unsupported config file type: {path}")
