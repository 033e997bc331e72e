"""Runtime configuration.

Settings come from an optional YAML file (``TCN_CONFIG`` or an explicit
path) and are then overridden by ``TCN_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from tcn.errors import ConfigError


@dataclass(frozen=True)
class RateLimit:
    """A fixed-window budget: ``limit`` requests per ``window`` seconds."""

    limit: int
    window: float


@dataclass(frozen=True)
class Settings:
    data_dir: str = str(Path.home() / ".tcn")
    gateway_url: str = "http://localhost:8001"
    gateway_timeout: float = 10.0
    gateway_token: str = ""
    # Requests carrying this key are treated as coming from the bot itself
    internal_key: str = ""
    hub_guild: str = ""
    log_level: str = "INFO"
    create_limit: RateLimit = field(default_factory=lambda: RateLimit(2, 60.0))
    review_limit: RateLimit = field(default_factory=lambda: RateLimit(2, 3.0))
    report_limit: RateLimit = field(default_factory=lambda: RateLimit(1, 15.0))
    urgent_remind_after: float = 2 * 60 * 60
    remind_after: float = 6 * 60 * 60


_ENV_OVERRIDES = {
    "TCN_DATA_DIR": "data_dir",
    "TCN_GATEWAY_URL": "gateway_url",
    "TCN_GATEWAY_TIMEOUT": "gateway_timeout",
    "TCN_GATEWAY_TOKEN": "gateway_token",
    "TCN_INTERNAL_KEY": "internal_key",
    "TCN_HUB_GUILD": "hub_guild",
    "TCN_LOG_LEVEL": "log_level",
}

_LIMIT_KEYS = ("create_limit", "review_limit", "report_limit")


def _coerce(name: str, value: Any) -> Any:
    if name in _LIMIT_KEYS:
        if not isinstance(value, dict) or "limit" not in value or "window" not in value:
            raise ConfigError(f"{name} must be a mapping with 'limit' and 'window'")
        return RateLimit(limit=int(value["limit"]), window=float(value["window"]))
    if name in ("gateway_timeout", "urgent_remind_after", "remind_after"):
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name} must be a number") from exc
    return str(value)


def _read_yaml(path: Path) -> dict:
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_settings(path: Optional[str | Path] = None) -> Settings:
    """Load settings from YAML (if any) and apply environment overrides."""
    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}

    config_path = path or os.getenv("TCN_CONFIG")
    if config_path:
        for key, value in _read_yaml(Path(config_path)).items():
            if key in known:
                values[key] = _coerce(key, value)

    for env, name in _ENV_OVERRIDES.items():
        raw = os.getenv(env)
        if raw is not None and raw.strip():
            values[name] = _coerce(name, raw.strip())

    return replace(Settings(), **values)
