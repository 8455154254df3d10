"""Configuration management for the uptime monitor.

Settings come from an optional YAML file and are then overridden by
environment variables. The result is an immutable ``MonitorSettings`` value
that is handed to the orchestrator; nothing in the pipeline reads the
environment on its own.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_STATE_FILE = Path("/tmp/monitor-state.json")
DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"
DEFAULT_TIMEZONE_LABEL = "ART"

# name, url env var, expected status, timeout seconds
DEFAULT_TARGETS: tuple[tuple[str, str, int, float], ...] = (
    ("Production", "PROD_MONITOR_URL", 200, 8.0),
    ("Staging", "STAGING_MONITOR_URL", 200, 8.0),
    ("Development", "DEV_MONITOR_URL", 200, 6.0),
)

TRUE_VALUES = {"1", "true", "yes", "on"}


class Target(BaseModel):
    """One monitored HTTP endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Human readable service name")
    url: str | None = Field(default=None, description="Endpoint to GET; None excludes the target")
    expected_status: int | None = Field(default=None, description="Exact status required; None means any 2xx")
    expected_text: str | None = Field(default=None, description="Case-insensitive substring required in the body")
    timeout_seconds: float = Field(default=8.0, gt=0, description="Upper bound for the whole probe")

    @field_validator("url", "expected_text", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


class MonitorSettings(BaseModel):
    """Immutable settings for one monitor run."""

    model_config = ConfigDict(frozen=True)

    targets: tuple[Target, ...] = Field(default_factory=tuple)
    retries: int = Field(default=2, ge=0, description="Retries after the first failed attempt")
    cooldown_ms: int = Field(default=1000, ge=0, description="Pause between failed attempts")
    slow_threshold_ms: int = Field(default=2500, ge=0, description="Latency above which an up service is slow")
    state_file: Path = Field(default=DEFAULT_STATE_FILE, description="JSON snapshot of the last run")
    webhook_url: str | None = Field(default=None, description="Discord webhook; None disables delivery")
    force_report: bool = Field(default=False, description="Always send a full status report")
    timezone: str = Field(default=DEFAULT_TIMEZONE)
    timezone_label: str = Field(default=DEFAULT_TIMEZONE_LABEL)

    @field_validator("webhook_url", mode="before")
    @classmethod
    def _blank_webhook(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @property
    def active_targets(self) -> tuple[Target, ...]:
        return tuple(t for t in self.targets if t.url)

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_ms / 1000.0

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _int_env(environ: Mapping[str, str], name: str) -> int | None:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _bool_env(environ: Mapping[str, str], name: str) -> bool | None:
    value = environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in TRUE_VALUES


def default_targets(environ: Mapping[str, str]) -> list[dict[str, Any]]:
    return [
        {
            "name": name,
            "url": environ.get(env_name),
            "expected_status": status,
            "timeout_seconds": timeout,
        }
        for name, env_name, status, timeout in DEFAULT_TARGETS
    ]


def _coerce_targets(raw: Any, environ: Mapping[str, str]) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        raise ConfigError("'targets' must be a list of mappings")

    targets: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ConfigError(f"Invalid target entry: {item!r}")
        entry = dict(item)
        url_env = entry.pop("url_env", None)
        if url_env and not entry.get("url"):
            entry["url"] = environ.get(str(url_env))
        if "name" not in entry:
            entry["name"] = entry.get("url") or str(url_env or "Service")
        targets.append(entry)
    return targets


def load_yaml_config(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config YAML must be a mapping")
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ConfigError(f"Config YAML keys must be strings, got {bad_keys!r}")
    return data


def failure_webhook_url(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> str | None:
    """Webhook to report a failed startup on; reads whatever it can and never raises."""
    if environ is None:
        environ = os.environ

    url = (environ.get("DISCORD_WEBHOOK_URL") or "").strip()
    if url:
        return url

    if config_path is None:
        config_path = environ.get("MONITOR_CONFIG") or None
    if config_path is None:
        return None
    try:
        data = load_yaml_config(Path(config_path))
    except ConfigError:
        return None
    value = data.get("webhook_url")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> MonitorSettings:
    """Build settings from YAML (optional) and environment variables."""
    if environ is None:
        environ = os.environ

    if config_path is None and environ.get("MONITOR_CONFIG"):
        config_path = environ["MONITOR_CONFIG"]

    config_data: dict[str, Any] = {}
    if config_path is not None:
        config_data = load_yaml_config(Path(config_path))

    if "targets" in config_data:
        config_data["targets"] = _coerce_targets(config_data["targets"], environ)
    else:
        config_data["targets"] = default_targets(environ)

    env_overrides: dict[str, Any] = {
        "retries": _int_env(environ, "MONITOR_RETRIES"),
        "cooldown_ms": _int_env(environ, "MONITOR_COOLDOWN_MS"),
        "slow_threshold_ms": _int_env(environ, "MONITOR_SLOW_THRESHOLD_MS"),
        "state_file": environ.get("MONITOR_STATE_FILE") or None,
        "webhook_url": environ.get("DISCORD_WEBHOOK_URL"),
        "force_report": _bool_env(environ, "FORCE_STATUS_REPORT"),
        "timezone": environ.get("MONITOR_TIMEZONE") or None,
        "timezone_label": environ.get("MONITOR_TIMEZONE_LABEL") or None,
    }
    for key, value in env_overrides.items():
        if value is not None:
            config_data[key] = value

    for key, value in overrides.items():
        if value is not None:
            config_data[key] = value

    try:
        return MonitorSettings(**config_data)
    except (ValidationError, TypeError) as e:
        raise ConfigError(f"Invalid monitor configuration: {e}") from e
