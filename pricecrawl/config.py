"""Crawler configuration: defaults, YAML file and environment overrides."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from pricecrawl.errors import ConfigError
from pricecrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

ENV_PREFIX = "PRICECRAWL_"

DEFAULT_CONFIG: dict[str, Any] = {
    "crawler": {
        "base_url": "https://www.smartphonereparatur-muenchen.de/",
        "user_agent": "ghost/1.0 (+https://muchandy.de)",
        "request_delay_ms": 2500,
        "max_retries": 3,
        "initial_backoff_ms": 1000,
        "backoff_multiplier": 2.0,
        "max_manufacturers": 0,
        "navigation_timeout_ms": 30000,
        "action_timeout_ms": 20000,
        "selector_timeout_ms": 10000,
    },
    "database": {"url": "sqlite:///repair_prices.sqlite"},
    "schedule": {"days": 7},
}


@dataclass(frozen=True)
class CrawlerConfig:
    """Timings, limits and endpoints fixed for the duration of a run."""

    base_url: str = DEFAULT_CONFIG["crawler"]["base_url"]
    user_agent: str = DEFAULT_CONFIG["crawler"]["user_agent"]
    request_delay_ms: int = 2500
    max_retries: int = 3
    initial_backoff_ms: int = 1000
    backoff_multiplier: float = 2.0
    max_manufacturers: int = 0
    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 20000
    selector_timeout_ms: int = 10000
    database_url: str = DEFAULT_CONFIG["database"]["url"]
    schedule_days: int = 7

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigError("base_url must not be empty")
        if self.request_delay_ms < 0:
            raise ConfigError("request_delay_ms must be >= 0")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.initial_backoff_ms < 0:
            raise ConfigError("initial_backoff_ms must be >= 0")
        if self.backoff_multiplier < 1:
            raise ConfigError("backoff_multiplier must be >= 1")
        if self.max_manufacturers < 0:
            raise ConfigError("max_manufacturers must be >= 0 (0 disables the cap)")
        if self.schedule_days <= 0:
            raise ConfigError("schedule_days must be a positive integer")

    @property
    def cooldown_ms(self) -> int:
        """Extra pause applied after a node fails."""
        return self.request_delay_ms * 2


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _coerce(raw: str, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            return raw.strip().lower() not in {"0", "false", "no", "off"}
        if isinstance(default, int):
            return int(raw.strip())
        if isinstance(default, float):
            return float(raw.strip())
    except ValueError:
        LOGGER.warning("Ignoring invalid value %r; keeping %r", raw, default)
        return default
    return raw.strip()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping, got {section!r}")
    return section


def _flatten(data: dict[str, Any]) -> dict[str, Any]:
    crawler = dict(_section(data, "crawler"))
    crawler["database_url"] = _section(data, "database").get("url", DEFAULT_CONFIG["database"]["url"])
    crawler["schedule_days"] = _section(data, "schedule").get("days", DEFAULT_CONFIG["schedule"]["days"])
    return crawler


def _typed(name: str, value: Any, expected: type) -> Any:
    """Return *value* as *expected*, converting numeric strings and ints for float fields."""

    if isinstance(value, bool) and expected is not bool:
        raise ConfigError(f"{name} must be {expected.__name__}, got {value!r}")
    if isinstance(value, expected):
        return value
    if expected is float and isinstance(value, int):
        return float(value)
    if isinstance(value, str) and expected in (int, float):
        try:
            return expected(value.strip())
        except ValueError as exc:
            raise ConfigError(f"{name} must be {expected.__name__}, got {value!r}") from exc
    raise ConfigError(f"{name} must be {expected.__name__}, got {value!r}")


def _apply_env(values: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for name in list(values):
        raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None:
            values[name] = _coerce(raw, values[name])
    return values


def load_config(
    path: str | Path | None = None,
    *,
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> CrawlerConfig:
    """Build a :class:`CrawlerConfig` from defaults, *path* and the environment.

    Precedence, lowest first: built-in defaults, the YAML file, ``PRICECRAWL_*``
    environment variables, keyword *overrides* (used by the CLI).
    """

    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file {config_path} must contain a mapping")
        else:
            LOGGER.warning("Configuration file %s not found; using defaults", config_path)

    merged = _deep_merge(DEFAULT_CONFIG, data) if data else deepcopy(DEFAULT_CONFIG)
    values = _apply_env(_flatten(merged), dict(os.environ) if environ is None else environ)
    values.update({key: value for key, value in overrides.items() if value is not None})

    field_types = {field.name: type(field.default) for field in fields(CrawlerConfig)}
    unknown = sorted(set(values) - set(field_types))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    return CrawlerConfig(**{name: _typed(name, value, field_types[name]) for name, value in values.items()})


__all__ = ["CrawlerConfig", "DEFAULT_CONFIG", "load_config"]
