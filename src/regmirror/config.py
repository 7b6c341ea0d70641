"""Settings loader for the registry mirror.

Settings come from three layers, later layers winning: the dataclass
defaults, an optional YAML file and ``REGMIRROR_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError

DEFAULT_API_BASE = "https://www.ecfr.gov/api"
DEFAULT_DATABASE = Path("data") / "regmirror.db"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# environment variable -> settings field
ENV_OVERRIDES = {
    "REGMIRROR_API_BASE": "api_base",
    "REGMIRROR_DB": "database",
    "REGMIRROR_PAUSE": "request_pause_s",
    "REGMIRROR_TIMEOUT": "timeout_s",
    "REGMIRROR_LOG_LEVEL": "log_level",
}


@dataclass(frozen=True)
class LinkFallback:
    """A fixed agency/title association used when no cross reference resolves."""

    agency: str
    title: int


@dataclass(frozen=True)
class Settings:
    api_base: str = DEFAULT_API_BASE
    database: Path = DEFAULT_DATABASE
    request_pause_s: float = 0.1
    timeout_s: float = 30.0
    user_agent: str = "regmirror/0.1 (+https://github.com/regmirror)"
    demo_titles: Tuple[int, ...] = (1, 2, 3, 4, 5)
    demo_snapshot_limit: int = 5
    default_snapshot_limit: int = 3
    high_load_threshold: int = 3
    link_fallback: Tuple[LinkFallback, ...] = field(default_factory=tuple)
    log_level: str = "INFO"

    def with_overrides(self, **changes: Any) -> "Settings":
        return replace(self, **_coerce(changes))


def load_settings(
    path: str | Path | None = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build :class:`Settings` from ``path`` (or ``$REGMIRROR_CONFIG``) and ``env``."""

    env = os.environ if env is None else env
    if path is None:
        path = env.get("REGMIRROR_CONFIG") or None

    values: dict[str, Any] = {}
    if path is not None:
        values.update(_read_yaml(Path(path)))
    for var, name in ENV_OVERRIDES.items():
        if env.get(var):
            values[name] = env[var]
    return Settings(**_coerce(values))


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return dict(payload)


def _coerce(values: Mapping[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

    out: dict[str, Any] = {}
    for name, raw in values.items():
        try:
            out[name] = _convert(name, raw)
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {name!r}: {raw!r}") from exc
    return out


def _convert(name: str, raw: Any) -> Any:
    if name == "database":
        return Path(raw)
    if name in ("request_pause_s", "timeout_s"):
        value = float(raw)
        if value < 0:
            raise ValueError(name)
        return value
    if name in ("demo_snapshot_limit", "default_snapshot_limit", "high_load_threshold"):
        value = int(raw)
        if value < 1:
            raise ValueError(name)
        return value
    if name == "demo_titles":
        if isinstance(raw, str):
            raw = [part for part in raw.split(",") if part.strip()]
        return tuple(int(item) for item in raw)
    if name == "link_fallback":
        pairs = []
        for item in raw or ():
            if isinstance(item, LinkFallback):
                pairs.append(item)
            else:
                pairs.append(LinkFallback(agency=str(item["agency"]), title=int(item["title"])))
        return tuple(pairs)
    if name == "log_level":
        level = str(raw).upper()
        if level not in LOG_LEVELS:
            raise ValueError(level)
        return level
    return str(raw)


__all__ = ["LinkFallback", "Settings", "load_settings", "DEFAULT_API_BASE"]
