from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError

# env var -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BLUESKY_API_URL": ("upstream", "base_url"),
    "REQUEST_TIMEOUT_SECONDS": ("upstream", "timeout_seconds"),
    "MAX_HOPS": ("walker", "max_hops"),
    "PUBLIC_URL": ("site", "public_url"),
}


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    With no path, returns the defaults. Raises ConfigError with a readable
    validation message on failure.
    """
    if path is None:
        return AppConfig()

    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, str(p))) from e


def apply_env_overrides(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """
    Return a copy of config with any recognised environment variables applied.

    Blank variables are ignored. Invalid values raise ConfigError naming the variable.
    """
    env = os.environ if environ is None else environ

    data: dict[str, Any] = config.model_dump(mode="python")
    applied: list[str] = []

    for name, (section, field) in _ENV_OVERRIDES.items():
        raw = (env.get(name) or "").strip()
        if not raw:
            continue
        data[section][field] = raw
        applied.append(name)

    if not applied:
        return config

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        joined = ", ".join(applied)
        raise ConfigError(
            _format_pydantic_errors(e, f"environment ({joined})")
        ) from e


def _format_pydantic_errors(err: ValidationError, source: str) -> str:
    lines: list[str] = [f"Invalid configuration in {source}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
