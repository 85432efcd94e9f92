from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides


_SECTION_KEYS: set[str] = {
    "http",
    "logging",
    "retry",
    "rate_limit",
    "batch",
    "search",
    "content_filter",
    "aggregation",
    "sources",
    "cache",
}

# Flat keys (env vars, CLI flags) -> (section, key)
_FLAT_MAP: dict[str, tuple[str, str]] = {
    "http_timeout_seconds": ("http", "timeout_seconds"),
    "http_detail_timeout_seconds": ("http", "detail_timeout_seconds"),
    "http_follow_redirects": ("http", "follow_redirects"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "max_retries": ("retry", "max_retries"),
    "rate_limit_max_requests": ("rate_limit", "max_requests"),
    "rate_limit_window_seconds": ("rate_limit", "window_seconds"),
    "batch_concurrency": ("batch", "concurrency"),
    "fail_on_total_failure": ("aggregation", "fail_on_total_failure"),
    "skybap_portal_url": ("sources", "skybap_portal_url"),
    "ninexmovie_url": ("sources", "ninexmovie_url"),
    "filmywap_url": ("sources", "filmywap_url"),
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into *base* in place and return *base*.

    Nested mappings merge; any other value replaces.
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Bring one config layer into the sectioned shape.

    Sectioned blocks pass through; flat keys listed in ``_FLAT_MAP`` are
    moved into their section. Unknown keys are dropped.
    """
    out: dict[str, Any] = {}

    for section in _SECTION_KEYS:
        if section in data and isinstance(data[section], Mapping):
            out[section] = dict(data[section])

    for key in ("app_name", "environment"):
        if key in data:
            out[key] = data[key]

    for flat_key, (section, section_key) in _FLAT_MAP.items():
        if flat_key in data:
            out.setdefault(section, {})
            out[section][section_key] = data[flat_key]

    return out


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    raw = config_path.read_text(encoding="utf-8")
    parsed = yaml.safe_load(raw)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """Build :class:`AppConfig` from its layers, later ones winning.

    Layers: defaults, YAML file, env vars (.env included), CLI overrides.
    """
    cli_overrides = cli_overrides or {}

    # .env participates as part of the env layer.
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    base = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        _deep_merge(base, _normalize_layer(_read_yaml_config(config_path)))

    _deep_merge(base, _normalize_layer(EnvOverrides().to_update_dict()))
    _deep_merge(base, _normalize_layer(cli_overrides))

    return AppConfig.model_validate(base)
