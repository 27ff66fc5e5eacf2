"""Configuration loading helpers with YAML overrides."""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

SETTINGS_ENV = "WORKBENCH_SETTINGS"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "database": {"path": "data/workflow.db"},
    "secrets": {"passphrase_env": "SECRET_ENC_KEY"},
    "paapi": {
        "timeout_sec": 10,
        "marketplace": "www.amazon.com",
        "region": "us-east-1",
        "host": "webservices.amazon.com",
    },
    "url_expander": {
        "timeout_sec": 7,
        "max_attempts": 4,
        "base_delay_ms": 800,
        "max_delay_ms": 10000,
    },
    "logs": {"default_limit": 100, "max_limit": 1000},
    "server": {"host": "127.0.0.1", "port": 4000},
    "logging": {"level": "INFO", "json": True},
}


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_settings(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """Return the defaults merged with the YAML settings file, if one exists."""
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    cfg_path = Path(path or os.getenv(SETTINGS_ENV) or "config/settings.yaml")
    if not cfg_path.exists():
        return settings
    with cfg_path.open("r", encoding="utf-8") as fh:
        loaded = yaml.safe_load(fh) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"Settings file {cfg_path} must contain a mapping")
    return _deep_merge(settings, loaded)


def resolve_passphrase(
    settings: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Read the cipher passphrase from the environment variable named in settings."""
    env = os.environ if environ is None else environ
    var_name = settings.get("secrets", {}).get("passphrase_env", "SECRET_ENC_KEY")
    return env.get(var_name) or None
