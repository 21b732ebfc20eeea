"""Configuration for page_alerter.

Settings come from an optional YAML file and are then overridden by
``PAGE_ALERTER_*`` environment variables. Defaults live under
``~/.page_alerter``.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _home_dir() -> Path:
    return Path.home() / ".page_alerter"


@dataclass
class ServerConfig:
    """Server and core settings."""

    name: str = "page_alerter"
    log_level: str = "INFO"
    db_path: str = str(_home_dir() / "page_alerter.db")
    data_dir: str = str(_home_dir() / "page_data")
    log_dir: str = str(_home_dir() / "log")
    default_check_cycle_sec: int = 600
    preview_max_width: int = 400
    user_agent: str = "PageAlerter/1.0 (Page Watcher)"
    logging_destinations: Dict[str, Any] = field(default_factory=dict)


# Environment variable -> (field name, converter)
_ENV_OVERRIDES = {
    "PAGE_ALERTER_DB_PATH": ("db_path", str),
    "PAGE_ALERTER_DATA_DIR": ("data_dir", str),
    "PAGE_ALERTER_LOG_LEVEL": ("log_level", str),
    "PAGE_ALERTER_LOG_DIR": ("log_dir", str),
    "PAGE_ALERTER_CHECK_CYCLE_SEC": ("default_check_cycle_sec", int),
}

_config: Optional[ServerConfig] = None


def _default_config_path() -> Path:
    env_path = os.environ.get("PAGE_ALERTER_CONFIG")
    if env_path:
        return Path(env_path)
    return _home_dir() / "config.yaml"


def load_config(path: Optional[str] = None) -> ServerConfig:
    """Load configuration from YAML and environment variables.

    Args:
        path: Optional YAML file path (defaults to PAGE_ALERTER_CONFIG or
            ~/.page_alerter/config.yaml). A missing file is not an error.

    Returns:
        The loaded ServerConfig

    Raises:
        ValueError: If the YAML file does not contain a mapping
    """
    config_path = Path(path) if path else _default_config_path()

    values: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        known = {f.name for f in fields(ServerConfig)}
        values = {k: v for k, v in loaded.items() if k in known}

    config = ServerConfig(**values)

    for env_name, (attr, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw:
            setattr(config, attr, convert(raw))

    if config.default_check_cycle_sec <= 0:
        raise ValueError("default_check_cycle_sec must be positive")

    return config


def get_config() -> ServerConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[ServerConfig]) -> None:
    """Replace the process-wide configuration (None resets it)."""
    global _config
    _config = config
