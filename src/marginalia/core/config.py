"""3-layer configuration system for marginalia.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.marginalia/config.yaml in the repository root)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".marginalia"
CONFIG_FILE = "config.yaml"
DATA_DIR_ENV = "MARGINALIA_DATA_DIR"

DEFAULT_CONFIG: dict = {
    "storage": {
        "sessions_dir": "",
    },
    "comments": {
        "default_type": "note",
    },
    "export": {
        "target": "clipboard",
        "path": "REVIEW.md",
    },
}

EXPORT_TARGETS = ("clipboard", "stdout", "file")


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def default_sessions_dir() -> Path:
    """Return the directory that holds saved sessions."""
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env)
    return Path.home() / ".local" / "share" / "marginalia" / "sessions"


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .marginalia/config.yaml."""
    config_path = project_path / CONFIG_DIR / CONFIG_FILE
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level must be a mapping", config_path)
        return {}
    return data


def _sanitize(config: dict) -> dict:
    """Replace malformed sections and values with their defaults."""
    for section, defaults in DEFAULT_CONFIG.items():
        if not isinstance(config.get(section), dict):
            if section in config:
                logger.warning("Ignoring config section %r: must be a mapping", section)
            config[section] = copy.deepcopy(defaults)

    sessions_dir = config["storage"].get("sessions_dir")
    if sessions_dir is not None and not isinstance(sessions_dir, str):
        logger.warning("Ignoring storage.sessions_dir %r in config: must be a string", sessions_dir)
        config["storage"]["sessions_dir"] = ""

    target = config["export"].get("target", DEFAULT_CONFIG["export"]["target"])
    if target not in EXPORT_TARGETS:
        logger.warning(
            "Unknown export.target %r in config, using %s", target, DEFAULT_CONFIG["export"]["target"]
        )
        config["export"]["target"] = DEFAULT_CONFIG["export"]["target"]

    path = config["export"].get("path")
    if not isinstance(path, str) or not path.strip():
        if "path" in config["export"]:
            logger.warning("Ignoring export.path %r in config: must be a non-empty string", path)
        config["export"]["path"] = DEFAULT_CONFIG["export"]["path"]
    return config


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a project."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config = _sanitize(config)
    if not config["storage"].get("sessions_dir"):
        config["storage"]["sessions_dir"] = str(default_sessions_dir())

    config["_project_path"] = str(project_path)
    return config
