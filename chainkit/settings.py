#!/usr/bin/env python3
"""Settings loader for chainkit."""

from functools import lru_cache
from pathlib import Path
from typing import Any
import os

import yaml

PACKAGE_DIR = Path(__file__).resolve().parent
CONFIG_DIR = PACKAGE_DIR / "configs"
APP_CONFIG_PATH = CONFIG_DIR / "app.yaml"


@lru_cache(maxsize=1)
def load_app_config() -> dict:
    if not APP_CONFIG_PATH.exists():
        raise FileNotFoundError(f"Missing app config: {APP_CONFIG_PATH}")
    data = yaml.safe_load(APP_CONFIG_PATH.read_text(encoding="utf-8"))
    return data or {}


def get_setting(path: str, default: Any = None) -> Any:
    """Get nested setting by dotted path."""
    current: Any = load_app_config()
    for part in path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def resolve_path(value: str) -> Path:
    """Expand `~` and resolve against the working directory."""
    if value is None:
        raise ValueError("path value is required")
    return Path(os.path.expanduser(str(value))).resolve()


__all__ = [
    "load_app_config",
    "get_setting",
    "resolve_path",
    "PACKAGE_DIR",
    "APP_CONFIG_PATH",
]
