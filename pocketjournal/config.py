# -*- coding: utf-8 -*-
"""Configuration management (JSON on disk) and database path resolution."""
from __future__ import annotations

from typing import Dict, Optional
from pathlib import Path
import json
import logging
import os

from .repository import SortMode

logger = logging.getLogger(__name__)

APP_NAME = "pocketjournal"

DB_ENV_VAR = "POCKETJOURNAL_DB"
DEFAULT_DB_NAME = "pocketjournal.sqlite3"

DEFAULT_CONFIG: Dict[str, object] = {
    # Empty means: use $POCKETJOURNAL_DB or DEFAULT_DB_NAME
    "db_path": "",
    "home_sort": SortMode.NONE.value,
    "log_level": "WARNING",
}


def config_file() -> Path:
    """Return ``config.json`` under APPDATA (Windows) or XDG_CONFIG_HOME."""
    if os.name == "nt":
        root = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
    else:
        root = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(root) / APP_NAME / "config.json"


def _read_settings(path: Path) -> Dict[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a JSON object")
    return data


def load_config(path: Optional[Path] = None) -> Dict[str, object]:
    """Return DEFAULT_CONFIG overlaid with the settings stored in *path*.

    A missing file is created with the defaults. Keys that PocketJournal does
    not know are dropped with a warning.
    """
    path = path or config_file()
    settings = dict(DEFAULT_CONFIG)
    if not path.exists():
        logger.info("No config at %s, writing defaults", path)
        save_config(settings, path)
        return settings
    for key, value in _read_settings(path).items():
        if key not in DEFAULT_CONFIG:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        settings[key] = value
    return settings


def save_config(cfg: Dict[str, object], path: Optional[Path] = None) -> None:
    """Write *cfg* as JSON, replacing the previous file in one step."""
    path = path or config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    staged = path.with_name(path.name + ".tmp")
    staged.write_text(json.dumps(cfg, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    os.replace(staged, path)
    logger.debug("Saved config to %s", path)


def resolve_db_path(cfg: Dict[str, object]) -> str:
    """Pick the database file: environment, then config, then the default."""
    env_path = os.environ.get(DB_ENV_VAR)
    if env_path:
        return env_path
    cfg_path = str(cfg.get("db_path") or "").strip()
    if cfg_path:
        return os.path.expanduser(cfg_path)
    return DEFAULT_DB_NAME


def home_sort_mode(cfg: Dict[str, object]) -> SortMode:
    """Return the saved home-list sort mode."""
    raw = str(cfg.get("home_sort", SortMode.NONE.value))
    try:
        return SortMode(raw)
    except ValueError as exc:
        raise ValueError(f"Unknown home_sort {raw!r} in config") from exc
