# cardbeacon/config_loader.py
from __future__ import annotations
"""
YAML settings for the card watch.

The whole configuration is one file, config/config.yaml by default:

    app:        scan timing, history size, scan facility
    publisher:  where observed cards go
    log:        level and heartbeat period

load_config() parses a file, checks that it has an `app:` mapping and makes
it the active CONFIG. Every get_*() accessor reads CONFIG unless it is handed
a config dict of its own, and falls back to {} or the given default when a
section is missing.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CFG = PROJECT_ROOT / "config" / "config.yaml"

CONFIG: Dict[str, Any] = {}


def _read_mapping(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RuntimeError(
            f"No config file at {path} (card watch expects an 'app:' mapping; "
            f"relative paths resolve against {PROJECT_ROOT})"
        )
    except OSError as ex:
        raise RuntimeError(f"Cannot read config {path}: {ex}")

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as ex:
        raise RuntimeError(f"Config {path} is not valid YAML: {ex}")

    if not isinstance(data, dict):
        raise RuntimeError(f"Config {path} must hold a mapping at the top, got {type(data).__name__}")
    return data


def _config_path(p: str | os.PathLike[str] | None) -> Path:
    if not p:
        return DEFAULT_CFG
    pth = Path(p)
    return pth if pth.is_absolute() else (PROJECT_ROOT / pth).resolve()


def load_config(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """Parse `path` (default config/config.yaml), activate it and return it."""
    global CONFIG
    cfg_path = _config_path(path)
    cfg = _read_mapping(cfg_path)
    if not isinstance(cfg.get("app"), dict):
        raise RuntimeError(f"Config {cfg_path} has no 'app:' mapping (see config/config.yaml)")
    CONFIG = cfg
    return cfg


# ---------- accessors ----------

def _section(cfg: Optional[Dict[str, Any]], *keys: str) -> Dict[str, Any]:
    node: Any = CONFIG if cfg is None else cfg
    for key in keys:
        node = (node or {}).get(key, {}) if isinstance(node, dict) else {}
    return node or {}


def get_scan_cfg(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """app.scan: interval_ms / cache_flush_ms / cache_mode."""
    return _section(cfg, "app", "scan")


def get_facility_cfg(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """app.facility: type plus one block per facility type."""
    return _section(cfg, "app", "facility")


def get_history_cfg(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return _section(cfg, "app", "history")


def get_publisher_cfg(cfg: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """publisher: modes plus http / osc blocks."""
    return _section(cfg, "publisher")


def get_log_level(default: str = "INFO", cfg: Optional[Dict[str, Any]] = None) -> str:
    return str(_section(cfg, "log").get("level", default)).upper()


def get_heartbeat_s(default: float = 10.0, cfg: Optional[Dict[str, Any]] = None) -> float:
    try:
        return float(_section(cfg, "log").get("heartbeat_s", default))
    except (TypeError, ValueError):
        return default
