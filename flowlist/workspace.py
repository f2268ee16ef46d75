"""Workspace root, settings, timezone and clock helpers for Flowlist."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flowlist.fileio import read_yaml, write_yaml_atomic
from flowlist.models import Settings

logger = logging.getLogger(__name__)


def workspace_root() -> Path:
    """Get the workspace root directory (contains settings.yaml and data/)."""
    return Path(
        os.environ.get("FLOWLIST_ROOT", str(Path.home() / "flowlist"))
    ).expanduser().resolve()


def load_settings(root: Path | None = None) -> Settings:
    """Load settings.yaml, falling back to defaults when missing or unreadable."""
    if root is None:
        root = workspace_root()
    try:
        return Settings.from_dict(read_yaml(settings_path(root)))
    except Exception as e:
        logger.warning("Ignoring unreadable settings.yaml: %s", e)
        return Settings()


def save_settings(settings: Settings, root: Path | None = None) -> None:
    write_yaml_atomic(settings_path(root), settings.to_dict())


def init_workspace(root: Path | None = None) -> Path:
    """Create the workspace layout and a default settings.yaml if missing."""
    if root is None:
        root = workspace_root()
    data_dir(root).mkdir(parents=True, exist_ok=True)
    logs_dir(root).mkdir(parents=True, exist_ok=True)
    if not settings_path(root).exists():
        save_settings(Settings(), root)
        logger.info("Created default settings at %s", settings_path(root))
    return root


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Get user's timezone from settings.yaml, defaulting to UTC."""
    settings = load_settings(root)
    try:
        return ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", settings.timezone)
        return ZoneInfo("UTC")


def now_local(root: Path | None = None) -> datetime:
    """Get current datetime in user's timezone."""
    tz = get_user_timezone(root)
    return datetime.now(tz)


def today_str(root: Path | None = None) -> str:
    """Get today's date string (YYYY-MM-DD) in user's timezone."""
    return now_local(root).date().isoformat()


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def data_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data"


def logs_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "logs"
