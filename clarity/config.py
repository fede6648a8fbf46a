"""Application configuration management."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from clarity.models import AppConfig, ReviewSchedule, ReviewType

log = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "clarity"
_DB_DIR = Path.home() / ".local" / "share" / "clarity"

_CONFIG_FILE = _CONFIG_DIR / "config.json"


def load_config() -> AppConfig:
    """Load config from disk, returning defaults if none exists."""
    if _CONFIG_FILE.exists():
        try:
            data = json.loads(_CONFIG_FILE.read_text())
            return AppConfig(**data)
        except (json.JSONDecodeError, ValidationError, TypeError):
            log.warning("Ignoring unreadable config file %s", _CONFIG_FILE)
    return AppConfig()


def save_config(config: AppConfig) -> Path:
    """Write config to disk. Returns the config file path."""
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CONFIG_FILE.write_text(config.model_dump_json(indent=2))
    return _CONFIG_FILE


def get_db_path() -> Path:
    """Resolve the database path from config (or default)."""
    config = load_config()
    if config.db_path is not None:
        p = Path(config.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    _DB_DIR.mkdir(parents=True, exist_ok=True)
    return _DB_DIR / "clarity.db"


def set_db_path(path: str) -> AppConfig:
    """Set a custom database path and save config."""
    resolved = Path(path).expanduser().resolve()
    if resolved.is_dir():
        resolved = resolved / "clarity.db"
    resolved.parent.mkdir(parents=True, exist_ok=True)
    config = load_config()
    config.db_path = str(resolved)
    save_config(config)
    return config


def reset_db_path() -> AppConfig:
    """Reset to the default local database path."""
    config = load_config()
    config.db_path = None
    save_config(config)
    return config


# ---------------------------------------------------------------------------
# Review schedules
# ---------------------------------------------------------------------------


def get_schedule(config: AppConfig, review_type: ReviewType) -> Optional[ReviewSchedule]:
    """Return the first schedule configured for *review_type*."""
    for schedule in config.review_schedules:
        if schedule.type == review_type:
            return schedule
    return None


def update_schedule(
    review_type: ReviewType,
    *,
    time: Optional[str] = None,
    days: Optional[list[int]] = None,
    enabled: Optional[bool] = None,
) -> AppConfig:
    """Change the schedule for a review type and save config."""
    config = load_config()
    schedule = get_schedule(config, review_type)
    if schedule is None:
        schedule = ReviewSchedule(type=review_type)
        config.review_schedules.append(schedule)
    if time is not None:
        schedule.time = ReviewSchedule(type=review_type, time=time).time
    if days is not None:
        if any(d < 0 or d > 6 for d in days):
            raise ValueError("Days must be between 0 (Sunday) and 6 (Saturday).")
        schedule.days = sorted(set(days))
    if enabled is not None:
        schedule.enabled = enabled
    save_config(config)
    return config


def next_occurrence(schedule: ReviewSchedule, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next datetime at or after *now* that the schedule fires, or None if disabled."""
    if not schedule.enabled or not schedule.days:
        return None
    now = now or datetime.now()
    hour, minute = (int(part) for part in schedule.time.split(":"))
    for offset in range(8):
        candidate = (now + timedelta(days=offset)).replace(
            hour=hour, minute=minute, second=0, microsecond=0
        )
        # Python weekday() is Monday=0; schedules use Sunday=0
        if (candidate.weekday() + 1) % 7 in schedule.days and candidate >= now:
            return candidate
    return None
