"""Configuration constants for the WatchTime web frontend."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SQLITE_FILE_NAME = os.environ.get("WATCHTIME_SQLITE", "watchtime.db")
LOG_PATH: Optional[Path] = Path(os.environ["WATCHTIME_LOG_PATH"]) if os.environ.get("WATCHTIME_LOG_PATH") else None
REVIEWER_CODE = os.environ.get("WATCHTIME_REVIEWER_CODE", "791989")
WALLET_TTL_HOURS = _env_int("WATCHTIME_WALLET_TTL_HOURS", 8)
WALLET_ENTRY_TTL: Optional[timedelta] = timedelta(hours=WALLET_TTL_HOURS) if WALLET_TTL_HOURS > 0 else None
BASE_RESETS_DAILY = _env_flag("WATCHTIME_BASE_RESETS_DAILY")
TIME_OFFSET_MINUTES = _env_int("WATCHTIME_TIME_OFFSET_MINUTES", 0)

__all__ = [
    "SQLITE_FILE_NAME",
    "LOG_PATH",
    "REVIEWER_CODE",
    "WALLET_TTL_HOURS",
    "WALLET_ENTRY_TTL",
    "BASE_RESETS_DAILY",
    "TIME_OFFSET_MINUTES",
]
