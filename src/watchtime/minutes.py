"""Utilities for working with whole-minute quantities in WatchTime."""

from __future__ import annotations

from datetime import timedelta
from typing import Union

DEFAULT_BASE_MINUTES = 60
MIN_BASE_MINUTES = 1
DAILY_CAP_MINUTES = 180
AD_REWARD_MINUTES = 15
RESET_COST_MINUTES = 60
MAX_USED_MINUTES = 24 * 60
MILLIS_PER_MINUTE = 60 * 1000
SCREEN_LOCK_WINDOW = timedelta(hours=24)

MinutesLike = Union[int, str]


def to_minutes(value: MinutesLike) -> int:
    """Convert ``value`` to a whole number of minutes."""

    if isinstance(value, bool):
        raise TypeError("Booleans are not minute values.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"Unsupported minutes type: {type(value)!r}")


def require_positive(minutes: int, *, allow_zero: bool = False) -> int:
    """Ensure ``minutes`` is positive (or non-negative when ``allow_zero`` is true)."""

    if allow_zero:
        if minutes < 0:
            raise ValueError("Minutes must be zero or greater.")
    else:
        if minutes <= 0:
            raise ValueError("Minutes must be greater than zero.")
    return minutes


def millis_to_minutes(millis: int) -> int:
    """Return the whole minutes contained in ``millis``, clamped to a single day."""

    minutes = max(millis, 0) // MILLIS_PER_MINUTE
    return min(minutes, MAX_USED_MINUTES)


def format_minutes(minutes: int) -> str:
    """Return ``minutes`` as a short duration such as ``1h 30m`` or ``45m``."""

    hours, mins = divmod(max(minutes, 0), 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_clock(minutes: int) -> str:
    """Return ``minutes`` as ``HH:MM``."""

    hours, mins = divmod(max(minutes, 0), 60)
    return f"{hours:02d}:{mins:02d}"
