"""Parent-configured daily limit state."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from .clock import has_rolled_over
from .exceptions import CapExceededError, InvalidRangeError
from .minutes import DAILY_CAP_MINUTES, DEFAULT_BASE_MINUTES, MIN_BASE_MINUTES


@dataclass(frozen=True, slots=True)
class DailyLimitConfig:
    """Base minutes (persisting across days) plus minutes applied from the wallet today."""

    base_minutes: int = DEFAULT_BASE_MINUTES
    applied_minutes: int = 0
    enabled: bool = False
    day: Optional[date] = None

    def __post_init__(self) -> None:
        if not MIN_BASE_MINUTES <= self.base_minutes <= DAILY_CAP_MINUTES:
            raise InvalidRangeError("base_minutes", self.base_minutes)
        if self.applied_minutes < 0:
            raise InvalidRangeError("applied_minutes", self.applied_minutes)
        if self.base_minutes + self.applied_minutes > DAILY_CAP_MINUTES:
            raise CapExceededError(self.base_minutes + self.applied_minutes, DAILY_CAP_MINUTES)

    @property
    def effective_minutes(self) -> int:
        return self.base_minutes + self.applied_minutes

    @property
    def headroom_minutes(self) -> int:
        return DAILY_CAP_MINUTES - self.effective_minutes

    def with_changes(self, **changes: object) -> "DailyLimitConfig":
        return replace(self, **changes)

    def roll_over(self, today: date, *, reset_base: bool = False) -> "DailyLimitConfig":
        """Return the state for ``today``; unchanged when no midnight has passed."""

        if not has_rolled_over(self.day, today):
            return self
        base = DEFAULT_BASE_MINUTES if reset_base else self.base_minutes
        return replace(self, base_minutes=base, applied_minutes=0, day=today)
