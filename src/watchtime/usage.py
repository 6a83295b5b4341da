"""Daily playback usage accumulation."""

from __future__ import annotations

from datetime import date
from typing import Optional

from .clock import has_rolled_over
from .minutes import millis_to_minutes


class UsageLedger:
    """Milliseconds of actual playback for a single local day."""

    __slots__ = ("_used_millis", "_day")

    def __init__(self, *, day: Optional[date] = None, used_millis: int = 0) -> None:
        self._day = day
        self._used_millis = max(int(used_millis), 0)

    @property
    def day(self) -> Optional[date]:
        return self._day

    @property
    def used_millis(self) -> int:
        return self._used_millis

    def add_used(self, elapsed_millis: int) -> None:
        """Add playback time. Non-positive values are ignored."""

        if elapsed_millis > 0:
            self._used_millis += int(elapsed_millis)

    def used_minutes_today(self) -> int:
        return millis_to_minutes(self._used_millis)

    def is_exceeded(self, effective_limit_minutes: int, enabled: bool) -> bool:
        return enabled and self.used_minutes_today() >= effective_limit_minutes

    def remaining_minutes(self, effective_limit_minutes: int) -> int:
        return max(effective_limit_minutes - self.used_minutes_today(), 0)

    def roll_over(self, today: date) -> bool:
        """Start a fresh day if ``today`` is past the ledger's day; idempotent."""

        if not has_rolled_over(self._day, today):
            return False
        self._day = today
        self._used_millis = 0
        return True

    def reset(self) -> None:
        self._used_millis = 0

    def copy(self) -> "UsageLedger":
        return UsageLedger(day=self._day, used_millis=self._used_millis)
