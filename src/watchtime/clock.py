"""Local calendar day tracking and rollover detection."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Optional


class Clock:
    """Return naive local time using a configurable provider.

    ``offset_minutes`` shifts the provider's time, which lets a parent-facing
    settings page correct a wrong device clock without touching the system.
    """

    def __init__(
        self,
        provider: Callable[[], datetime] = datetime.now,
        *,
        offset_minutes: int = 0,
    ) -> None:
        self._provider = provider
        self.offset_minutes = int(offset_minutes)

    def now(self) -> datetime:
        return self._provider() + timedelta(minutes=self.offset_minutes)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Manually driven clock used by tests and simulations."""

    def __init__(self, moment: datetime) -> None:
        self._moment = moment
        super().__init__(self._current)

    def _current(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = moment

    def advance(self, **delta: float) -> datetime:
        self._moment = self._moment + timedelta(**delta)
        return self._moment


def has_rolled_over(stamp: Optional[date], today: date) -> bool:
    """Return ``True`` when local midnight has passed since ``stamp``.

    A missing stamp counts as a rollover so first use initialises the day.
    A stamp in the future (clock moved backwards) is not a rollover.
    """

    if stamp is None:
        return True
    return today > stamp
