from datetime import date, datetime

import pytest

from watchtime.clock import FixedClock, has_rolled_over
from watchtime.exceptions import CapExceededError, InvalidRangeError
from watchtime.limits import DailyLimitConfig
from watchtime.minutes import format_clock, format_minutes, millis_to_minutes, to_minutes


def test_defaults() -> None:
    config = DailyLimitConfig()

    assert config.base_minutes == 60
    assert config.applied_minutes == 0
    assert config.enabled is False
    assert config.effective_minutes == 60
    assert config.headroom_minutes == 120


@pytest.mark.parametrize("base", [0, 181, -5])
def test_base_outside_range_rejected(base: int) -> None:
    with pytest.raises(InvalidRangeError) as excinfo:
        DailyLimitConfig(base_minutes=base)

    assert excinfo.value.field == "base_minutes"


def test_cap_invariant_enforced() -> None:
    with pytest.raises(CapExceededError) as excinfo:
        DailyLimitConfig(base_minutes=170, applied_minutes=20)

    assert excinfo.value.requested == 190
    assert excinfo.value.maximum == 180


def test_negative_applied_rejected() -> None:
    with pytest.raises(InvalidRangeError):
        DailyLimitConfig(applied_minutes=-1)


def test_roll_over_clears_applied_and_keeps_base() -> None:
    config = DailyLimitConfig(base_minutes=90, applied_minutes=30, enabled=True, day=date(2024, 5, 1))

    same_day = config.roll_over(date(2024, 5, 1))
    next_day = config.roll_over(date(2024, 5, 2))

    assert same_day is config
    assert next_day.base_minutes == 90
    assert next_day.applied_minutes == 0
    assert next_day.enabled is True
    assert next_day.day == date(2024, 5, 2)


def test_roll_over_can_reset_base() -> None:
    config = DailyLimitConfig(base_minutes=120, day=date(2024, 5, 1))

    assert config.roll_over(date(2024, 5, 2), reset_base=True).base_minutes == 60


def test_has_rolled_over() -> None:
    assert has_rolled_over(None, date(2024, 5, 1)) is True
    assert has_rolled_over(date(2024, 5, 1), date(2024, 5, 1)) is False
    assert has_rolled_over(date(2024, 5, 1), date(2024, 5, 3)) is True


def test_fixed_clock_advances() -> None:
    clock = FixedClock(datetime(2024, 5, 1, 23, 30))

    assert clock.today() == date(2024, 5, 1)
    clock.advance(minutes=45)
    assert clock.today() == date(2024, 5, 2)


def test_minute_helpers() -> None:
    assert to_minutes(" 45 ") == 45
    with pytest.raises(TypeError):
        to_minutes(True)
    assert millis_to_minutes(-5) == 0
    assert millis_to_minutes(119_999) == 1
    assert format_minutes(90) == "1h 30m"
    assert format_minutes(45) == "45m"
    assert format_clock(75) == "01:15"
