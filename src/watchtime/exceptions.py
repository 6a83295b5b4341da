"""Custom exception hierarchy for the WatchTime package."""

from __future__ import annotations

from typing import Any, Dict


class WatchTimeError(Exception):
    """Base class for all WatchTime specific errors."""

    code = "watchtime_error"

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class InsufficientWalletError(WatchTimeError):
    """Raised when the wallet cannot fund the requested minutes."""

    code = "insufficient_wallet"

    def __init__(self, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient wallet time. Need {needed} minutes, have {available} minutes."
        )

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "needed": self.needed, "available": self.available}


class InsufficientEarnedTimeError(WatchTimeError):
    """Raised when wallet plus applied time cannot cover a daily reset."""

    code = "insufficient_earned_time"

    def __init__(self, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient earned time. Need {needed} minutes, have {available} minutes."
        )

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "needed": self.needed, "available": self.available}


class CapExceededError(WatchTimeError):
    """Raised when an operation would push the effective limit above the daily cap."""

    code = "cap_exceeded"

    def __init__(self, requested: int, maximum: int) -> None:
        self.requested = requested
        self.maximum = maximum
        super().__init__(f"Daily limit of {maximum} minutes exceeded ({requested} requested).")

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "requested": self.requested, "maximum": self.maximum}


class InvalidRangeError(WatchTimeError):
    """Raised when a minute value falls outside its allowed range."""

    code = "invalid_range"

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Value {value!r} is out of range for '{field}'.")

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "field": self.field, "value": self.value}


class AdNotGrantedError(WatchTimeError):
    """Raised when a guarded action runs without a completed rewarded ad."""

    code = "ad_not_granted"

    def __init__(self, action: str, reason: str = "locked") -> None:
        self.action = action
        self.reason = reason
        super().__init__(f"Rewarded ad required for '{action}' ({reason}).")

    def as_dict(self) -> Dict[str, Any]:
        return {**super().as_dict(), "action": self.action, "reason": self.reason}
