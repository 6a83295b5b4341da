"""Domain models used by the WatchTime package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from .minutes import DAILY_CAP_MINUTES, format_minutes, require_positive


class WalletEventType(str, Enum):
    """Enumerates the ways the earned-time wallet balance can change."""

    EARNED = "earned"
    FUNDED_BASE = "funded_base"
    APPLIED = "applied"
    RETURNED = "returned"
    RESET_CONSUMED = "reset_consumed"
    EXPIRED = "expired"


class GuardedAction(str, Enum):
    """Operations that may require a completed rewarded ad."""

    EARN_TIME = "earn_time"
    LOCK_SCREEN = "lock_screen"
    RAISE_BASE = "raise_base"
    APPLY_EARNED_TIME = "apply_earned_time"
    RESET_DAY = "reset_day"


class AdOutcome(str, Enum):
    """Result reported by the ad collaborator for a rewarded ad request."""

    GRANTED = "granted"
    DISMISSED = "dismissed"
    TIMED_OUT = "timed_out"
    NOT_READY = "not_ready"


@dataclass(slots=True)
class WalletEntry:
    """A chunk of earned minutes, consumed oldest first."""

    minutes: int
    earned_at: datetime

    def __post_init__(self) -> None:
        require_positive(self.minutes)


@dataclass(slots=True)
class WalletTransaction:
    """Represents a single ledger entry for an :class:`~watchtime.wallet.EarnedTimeWallet`."""

    minutes: int
    type: WalletEventType
    description: str
    balance_after: int
    timestamp: datetime
    metadata: Dict[str, str] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True, slots=True)
class LimitSnapshot:
    """Consistent view of base, applied and wallet minutes read under one lock."""

    base_minutes: int
    applied_minutes: int
    wallet_minutes: int

    @property
    def effective_minutes(self) -> int:
        return self.base_minutes + self.applied_minutes

    @property
    def headroom_minutes(self) -> int:
        return max(DAILY_CAP_MINUTES - self.effective_minutes, 0)


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    """Outcome of a base or effective limit change."""

    old_base: int
    new_base: int
    old_applied: int
    new_applied: int
    new_wallet_balance: int
    debited_from_wallet: int = 0
    returned_to_wallet: int = 0
    auto_adjusted: bool = False

    @property
    def effective_minutes(self) -> int:
        return self.new_base + self.new_applied

    @property
    def changed(self) -> bool:
        return (
            self.old_base != self.new_base
            or self.old_applied != self.new_applied
            or self.debited_from_wallet > 0
            or self.returned_to_wallet > 0
        )

    def summary(self) -> str:
        limit = format_minutes(self.new_base)
        if self.auto_adjusted:
            return (
                f"Time limit set to {limit} (effective: {format_minutes(self.effective_minutes)}). "
                f"Adjusted to fit {DAILY_CAP_MINUTES}min limit. "
                f"{self.returned_to_wallet} minutes returned to wallet."
            )
        if self.returned_to_wallet > 0:
            return f"Time limit set to {limit}. {self.returned_to_wallet} minutes returned to wallet."
        if self.debited_from_wallet > 0:
            return f"Time limit set to {limit}. {self.debited_from_wallet} minutes taken from wallet."
        return f"Time limit set to {limit}."

    def as_dict(self) -> Dict[str, Any]:
        return {
            "new_base": self.new_base,
            "new_applied": self.new_applied,
            "new_wallet_balance": self.new_wallet_balance,
            "debited_from_wallet": self.debited_from_wallet,
            "returned_to_wallet": self.returned_to_wallet,
            "auto_adjusted": self.auto_adjusted,
            "effective_minutes": self.effective_minutes,
            "message": self.summary(),
        }


@dataclass(frozen=True, slots=True)
class ApplyReport:
    """Outcome of moving wallet minutes into today's limit."""

    applied: int
    new_applied: int
    new_wallet_balance: int
    effective_minutes: int

    def summary(self) -> str:
        return f"Applied {self.applied} minutes to daily limit"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "new_applied": self.new_applied,
            "new_wallet_balance": self.new_wallet_balance,
            "effective_minutes": self.effective_minutes,
            "message": self.summary(),
        }


@dataclass(frozen=True, slots=True)
class ResetReport:
    """Outcome of the ad-gated "reset today's usage" operation."""

    wallet_deducted: int
    applied_deducted: int
    base_minutes: int
    new_applied: int
    new_wallet_balance: int

    @property
    def effective_minutes(self) -> int:
        return min(self.base_minutes + self.new_applied, DAILY_CAP_MINUTES)

    def summary(self) -> str:
        parts = [
            f"Daily limit reset. Effective limit: {self.effective_minutes} minutes "
            f"(Base: {self.base_minutes} + Applied: {self.new_applied})."
        ]
        if self.wallet_deducted > 0 and self.applied_deducted > 0:
            parts.append(
                f"Deducted {self.wallet_deducted} min from wallet and "
                f"{self.applied_deducted} min from applied time."
            )
        elif self.wallet_deducted > 0:
            parts.append(f"Deducted {self.wallet_deducted} min from wallet.")
        elif self.applied_deducted > 0:
            parts.append(f"Deducted {self.applied_deducted} min from applied time.")
        return " ".join(parts)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "wallet_deducted": self.wallet_deducted,
            "applied_deducted": self.applied_deducted,
            "new_applied": self.new_applied,
            "new_wallet_balance": self.new_wallet_balance,
            "effective_minutes": self.effective_minutes,
            "message": self.summary(),
        }
