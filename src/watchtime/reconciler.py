"""Reconciliation of base, applied and wallet minutes.

Every function here is pure: it reads a :class:`~watchtime.models.LimitSnapshot`
and returns a report describing the new consistent state, or raises a
:class:`~watchtime.exceptions.WatchTimeError` without side effects. The caller
persists the result.

Invariants kept by every plan:

* ``base + applied <= DAILY_CAP_MINUTES``
* ``applied >= 0`` and ``wallet >= 0``
* minutes leaving the wallet equal minutes entering base or applied, and vice
  versa (any base portion above ``DEFAULT_BASE_MINUTES`` was paid for once).
"""

from __future__ import annotations

from .exceptions import (
    CapExceededError,
    InsufficientEarnedTimeError,
    InsufficientWalletError,
    InvalidRangeError,
)
from .minutes import (
    DAILY_CAP_MINUTES,
    DEFAULT_BASE_MINUTES,
    MIN_BASE_MINUTES,
    RESET_COST_MINUTES,
)
from .models import ApplyReport, LimitSnapshot, ReconcileReport, ResetReport


def validate_base(new_base: int) -> int:
    if not MIN_BASE_MINUTES <= new_base <= DAILY_CAP_MINUTES:
        raise InvalidRangeError("base_minutes", new_base)
    return new_base


def funding_required(old_base: int, new_base: int) -> int:
    """Wallet minutes needed to raise the base from ``old_base`` to ``new_base``.

    Only the part above the free default allowance is paid for.
    """

    if new_base <= old_base:
        return 0
    if old_base >= DEFAULT_BASE_MINUTES:
        return new_base - old_base
    return max(new_base - DEFAULT_BASE_MINUTES, 0)


def plan_base_change(snapshot: LimitSnapshot, new_base: int) -> ReconcileReport:
    """Compute the state after the parent sets the base limit to ``new_base``."""

    validate_base(new_base)
    old_base = snapshot.base_minutes
    applied = snapshot.applied_minutes
    wallet = snapshot.wallet_minutes

    debited = 0
    returned = 0
    new_applied = applied

    if new_base > old_base:
        needed = funding_required(old_base, new_base)
        if needed > wallet:
            raise InsufficientWalletError(needed, wallet)
        debited = needed
    elif new_base < old_base:
        paid = max(old_base - DEFAULT_BASE_MINUTES, 0)
        returned += min(paid, old_base - new_base)
        # A base reduction forfeits today's applied bonus back to the wallet.
        returned += applied
        new_applied = 0

    # Shrinking applied to fit the cap also covers any drop in effective time
    # when the base is unchanged or raised.
    auto_adjusted = False
    excess = new_base + new_applied - DAILY_CAP_MINUTES
    if excess > 0:
        new_applied -= excess
        returned += excess
        auto_adjusted = True

    return ReconcileReport(
        old_base=old_base,
        new_base=new_base,
        old_applied=applied,
        new_applied=new_applied,
        new_wallet_balance=wallet - debited + returned,
        debited_from_wallet=debited,
        returned_to_wallet=returned,
        auto_adjusted=auto_adjusted,
    )


def max_applicable(snapshot: LimitSnapshot) -> int:
    """Return the most wallet minutes that can be applied right now."""

    by_cap = max(DAILY_CAP_MINUTES - snapshot.effective_minutes, 0)
    return min(by_cap, snapshot.wallet_minutes)


def plan_apply(snapshot: LimitSnapshot, amount: int) -> ApplyReport:
    """Compute the state after moving ``amount`` wallet minutes into today's limit."""

    if amount <= 0:
        raise InvalidRangeError("amount", amount)
    if amount > snapshot.wallet_minutes:
        raise InsufficientWalletError(amount, snapshot.wallet_minutes)
    requested = snapshot.effective_minutes + amount
    if requested > DAILY_CAP_MINUTES:
        raise CapExceededError(requested, DAILY_CAP_MINUTES)
    new_applied = snapshot.applied_minutes + amount
    return ApplyReport(
        applied=amount,
        new_applied=new_applied,
        new_wallet_balance=snapshot.wallet_minutes - amount,
        effective_minutes=snapshot.base_minutes + new_applied,
    )


def plan_reduce_effective(snapshot: LimitSnapshot, new_effective: int) -> ReconcileReport:
    """Lower today's effective limit by returning applied minutes to the wallet."""

    if not snapshot.base_minutes <= new_effective < snapshot.effective_minutes:
        raise InvalidRangeError("effective_minutes", new_effective)
    new_applied = new_effective - snapshot.base_minutes
    returned = snapshot.applied_minutes - new_applied
    return ReconcileReport(
        old_base=snapshot.base_minutes,
        new_base=snapshot.base_minutes,
        old_applied=snapshot.applied_minutes,
        new_applied=new_applied,
        new_wallet_balance=snapshot.wallet_minutes + returned,
        returned_to_wallet=returned,
    )


def check_reset(snapshot: LimitSnapshot) -> int:
    """Return the combined wallet and applied pool, or raise if it cannot fund a reset."""

    pool = snapshot.wallet_minutes + snapshot.applied_minutes
    if pool < RESET_COST_MINUTES:
        raise InsufficientEarnedTimeError(RESET_COST_MINUTES, pool)
    return pool


def plan_reset(snapshot: LimitSnapshot) -> ResetReport:
    """Compute the state after "reset today's usage".

    The cost is drawn from the wallet first and any remainder from applied
    minutes. The base limit is kept; usage for the day is zeroed by the caller.
    """

    check_reset(snapshot)
    from_wallet = min(snapshot.wallet_minutes, RESET_COST_MINUTES)
    from_applied = RESET_COST_MINUTES - from_wallet
    return ResetReport(
        wallet_deducted=from_wallet,
        applied_deducted=from_applied,
        base_minutes=snapshot.base_minutes,
        new_applied=snapshot.applied_minutes - from_applied,
        new_wallet_balance=snapshot.wallet_minutes - from_wallet,
    )
