"""High level service coordinating the daily limit, usage ledger and wallet."""

from __future__ import annotations

import math
import threading
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

from .clock import Clock
from .exceptions import WatchTimeError
from .gate import DEFAULT_GUARDED_ACTIONS, AdProvider, ReviewerOverride, RewardGate
from .limits import DailyLimitConfig
from .minutes import AD_REWARD_MINUTES, SCREEN_LOCK_WINDOW, format_clock
from .models import (
    AdOutcome,
    ApplyReport,
    GuardedAction,
    LimitSnapshot,
    ReconcileReport,
    ResetReport,
    WalletEventType,
    WalletTransaction,
)
from .ops import StructuredLogger
from .reconciler import (
    check_reset,
    max_applicable,
    plan_apply,
    plan_base_change,
    plan_reduce_effective,
    plan_reset,
)
from .store import InMemoryStateStore, StateStore
from .usage import UsageLedger
from .wallet import EarnedTimeWallet

SCREEN_LOCK_META_KEY = "screen_lock_enabled_until"


class WatchTimeEngine:
    """Daily time budget and earned-time wallet for the settings and player surfaces.

    Mutations of ``(base, applied, wallet)`` run under one state lock and are
    persisted with a single :meth:`StateStore.save_state` call. Playback
    usage has its own lock so that progress ticks never wait on a
    reconciliation. Every public operation first applies any pending
    midnight rollover.
    """

    __slots__ = (
        "_store",
        "_clock",
        "_gate",
        "_logger",
        "_wallet_ttl",
        "_base_resets_daily",
        "_state_lock",
        "_usage_lock",
        "_exceeded_logged_day",
    )

    def __init__(
        self,
        store: Optional[StateStore] = None,
        *,
        clock: Optional[Clock] = None,
        ads: Optional[AdProvider] = None,
        reviewer: Optional[ReviewerOverride] = None,
        gate: Optional[RewardGate] = None,
        logger: Optional[StructuredLogger] = None,
        guarded: Iterable[GuardedAction] = DEFAULT_GUARDED_ACTIONS,
        wallet_entry_ttl: Optional[timedelta] = None,
        base_resets_daily: bool = False,
    ) -> None:
        self._store: StateStore = store or InMemoryStateStore()
        self._clock = clock or Clock()
        self._gate = gate or RewardGate(ads, reviewer=reviewer, guarded=guarded)
        self._logger = logger or StructuredLogger()
        self._wallet_ttl = wallet_entry_ttl
        self._base_resets_daily = base_resets_daily
        self._state_lock = threading.RLock()
        self._usage_lock = threading.Lock()
        self._exceeded_logged_day: Optional[date] = None

    @property
    def gate(self) -> RewardGate:
        return self._gate

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Rollover
    # ------------------------------------------------------------------
    def _roll_state(self) -> Tuple[DailyLimitConfig, EarnedTimeWallet, bool]:
        today = self._clock.today()
        limits = self._store.load_limits()
        wallet = self._store.load_wallet(entry_ttl=self._wallet_ttl)
        rolled_limits = limits.roll_over(today, reset_base=self._base_resets_daily)
        wallet_rolled = wallet.roll_over(today)
        rolled = rolled_limits is not limits or wallet_rolled
        expired = wallet.expire(self._clock.now())
        if rolled or expired:
            self._store.save_state(rolled_limits, wallet)
        if rolled:
            self._logger.log(
                "rollover",
                day=today.isoformat(),
                base=rolled_limits.base_minutes,
            )
        if expired:
            self._logger.log("wallet_expired", minutes=expired, balance=wallet.balance)
        return rolled_limits, wallet, rolled

    def _roll_usage(self) -> Tuple[UsageLedger, bool]:
        usage = self._store.load_usage()
        rolled = usage.roll_over(self._clock.today())
        if rolled:
            self._store.save_usage(usage)
        return usage, rolled

    def roll_over(self) -> bool:
        """Apply a pending midnight reset; returns ``True`` if anything was reset."""

        with self._state_lock:
            state_rolled = self._roll_state()[2]
        with self._usage_lock:
            usage_rolled = self._roll_usage()[1]
        return state_rolled or usage_rolled

    def _read(self) -> Tuple[DailyLimitConfig, EarnedTimeWallet]:
        with self._state_lock:
            limits, wallet, _ = self._roll_state()
        return limits, wallet

    def _usage(self) -> UsageLedger:
        with self._usage_lock:
            return self._roll_usage()[0]

    @staticmethod
    def _snapshot(limits: DailyLimitConfig, wallet: EarnedTimeWallet) -> LimitSnapshot:
        return LimitSnapshot(
            base_minutes=limits.base_minutes,
            applied_minutes=limits.applied_minutes,
            wallet_minutes=wallet.balance,
        )

    def _reject(self, operation: str, exc: WatchTimeError) -> None:
        self._logger.log("operation_rejected", operation=operation, **exc.as_dict())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def snapshot(self) -> LimitSnapshot:
        return self._snapshot(*self._read())

    def effective_limit_minutes(self) -> int:
        return self._read()[0].effective_minutes

    def base_limit_minutes(self) -> int:
        return self._read()[0].base_minutes

    def applied_minutes_today(self) -> int:
        return self._read()[0].applied_minutes

    def wallet_balance(self) -> int:
        return self._read()[1].balance

    def is_enabled(self) -> bool:
        return self._read()[0].enabled

    def used_minutes_today(self) -> int:
        return self._usage().used_minutes_today()

    def remaining_minutes(self) -> int:
        effective = self.effective_limit_minutes()
        return self._usage().remaining_minutes(effective)

    def max_applicable_minutes(self) -> int:
        return max_applicable(self.snapshot())

    def is_exceeded(self, *, parent_mode: bool = False) -> bool:
        """Whether the child has used up today's effective limit.

        ``parent_mode`` marks an unrestricted viewing context; the limit
        never applies there.
        """

        limits = self._read()[0]
        with self._usage_lock:
            usage, _ = self._roll_usage()
            exceeded = usage.is_exceeded(limits.effective_minutes, limits.enabled and not parent_mode)
            first_today = exceeded and self._exceeded_logged_day != usage.day
            if first_today:
                self._exceeded_logged_day = usage.day
        if first_today:
            self._logger.log(
                "usage_exceeded",
                used=usage.used_minutes_today(),
                limit=limits.effective_minutes,
            )
        return exceeded

    def display_string(self) -> str:
        effective = self.effective_limit_minutes()
        used = self.used_minutes_today()
        return f"Used today: {format_clock(used)} / {format_clock(effective)}"

    def wallet_transactions(self) -> Tuple[WalletTransaction, ...]:
        return self._read()[1].transactions

    def wallet_statement(self) -> str:
        return self._read()[1].statement()

    def export_wallet_csv(self) -> str:
        return self._read()[1].export_transactions_csv()

    def ad_status(self) -> Dict[str, Any]:
        return {
            "ready": self._gate.is_ad_ready(),
            "loading": self._gate.is_ad_loading(),
            "reviewer": self._gate.reviewer.is_active(),
            "unlocked": sorted(action.value for action in GuardedAction if self._gate.is_unlocked(action)),
        }

    def status(self, *, parent_mode: bool = False) -> Dict[str, Any]:
        limits, wallet = self._read()
        usage = self._usage()
        snapshot = self._snapshot(limits, wallet)
        return {
            "enabled": limits.enabled,
            "base_minutes": limits.base_minutes,
            "applied_minutes": limits.applied_minutes,
            "effective_minutes": limits.effective_minutes,
            "wallet_minutes": wallet.balance,
            "used_minutes": usage.used_minutes_today(),
            "remaining_minutes": usage.remaining_minutes(limits.effective_minutes),
            "max_applicable_minutes": max_applicable(snapshot),
            "exceeded": self.is_exceeded(parent_mode=parent_mode),
            "screen_lock_enabled": self.is_screen_lock_enabled(),
            "display": f"Used today: {format_clock(usage.used_minutes_today())} / "
            f"{format_clock(limits.effective_minutes)}",
        }

    def summary(self) -> str:
        """Create a human-readable summary of the engine state."""

        state = self.status()
        lines = [
            "WatchTime state:",
            f"  Limit enabled: {'yes' if state['enabled'] else 'no'}",
            f"  Base time: {state['base_minutes']} minutes",
            f"  Applied earned time: {state['applied_minutes']} minutes",
            f"  Wallet: {state['wallet_minutes']} minutes",
            f"  Effective limit: {state['effective_minutes']} minutes",
            f"  Time used: {state['used_minutes']} minutes",
            f"  Remaining: {state['remaining_minutes']} minutes",
            f"  {state['display']}",
        ]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Player commands
    # ------------------------------------------------------------------
    def add_used(self, elapsed_millis: int) -> None:
        """Record playback time; called from the player's progress timer."""

        with self._usage_lock:
            usage, _ = self._roll_usage()
            usage.add_used(elapsed_millis)
            self._store.save_usage(usage)

    # ------------------------------------------------------------------
    # Settings commands
    # ------------------------------------------------------------------
    def set_enabled(self, enabled: bool) -> DailyLimitConfig:
        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            updated = limits.with_changes(enabled=bool(enabled))
            self._store.save_state(updated, wallet)
        self._logger.log("limit_enabled" if enabled else "limit_disabled")
        return updated

    def preview_base_limit(self, new_base: int) -> ReconcileReport:
        """Plan a base change without touching state, e.g. before requesting an ad."""

        return plan_base_change(self.snapshot(), new_base)

    def set_base_limit(self, new_base: int) -> ReconcileReport:
        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            try:
                report = plan_base_change(self._snapshot(limits, wallet), new_base)
                funded = report.debited_from_wallet > 0
                if funded:
                    self._gate.ensure(GuardedAction.RAISE_BASE)
                now = self._clock.now()
                wallet.debit(
                    report.debited_from_wallet,
                    at=now,
                    event_type=WalletEventType.FUNDED_BASE,
                    description=f"Base limit raised to {report.new_base} min",
                )
                wallet.credit_return(
                    report.returned_to_wallet,
                    at=now,
                    description=f"Base limit changed to {report.new_base} min",
                    metadata={"auto_adjusted": "yes"} if report.auto_adjusted else None,
                )
                updated = limits.with_changes(
                    base_minutes=report.new_base,
                    applied_minutes=report.new_applied,
                )
                self._store.save_state(updated, wallet)
            except WatchTimeError as exc:
                self._reject("set_base_limit", exc)
                raise
            if funded:
                self._gate.consume(GuardedAction.RAISE_BASE)
        self._logger.log("base_limit_changed", **report.as_dict())
        return report

    def reduce_effective_limit(self, new_effective: int) -> ReconcileReport:
        """Lower today's effective limit, returning the applied difference to the wallet."""

        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            try:
                report = plan_reduce_effective(self._snapshot(limits, wallet), new_effective)
                wallet.credit_return(
                    report.returned_to_wallet,
                    at=self._clock.now(),
                    description=f"Effective limit reduced to {new_effective} min",
                )
                self._store.save_state(limits.with_changes(applied_minutes=report.new_applied), wallet)
            except WatchTimeError as exc:
                self._reject("reduce_effective_limit", exc)
                raise
        self._logger.log("effective_limit_reduced", **report.as_dict())
        return report

    def apply_earned_time(self, amount: int) -> ApplyReport:
        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            return self._apply(limits, wallet, amount)

    def apply_max_earned_time(self) -> ApplyReport:
        """Apply as much of the wallet as fits under the daily cap."""

        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            snapshot = self._snapshot(limits, wallet)
            # With nothing applicable, fall through to the regular checks for the error.
            amount = max_applicable(snapshot) or max(snapshot.wallet_minutes, 1)
            return self._apply(limits, wallet, amount)

    def _apply(self, limits: DailyLimitConfig, wallet: EarnedTimeWallet, amount: int) -> ApplyReport:
        try:
            report = plan_apply(self._snapshot(limits, wallet), amount)
            self._gate.ensure(GuardedAction.APPLY_EARNED_TIME)
            wallet.debit(
                report.applied,
                at=self._clock.now(),
                event_type=WalletEventType.APPLIED,
                description="Applied to daily limit",
            )
            self._store.save_state(limits.with_changes(applied_minutes=report.new_applied), wallet)
        except WatchTimeError as exc:
            self._reject("apply_earned_time", exc)
            raise
        self._gate.consume(GuardedAction.APPLY_EARNED_TIME)
        self._logger.log("earned_time_applied", **report.as_dict())
        return report

    def credit_wallet(self) -> WalletTransaction:
        """Add the reward for a completed rewarded ad to the wallet."""

        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            try:
                self._gate.ensure(GuardedAction.EARN_TIME)
                transaction = wallet.credit(AD_REWARD_MINUTES, at=self._clock.now())
                self._store.save_state(limits, wallet)
            except WatchTimeError as exc:
                self._reject("credit_wallet", exc)
                raise
            self._gate.consume(GuardedAction.EARN_TIME)
        self._logger.log("wallet_credited", minutes=transaction.minutes, balance=transaction.balance_after)
        return transaction

    def check_reset_allowed(self) -> int:
        """Return the wallet plus applied pool, raising if a reset cannot be funded."""

        try:
            return check_reset(self.snapshot())
        except WatchTimeError as exc:
            self._reject("reset_today", exc)
            raise

    def reset_today(self) -> ResetReport:
        """Consume the reset cost from the earned pool and zero today's usage."""

        with self._state_lock:
            limits, wallet, _ = self._roll_state()
            try:
                report = plan_reset(self._snapshot(limits, wallet))
                self._gate.ensure(GuardedAction.RESET_DAY)
                wallet.debit(
                    report.wallet_deducted,
                    at=self._clock.now(),
                    event_type=WalletEventType.RESET_CONSUMED,
                    description="Daily limit reset",
                )
                with self._usage_lock:
                    usage = self._store.load_usage()
                    usage.roll_over(self._clock.today())
                    usage.reset()
                    self._store.save_state(
                        limits.with_changes(applied_minutes=report.new_applied),
                        wallet,
                        usage,
                    )
            except WatchTimeError as exc:
                self._reject("reset_today", exc)
                raise
            self._gate.consume(GuardedAction.RESET_DAY)
        self._logger.log("day_reset", **report.as_dict())
        return report

    # ------------------------------------------------------------------
    # Screen lock
    # ------------------------------------------------------------------
    def _screen_lock_until(self) -> Optional[datetime]:
        raw = self._store.get_meta(SCREEN_LOCK_META_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def enable_screen_lock(self) -> datetime:
        """Enable the child screen lock for the next 24 hours after a rewarded ad."""

        with self._state_lock:
            try:
                self._gate.ensure(GuardedAction.LOCK_SCREEN)
            except WatchTimeError as exc:
                self._reject("enable_screen_lock", exc)
                raise
            until = self._clock.now() + SCREEN_LOCK_WINDOW
            self._store.set_meta(SCREEN_LOCK_META_KEY, until.isoformat())
            self._gate.consume(GuardedAction.LOCK_SCREEN)
        self._logger.log("screen_lock_enabled", until=until.isoformat())
        return until

    def is_screen_lock_enabled(self) -> bool:
        until = self._screen_lock_until()
        return until is not None and self._clock.now() < until

    def screen_lock_remaining_hours(self) -> int:
        until = self._screen_lock_until()
        if until is None:
            return 0
        remaining = (until - self._clock.now()).total_seconds()
        if remaining <= 0:
            return 0
        return math.ceil(remaining / 3600)

    # ------------------------------------------------------------------
    # Rewarded ads
    # ------------------------------------------------------------------
    def request_reward(self, action: GuardedAction) -> AdOutcome:
        """Check preconditions, then ask the ad collaborator to unlock ``action``."""

        if action is GuardedAction.RESET_DAY:
            self.check_reset_allowed()
        try:
            outcome = self._gate.present(action)
        except WatchTimeError as exc:
            self._reject("request_reward", exc)
            raise
        self._logger.log("ad_outcome", action=action.value, outcome=outcome.value)
        return outcome

    def deliver_ad_outcome(self, action: GuardedAction, outcome: AdOutcome) -> AdOutcome:
        """Entry point for asynchronous ad callbacks."""

        self._logger.log("ad_outcome", action=action.value, outcome=outcome.value)
        return self._gate.deliver(action, outcome)

    def activate_reviewer(self, code: str) -> bool:
        activated = self._gate.reviewer.activate(code)
        if activated:
            self._logger.log("reviewer_unlocked")
        return activated
