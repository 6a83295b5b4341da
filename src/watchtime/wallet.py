"""Earned-time wallet funded by rewarded ad views."""

from __future__ import annotations

import csv
from datetime import date, datetime, timedelta
from io import StringIO
from typing import Iterable, Mapping, Optional, Sequence, Tuple

from .clock import has_rolled_over
from .exceptions import InsufficientWalletError
from .minutes import AD_REWARD_MINUTES, format_minutes, require_positive
from .models import WalletEntry, WalletEventType, WalletTransaction


class EarnedTimeWallet:
    """Pool of unspent bonus minutes for a single local day.

    The balance is held as dated chunks so that debits consume the oldest
    minutes first and chunks can optionally expire after ``entry_ttl``.
    """

    __slots__ = (
        "_day",
        "_entries",
        "_transactions",
        "_saved_count",
        "entry_ttl",
    )

    def __init__(
        self,
        *,
        day: Optional[date] = None,
        entries: Iterable[WalletEntry] = (),
        transactions: Iterable[WalletTransaction] = (),
        entry_ttl: Optional[timedelta] = None,
    ) -> None:
        self._day = day
        self._entries: list[WalletEntry] = sorted(entries, key=lambda entry: entry.earned_at)
        self._transactions: list[WalletTransaction] = list(transactions)
        self._saved_count = len(self._transactions)
        self.entry_ttl = entry_ttl

    @property
    def day(self) -> Optional[date]:
        return self._day

    @property
    def balance(self) -> int:
        """Return the current wallet balance in minutes."""

        return sum(entry.minutes for entry in self._entries)

    @property
    def entries(self) -> Tuple[WalletEntry, ...]:
        return tuple(self._entries)

    @property
    def transactions(self) -> Tuple[WalletTransaction, ...]:
        """Return an immutable view of today's wallet history."""

        return tuple(self._transactions)

    def unsaved_transactions(self) -> Tuple[WalletTransaction, ...]:
        return tuple(self._transactions[self._saved_count :])

    def mark_saved(self) -> None:
        self._saved_count = len(self._transactions)

    def credit(
        self,
        amount: int = AD_REWARD_MINUTES,
        *,
        at: datetime,
        description: str = "Rewarded ad watched",
        metadata: Optional[Mapping[str, str]] = None,
    ) -> WalletTransaction:
        """Add minutes earned from a completed rewarded ad."""

        require_positive(amount)
        self._entries.append(WalletEntry(minutes=amount, earned_at=at))
        return self._log_transaction(amount, WalletEventType.EARNED, description, at, metadata)

    def credit_return(
        self,
        amount: int,
        *,
        at: datetime,
        description: str = "Returned to wallet",
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Optional[WalletTransaction]:
        """Give minutes back to the wallet; this is not a reward event."""

        if amount <= 0:
            return None
        self._entries.append(WalletEntry(minutes=amount, earned_at=at))
        return self._log_transaction(amount, WalletEventType.RETURNED, description, at, metadata)

    def debit(
        self,
        amount: int,
        *,
        at: datetime,
        event_type: WalletEventType = WalletEventType.APPLIED,
        description: str = "Wallet debit",
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Optional[WalletTransaction]:
        """Remove minutes, oldest chunks first, if sufficient balance is available."""

        if amount <= 0:
            return None
        self._ensure_sufficient_balance(amount)
        remaining = amount
        kept: list[WalletEntry] = []
        for entry in self._entries:
            if remaining <= 0:
                kept.append(entry)
            elif entry.minutes <= remaining:
                remaining -= entry.minutes
            else:
                kept.append(WalletEntry(minutes=entry.minutes - remaining, earned_at=entry.earned_at))
                remaining = 0
        self._entries = kept
        return self._log_transaction(amount, event_type, description, at, metadata)

    def expire(self, now: datetime) -> int:
        """Drop chunks older than ``entry_ttl`` and return the minutes removed."""

        if self.entry_ttl is None:
            return 0
        cutoff = now - self.entry_ttl
        expired = sum(entry.minutes for entry in self._entries if entry.earned_at <= cutoff)
        if expired == 0:
            return 0
        self._entries = [entry for entry in self._entries if entry.earned_at > cutoff]
        self._log_transaction(expired, WalletEventType.EXPIRED, "Earned time expired", now, None)
        return expired

    def roll_over(self, today: date) -> bool:
        """Clear the balance and history when a new local day starts; idempotent."""

        if not has_rolled_over(self._day, today):
            return False
        self._day = today
        self._entries = []
        self._transactions = []
        self._saved_count = 0
        return True

    def copy(self) -> "EarnedTimeWallet":
        clone = EarnedTimeWallet(
            day=self._day,
            entries=list(self._entries),
            transactions=list(self._transactions),
            entry_ttl=self.entry_ttl,
        )
        clone._saved_count = self._saved_count
        return clone

    def filter_transactions(
        self,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        types: Optional[Sequence[WalletEventType]] = None,
    ) -> Tuple[WalletTransaction, ...]:
        result: list[WalletTransaction] = []
        for transaction in self._transactions:
            if start and transaction.timestamp < start:
                continue
            if end and transaction.timestamp > end:
                continue
            if types and transaction.type not in types:
                continue
            result.append(transaction)
        return tuple(result)

    def statement(self, *, max_transactions: int = 10) -> str:
        """Create a human-readable summary of the wallet."""

        lines = [
            f"Earned Time Wallet: {self.balance} minutes",
            "",
            "Recent activity:",
        ]
        recent = self._transactions[-max_transactions:] if max_transactions > 0 else []
        if not recent:
            lines.append("  (no activity today)")
        for transaction in recent:
            lines.append(
                "  "
                f"[{transaction.timestamp:%H:%M}] "
                f"{transaction.type.value.replace('_', ' ').title()}: "
                f"{format_minutes(transaction.minutes)} "
                f"(balance {transaction.balance_after} min)"
            )
        return "\n".join(lines)

    def export_transactions_csv(self, *, types: Optional[Sequence[WalletEventType]] = None) -> str:
        """Return a CSV export of today's wallet ledger."""

        buffer = StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["timestamp", "type", "description", "minutes", "balance"])
        for transaction in self.filter_transactions(types=types):
            writer.writerow(
                [
                    transaction.timestamp.isoformat(),
                    transaction.type.value,
                    transaction.description,
                    transaction.minutes,
                    transaction.balance_after,
                ]
            )
        return buffer.getvalue()

    def _log_transaction(
        self,
        minutes: int,
        event_type: WalletEventType,
        description: str,
        at: datetime,
        metadata: Optional[Mapping[str, str]],
    ) -> WalletTransaction:
        transaction = WalletTransaction(
            minutes=minutes,
            type=event_type,
            description=description,
            balance_after=self.balance,
            timestamp=at,
            metadata=dict(metadata or {}),
        )
        self._transactions.append(transaction)
        return transaction

    def _ensure_sufficient_balance(self, amount: int) -> None:
        balance = self.balance
        if balance < amount:
            raise InsufficientWalletError(amount, balance)
