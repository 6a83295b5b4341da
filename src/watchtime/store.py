"""Persistence boundary for engine state."""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import Dict, Optional, Protocol

from .limits import DailyLimitConfig
from .usage import UsageLedger
from .wallet import EarnedTimeWallet


class StateStore(Protocol):
    """Durable storage for limits, wallet, usage and small settings.

    ``save_state`` must write the limits, the wallet and, when given, the
    usage ledger together or not at all. Loaders return fresh copies the
    caller may mutate freely.
    """

    def load_limits(self) -> DailyLimitConfig: ...

    def load_wallet(self, *, entry_ttl: Optional[timedelta] = None) -> EarnedTimeWallet: ...

    def save_state(
        self,
        limits: DailyLimitConfig,
        wallet: EarnedTimeWallet,
        usage: Optional[UsageLedger] = None,
    ) -> None: ...

    def load_usage(self) -> UsageLedger: ...

    def save_usage(self, usage: UsageLedger) -> None: ...

    def get_meta(self, key: str) -> Optional[str]: ...

    def set_meta(self, key: str, value: str) -> None: ...


class InMemoryStateStore:
    """Process-local store; commits by swapping in copies of the new state."""

    def __init__(
        self,
        limits: Optional[DailyLimitConfig] = None,
        wallet: Optional[EarnedTimeWallet] = None,
        usage: Optional[UsageLedger] = None,
    ) -> None:
        self._limits = limits or DailyLimitConfig()
        self._wallet = (wallet or EarnedTimeWallet()).copy()
        self._wallet.mark_saved()
        self._usage = (usage or UsageLedger()).copy()
        self._meta: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def load_limits(self) -> DailyLimitConfig:
        with self._lock:
            return self._limits

    def load_wallet(self, *, entry_ttl: Optional[timedelta] = None) -> EarnedTimeWallet:
        with self._lock:
            wallet = self._wallet.copy()
        wallet.entry_ttl = entry_ttl
        return wallet

    def save_state(
        self,
        limits: DailyLimitConfig,
        wallet: EarnedTimeWallet,
        usage: Optional[UsageLedger] = None,
    ) -> None:
        stored = wallet.copy()
        stored.mark_saved()
        with self._lock:
            self._limits = limits
            self._wallet = stored
            if usage is not None:
                self._usage = usage.copy()
            self.writes += 1
        wallet.mark_saved()

    def load_usage(self) -> UsageLedger:
        with self._lock:
            return self._usage.copy()

    def save_usage(self, usage: UsageLedger) -> None:
        with self._lock:
            self._usage = usage.copy()

    def get_meta(self, key: str) -> Optional[str]:
        with self._lock:
            return self._meta.get(key)

    def set_meta(self, key: str, value: str) -> None:
        with self._lock:
            self._meta[key] = value
