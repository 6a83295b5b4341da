"""WatchTime package: daily watch-time budget and earned-time wallet for a kids video app."""

from .clock import Clock, FixedClock
from .exceptions import (
    AdNotGrantedError,
    CapExceededError,
    InsufficientEarnedTimeError,
    InsufficientWalletError,
    InvalidRangeError,
    WatchTimeError,
)
from .gate import AdProvider, ReviewerOverride, RewardGate
from .limits import DailyLimitConfig
from .models import (
    AdOutcome,
    ApplyReport,
    GuardedAction,
    LimitSnapshot,
    ReconcileReport,
    ResetReport,
    WalletEntry,
    WalletEventType,
    WalletTransaction,
)
from .ops import StructuredLogger
from .persistence import SqlStateStore
from .service import WatchTimeEngine
from .store import InMemoryStateStore, StateStore
from .usage import UsageLedger
from .wallet import EarnedTimeWallet

__all__ = [
    "AdNotGrantedError",
    "AdOutcome",
    "AdProvider",
    "ApplyReport",
    "CapExceededError",
    "Clock",
    "DailyLimitConfig",
    "EarnedTimeWallet",
    "FixedClock",
    "GuardedAction",
    "InMemoryStateStore",
    "InsufficientEarnedTimeError",
    "InsufficientWalletError",
    "InvalidRangeError",
    "LimitSnapshot",
    "ReconcileReport",
    "ResetReport",
    "ReviewerOverride",
    "RewardGate",
    "SqlStateStore",
    "StateStore",
    "StructuredLogger",
    "UsageLedger",
    "WalletEntry",
    "WalletEventType",
    "WalletTransaction",
    "WatchTimeEngine",
]
