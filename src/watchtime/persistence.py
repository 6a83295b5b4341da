"""SQLModel tables and the SQLite-backed state store.

Days and moments are stored as ISO 8601 text, the way the web frontend keeps
its time settings in ``MetaKV``. Engine moments are naive local times from
:class:`~watchtime.clock.Clock` and round-trip unchanged.
"""
from __future__ import annotations

import json
import threading
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, select

from .limits import DailyLimitConfig
from .minutes import DEFAULT_BASE_MINUTES
from .models import WalletEntry, WalletEventType, WalletTransaction
from .usage import UsageLedger
from .wallet import EarnedTimeWallet

STATE_ROW_ID = 1


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class LimitStateRow(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    base_minutes: int = DEFAULT_BASE_MINUTES
    applied_minutes: int = 0
    enabled: bool = False
    day: Optional[str] = None  # YYYY-MM-DD
    wallet_day: Optional[str] = None


class WalletEntryRow(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    minutes: int
    earned_at: str


class WalletEventRow(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: str = Field(index=True)
    day: str = Field(index=True)
    event_type: str  # earned|funded_base|applied|returned|reset_consumed|expired
    minutes: int
    description: str = ""
    balance_after: int
    timestamp: str
    details: str = "{}"


class UsageRow(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    day: Optional[str] = None
    used_millis: int = 0


class MetaKV(SQLModel, table=True):
    k: str = Field(primary_key=True)
    v: str


def create_tables(db_engine: Engine) -> None:
    SQLModel.metadata.create_all(db_engine)


def _day_to_text(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day else None


def _day_from_text(raw: Optional[str]) -> Optional[date]:
    return date.fromisoformat(raw) if raw else None


def _transaction_from_row(row: WalletEventRow) -> WalletTransaction:
    return WalletTransaction(
        minutes=row.minutes,
        type=WalletEventType(row.event_type),
        description=row.description,
        balance_after=row.balance_after,
        timestamp=datetime.fromisoformat(row.timestamp),
        metadata=json.loads(row.details or "{}"),
        event_id=row.event_id,
    )


class SqlStateStore:
    """Persist engine state in SQLite through SQLModel sessions.

    ``save_state`` updates the limits row, replaces the wallet chunks, appends
    new wallet events and optionally writes the usage row inside one session
    commit. Usage ticks use their own lock so they never queue behind a
    reconciliation.
    """

    def __init__(self, db_engine: Engine) -> None:
        self._engine = db_engine
        self._state_lock = threading.Lock()
        self._usage_lock = threading.Lock()
        create_tables(db_engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def load_limits(self) -> DailyLimitConfig:
        with Session(self._engine) as session:
            row = session.get(LimitStateRow, STATE_ROW_ID)
            if row is None:
                return DailyLimitConfig()
            return DailyLimitConfig(
                base_minutes=row.base_minutes,
                applied_minutes=row.applied_minutes,
                enabled=row.enabled,
                day=_day_from_text(row.day),
            )

    def load_wallet(self, *, entry_ttl: Optional[timedelta] = None) -> EarnedTimeWallet:
        with Session(self._engine) as session:
            state = session.get(LimitStateRow, STATE_ROW_ID)
            wallet_day = state.wallet_day if state else None
            entries = [
                WalletEntry(minutes=row.minutes, earned_at=datetime.fromisoformat(row.earned_at))
                for row in session.exec(select(WalletEntryRow).order_by(WalletEntryRow.id))
            ]
            transactions = []
            if wallet_day is not None:
                rows = session.exec(
                    select(WalletEventRow)
                    .where(WalletEventRow.day == wallet_day)
                    .order_by(WalletEventRow.id)
                ).all()
                transactions = [_transaction_from_row(row) for row in rows]
        return EarnedTimeWallet(
            day=_day_from_text(wallet_day),
            entries=entries,
            transactions=transactions,
            entry_ttl=entry_ttl,
        )

    def save_state(
        self,
        limits: DailyLimitConfig,
        wallet: EarnedTimeWallet,
        usage: Optional[UsageLedger] = None,
    ) -> None:
        with self._state_lock:
            if usage is None:
                self._write_state(limits, wallet, None)
            else:
                with self._usage_lock:
                    self._write_state(limits, wallet, usage)
        wallet.mark_saved()

    def _write_state(
        self,
        limits: DailyLimitConfig,
        wallet: EarnedTimeWallet,
        usage: Optional[UsageLedger],
    ) -> None:
        with Session(self._engine) as session:
            row = session.get(LimitStateRow, STATE_ROW_ID) or LimitStateRow(id=STATE_ROW_ID)
            row.base_minutes = limits.base_minutes
            row.applied_minutes = limits.applied_minutes
            row.enabled = limits.enabled
            row.day = _day_to_text(limits.day)
            row.wallet_day = _day_to_text(wallet.day)
            session.add(row)
            for existing in session.exec(select(WalletEntryRow)).all():
                session.delete(existing)
            for entry in wallet.entries:
                session.add(WalletEntryRow(minutes=entry.minutes, earned_at=entry.earned_at.isoformat()))
            for transaction in wallet.unsaved_transactions():
                event_day = wallet.day or transaction.timestamp.date()
                session.add(
                    WalletEventRow(
                        event_id=transaction.event_id,
                        day=event_day.isoformat(),
                        event_type=transaction.type.value,
                        minutes=transaction.minutes,
                        description=transaction.description,
                        balance_after=transaction.balance_after,
                        timestamp=transaction.timestamp.isoformat(),
                        details=json.dumps(transaction.metadata),
                    )
                )
            if usage is not None:
                self._stage_usage(session, usage)
            session.commit()

    @staticmethod
    def _stage_usage(session: Session, usage: UsageLedger) -> None:
        row = session.get(UsageRow, STATE_ROW_ID) or UsageRow(id=STATE_ROW_ID)
        row.day = _day_to_text(usage.day)
        row.used_millis = usage.used_millis
        session.add(row)

    def load_usage(self) -> UsageLedger:
        with Session(self._engine) as session:
            row = session.get(UsageRow, STATE_ROW_ID)
            if row is None:
                return UsageLedger()
            return UsageLedger(day=_day_from_text(row.day), used_millis=row.used_millis)

    def save_usage(self, usage: UsageLedger) -> None:
        with self._usage_lock, Session(self._engine) as session:
            self._stage_usage(session, usage)
            session.commit()

    def get_meta(self, key: str) -> Optional[str]:
        with Session(self._engine) as session:
            row = session.get(MetaKV, key)
            return row.v if row else None

    def set_meta(self, key: str, value: str) -> None:
        with self._state_lock, Session(self._engine) as session:
            row = session.get(MetaKV, key)
            if row:
                row.v = value
            else:
                row = MetaKV(k=key, v=value)
            session.add(row)
            session.commit()


__all__ = [
    "LimitStateRow",
    "WalletEntryRow",
    "WalletEventRow",
    "UsageRow",
    "MetaKV",
    "SqlStateStore",
    "create_tables",
]
