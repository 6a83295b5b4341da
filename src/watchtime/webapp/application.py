"""FastAPI frontend for the WatchTime engine.

The settings screen and the player talk to one process-wide
:class:`~watchtime.service.WatchTimeEngine` backed by SQLite. Commands are
form-encoded, responses are JSON. Domain errors become JSON bodies of the
form ``{"error": code, ...}``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from fastapi import FastAPI, Form, Query
from fastapi.responses import JSONResponse, Response
from sqlmodel import create_engine

from ..clock import Clock
from ..exceptions import AdNotGrantedError, InvalidRangeError, WatchTimeError
from ..gate import ReviewerOverride
from ..minutes import to_minutes
from ..models import AdOutcome, GuardedAction
from ..ops import StructuredLogger
from ..persistence import SqlStateStore
from ..service import WatchTimeEngine
from .config import (
    BASE_RESETS_DAILY,
    LOG_PATH,
    REVIEWER_CODE,
    SQLITE_FILE_NAME,
    TIME_OFFSET_MINUTES,
    WALLET_ENTRY_TTL,
)

# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------
engine = create_engine(
    f"sqlite:///{SQLITE_FILE_NAME}",
    echo=False,
    connect_args={"check_same_thread": False},
)
store = SqlStateStore(engine)
event_log = StructuredLogger(path=LOG_PATH)
watch_engine = WatchTimeEngine(
    store,
    clock=Clock(offset_minutes=TIME_OFFSET_MINUTES),
    reviewer=ReviewerOverride(REVIEWER_CODE),
    logger=event_log,
    wallet_entry_ttl=WALLET_ENTRY_TTL,
    base_resets_daily=BASE_RESETS_DAILY,
)

app = FastAPI(title="WatchTime")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _status_code_for(exc: WatchTimeError) -> int:
    if isinstance(exc, AdNotGrantedError):
        return 403
    if isinstance(exc, InvalidRangeError):
        return 422
    return 409


def _error_response(exc: WatchTimeError) -> JSONResponse:
    return JSONResponse(exc.as_dict(), status_code=_status_code_for(exc))


def _run(command: Callable[[], Dict[str, Any]]) -> JSONResponse:
    try:
        payload = command()
    except WatchTimeError as exc:
        return _error_response(exc)
    return JSONResponse(payload)


def _parse_minutes(field: str, raw: str) -> int:
    try:
        return to_minutes(raw)
    except (TypeError, ValueError):
        raise InvalidRangeError(field, raw) from None


def _parse_action(raw: str) -> GuardedAction:
    try:
        return GuardedAction(raw)
    except ValueError:
        raise InvalidRangeError("action", raw) from None


def _parse_outcome(raw: str) -> AdOutcome:
    try:
        return AdOutcome(raw)
    except ValueError:
        raise InvalidRangeError("outcome", raw) from None


def _is_truthy(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Player routes
# ---------------------------------------------------------------------------
@app.get("/status")
def status(parent: bool = Query(False)) -> JSONResponse:
    return _run(lambda: watch_engine.status(parent_mode=parent))


@app.get("/player/exceeded")
def player_exceeded(parent: bool = Query(False)) -> JSONResponse:
    return _run(
        lambda: {
            "exceeded": watch_engine.is_exceeded(parent_mode=parent),
            "display": watch_engine.display_string(),
        }
    )


@app.post("/player/usage")
def player_usage(elapsed_ms: int = Form(...)) -> JSONResponse:
    def command() -> Dict[str, Any]:
        watch_engine.add_used(elapsed_ms)
        return {
            "used_minutes": watch_engine.used_minutes_today(),
            "exceeded": watch_engine.is_exceeded(),
        }

    return _run(command)


# ---------------------------------------------------------------------------
# Settings routes
# ---------------------------------------------------------------------------
@app.post("/settings/enabled")
def settings_enabled(enabled: str = Form("")) -> JSONResponse:
    return _run(lambda: {"enabled": watch_engine.set_enabled(_is_truthy(enabled)).enabled})


@app.get("/settings/base-limit/preview")
def settings_base_limit_preview(minutes: str = Query(...)) -> JSONResponse:
    return _run(lambda: watch_engine.preview_base_limit(_parse_minutes("base_minutes", minutes)).as_dict())


@app.post("/settings/base-limit")
def settings_base_limit(minutes: str = Form(...)) -> JSONResponse:
    return _run(lambda: watch_engine.set_base_limit(_parse_minutes("base_minutes", minutes)).as_dict())


@app.post("/settings/effective-limit")
def settings_effective_limit(minutes: str = Form(...)) -> JSONResponse:
    return _run(
        lambda: watch_engine.reduce_effective_limit(_parse_minutes("effective_minutes", minutes)).as_dict()
    )


# ---------------------------------------------------------------------------
# Wallet routes
# ---------------------------------------------------------------------------
@app.post("/wallet/apply")
def wallet_apply(minutes: str = Form(...)) -> JSONResponse:
    return _run(lambda: watch_engine.apply_earned_time(_parse_minutes("amount", minutes)).as_dict())


@app.post("/wallet/apply-max")
def wallet_apply_max() -> JSONResponse:
    return _run(lambda: watch_engine.apply_max_earned_time().as_dict())


@app.post("/wallet/credit")
def wallet_credit() -> JSONResponse:
    def command() -> Dict[str, Any]:
        transaction = watch_engine.credit_wallet()
        return {"credited": transaction.minutes, "wallet_minutes": transaction.balance_after}

    return _run(command)


@app.get("/wallet/ledger.csv")
def wallet_ledger_csv() -> Response:
    return Response(
        content=watch_engine.export_wallet_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=wallet-ledger.csv"},
    )


# ---------------------------------------------------------------------------
# Day reset and screen lock
# ---------------------------------------------------------------------------
@app.get("/day/reset/allowed")
def day_reset_allowed() -> JSONResponse:
    return _run(lambda: {"allowed": True, "pool_minutes": watch_engine.check_reset_allowed()})


@app.post("/day/reset")
def day_reset() -> JSONResponse:
    return _run(lambda: watch_engine.reset_today().as_dict())


@app.post("/screen-lock")
def screen_lock() -> JSONResponse:
    def command() -> Dict[str, Any]:
        until = watch_engine.enable_screen_lock()
        return {
            "enabled_until": until.isoformat(),
            "remaining_hours": watch_engine.screen_lock_remaining_hours(),
        }

    return _run(command)


# ---------------------------------------------------------------------------
# Rewarded ads and reviewer access
# ---------------------------------------------------------------------------
@app.get("/ads/status")
def ads_status() -> JSONResponse:
    return _run(watch_engine.ad_status)


@app.post("/ads/{action}/outcome")
def ads_outcome(action: str, outcome: str = Form(...)) -> JSONResponse:
    def command() -> Dict[str, Any]:
        guarded = _parse_action(action)
        delivered = watch_engine.deliver_ad_outcome(guarded, _parse_outcome(outcome))
        return {"action": guarded.value, "outcome": delivered.value, "unlocked": True}

    return _run(command)


@app.post("/reviewer/unlock")
def reviewer_unlock(code: str = Form(...)) -> JSONResponse:
    activated = watch_engine.activate_reviewer(code)
    return JSONResponse({"activated": activated}, status_code=200 if activated else 403)


@app.get("/events")
def events(limit: int = Query(50)) -> JSONResponse:
    return JSONResponse({"events": list(event_log.tail(limit))})


__all__ = [
    "app",
    "engine",
    "store",
    "event_log",
    "watch_engine",
]
