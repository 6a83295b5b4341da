import importlib
import json

import pytest

pytest.importorskip("sqlmodel")
pytest.importorskip("fastapi")


def body(response) -> dict:
    return json.loads(response.body)


@pytest.fixture()
def webapp_env(tmp_path, monkeypatch):
    db_path = tmp_path / "webapp.db"
    monkeypatch.setenv("WATCHTIME_SQLITE", str(db_path))
    monkeypatch.setenv("WATCHTIME_LOG_PATH", str(tmp_path / "logs" / "events.jsonl"))
    monkeypatch.setenv("WATCHTIME_REVIEWER_CODE", "791989")
    monkeypatch.setenv("WATCHTIME_WALLET_TTL_HOURS", "8")
    import watchtime.webapp.application as application
    import watchtime.webapp.config as config

    importlib.reload(config)
    importlib.reload(application)
    yield application
    application.engine.dispose()


def earn(webapp, times: int = 1) -> None:
    for _ in range(times):
        assert webapp.ads_outcome("earn_time", outcome="granted").status_code == 200
        assert webapp.wallet_credit().status_code == 200


def test_config_reads_environment(webapp_env) -> None:
    from watchtime.webapp import config

    assert config.SQLITE_FILE_NAME.endswith("webapp.db")
    assert config.WALLET_ENTRY_TTL is not None
    assert config.BASE_RESETS_DAILY is False


def test_initial_status(webapp_env) -> None:
    response = webapp_env.status(parent=False)

    payload = body(response)
    assert response.status_code == 200
    assert payload["base_minutes"] == 60
    assert payload["wallet_minutes"] == 0
    assert payload["display"] == "Used today: 00:00 / 01:00"


def test_credit_requires_granted_ad(webapp_env) -> None:
    response = webapp_env.wallet_credit()

    assert response.status_code == 403
    assert body(response)["error"] == "ad_not_granted"
    assert body(response)["reason"] == "locked"

    dismissed = webapp_env.ads_outcome("earn_time", outcome="dismissed")
    assert dismissed.status_code == 403
    assert body(dismissed)["reason"] == "dismissed"

    earn(webapp_env)
    assert body(webapp_env.status(parent=False))["wallet_minutes"] == 15


def test_unknown_action_and_outcome(webapp_env) -> None:
    assert webapp_env.ads_outcome("free_time", outcome="granted").status_code == 422
    assert webapp_env.ads_outcome("earn_time", outcome="maybe").status_code == 422


def test_base_limit_errors_map_to_status_codes(webapp_env) -> None:
    earn(webapp_env)

    insufficient = webapp_env.settings_base_limit(minutes="90")
    assert insufficient.status_code == 409
    assert body(insufficient) | {"message": ""} == {
        "error": "insufficient_wallet",
        "message": "",
        "needed": 30,
        "available": 15,
    }

    assert webapp_env.settings_base_limit(minutes="500").status_code == 422
    assert webapp_env.settings_base_limit(minutes="abc").status_code == 422


def test_raise_base_with_ad(webapp_env) -> None:
    earn(webapp_env, 2)

    preview = webapp_env.settings_base_limit_preview(minutes="90")
    assert body(preview)["debited_from_wallet"] == 30

    assert webapp_env.settings_base_limit(minutes="90").status_code == 403
    webapp_env.ads_outcome("raise_base", outcome="granted")
    response = webapp_env.settings_base_limit(minutes="90")

    assert response.status_code == 200
    assert body(response)["message"] == "Time limit set to 1h 30m. 30 minutes taken from wallet."
    status = body(webapp_env.status(parent=False))
    assert (status["base_minutes"], status["wallet_minutes"]) == (90, 0)


def test_apply_and_reduce_effective_limit(webapp_env) -> None:
    earn(webapp_env, 2)
    webapp_env.ads_outcome("apply_earned_time", outcome="granted")

    applied = webapp_env.wallet_apply(minutes="30")
    assert applied.status_code == 200
    assert body(applied)["effective_minutes"] == 90

    reduced = webapp_env.settings_effective_limit(minutes="75")
    assert body(reduced)["returned_to_wallet"] == 15

    assert webapp_env.wallet_apply_max().status_code == 403


def test_player_usage_and_exceeded(webapp_env) -> None:
    assert body(webapp_env.settings_enabled(enabled="on")) == {"enabled": True}

    response = webapp_env.player_usage(elapsed_ms=60 * 60_000)

    assert body(response) == {"used_minutes": 60, "exceeded": True}
    assert body(webapp_env.player_exceeded(parent=True))["exceeded"] is False


def test_reset_day_flow(webapp_env) -> None:
    denied = webapp_env.day_reset_allowed()
    assert denied.status_code == 409
    assert body(denied)["error"] == "insufficient_earned_time"

    earn(webapp_env, 4)
    assert body(webapp_env.day_reset_allowed()) == {"allowed": True, "pool_minutes": 60}

    webapp_env.ads_outcome("reset_day", outcome="granted")
    response = webapp_env.day_reset()

    assert response.status_code == 200
    assert body(response)["wallet_deducted"] == 60


def test_reviewer_unlock_and_screen_lock(webapp_env) -> None:
    assert webapp_env.reviewer_unlock(code="000000").status_code == 403
    assert webapp_env.screen_lock().status_code == 403

    assert body(webapp_env.reviewer_unlock(code="791989")) == {"activated": True}
    response = webapp_env.screen_lock()

    assert response.status_code == 200
    assert body(response)["remaining_hours"] == 24
    assert body(webapp_env.status(parent=False))["screen_lock_enabled"] is True
    assert body(webapp_env.ads_status())["reviewer"] is True


def test_ledger_csv_and_events(webapp_env, tmp_path) -> None:
    earn(webapp_env)

    export = webapp_env.wallet_ledger_csv()

    assert export.media_type == "text/csv"
    assert export.body.decode().startswith("timestamp,type,description,minutes,balance")
    events = body(webapp_env.events(limit=10))["events"]
    assert any(event["event"] == "wallet_credited" for event in events)
    log_lines = (tmp_path / "logs" / "events.jsonl").read_text().splitlines()
    assert json.loads(log_lines[-1])["event"] == "wallet_credited"


def test_http_round_trip(webapp_env) -> None:
    pytest.importorskip("httpx")
    from fastapi.testclient import TestClient

    client = TestClient(webapp_env.app)

    assert client.get("/status").json()["effective_minutes"] == 60
    assert client.post("/wallet/credit").status_code == 403
    assert client.post("/ads/earn_time/outcome", data={"outcome": "granted"}).status_code == 200
    assert client.post("/wallet/credit").json() == {"credited": 15, "wallet_minutes": 15}
    assert client.post("/settings/base-limit", data={"minutes": "0"}).status_code == 422
