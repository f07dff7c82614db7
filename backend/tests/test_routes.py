import hashlib
import hmac
import json
import time
from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.api import routes
from app.core.config import get_settings
from app.db.session import get_db
from app.main import app
from app.models.entities import Channel
from app.services.narrative import WeeklyNarrator
from app.services.weekly import generate_week


@pytest.fixture
def dispatched(monkeypatch):
    calls = []

    def fake_dispatch(task, *args):
        calls.append((task.name, args))
        return {"mode": "test"}

    monkeypatch.setattr(routes, "_dispatch", fake_dispatch)
    return calls


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_channel_daily_range(client, make_daily):
    for day in (date(2026, 10, 11), date(2026, 10, 12), date(2026, 10, 13)):
        make_daily("C1", day, avg_sentiment=0.6)
    make_daily("C2", date(2026, 10, 12))

    response = client.get("/channels/C1/daily", params={"from": "2026-10-12", "to": "2026-10-13"})

    assert response.status_code == 200
    body = response.json()
    assert [row["date"] for row in body] == ["2026-10-12", "2026-10-13"]
    assert body[0]["channel_id"] == "C1"
    assert body[0]["avg_sentiment"] == 0.6


def test_latest_weekly_insight(client, db, make_daily):
    assert client.get("/insights/weekly/latest").status_code == 404

    make_daily("C1", date(2026, 10, 6))
    make_daily("C1", date(2026, 10, 13))
    narrator = WeeklyNarrator(llm=None, model="test-model")
    generate_week(db, date(2026, 10, 6), narrator)
    generate_week(db, date(2026, 10, 13), narrator)

    response = client.get("/insights/weekly/latest")

    assert response.status_code == 200
    body = response.json()
    assert body["week_start"] == "2026-10-12"
    assert body["week_end"] == "2026-10-18"
    assert body["total_messages"] == 10


@pytest.mark.parametrize("days", [0, 31])
def test_backfill_range_is_rejected(client, dispatched, days):
    response = client.post("/admin/aggregation/backfill", params={"days": days})
    assert response.status_code == 400
    assert dispatched == []


def test_backfill_is_dispatched(client, dispatched):
    response = client.post("/admin/aggregation/backfill", params={"days": 30})
    assert response.status_code == 200
    assert dispatched == [("app.tasks.jobs.backfill_task", (30,))]


def test_daily_aggregation_dates(client, dispatched):
    assert client.post("/admin/aggregation/daily", params={"date": "2026-10-13"}).status_code == 200
    assert client.post("/admin/aggregation/daily", params={"date": "not-a-date"}).status_code == 400
    assert dispatched == [("app.tasks.jobs.aggregate_daily_task", ("2026-10-13",))]


def test_weekly_generation_is_dispatched(client, dispatched):
    assert client.post("/admin/aggregation/weekly", params={"week_start": "2026-10-14"}).status_code == 200
    assert dispatched == [("app.tasks.jobs.generate_weekly_task", ("2026-10-14",))]


def test_admin_token_is_enforced(client, dispatched, monkeypatch):
    monkeypatch.setattr(get_settings(), "admin_token", "s3cret")

    assert client.post("/admin/ingest/slack").status_code == 401
    response = client.post("/admin/ingest/slack", headers={"X-Admin-Token": "s3cret"})
    assert response.status_code == 200
    assert dispatched == [("app.tasks.jobs.slack_ingest_task", (None,))]


def _signed_headers(secret: str, body: bytes, timestamp: int | None = None) -> dict:
    timestamp = str(timestamp if timestamp is not None else int(time.time()))
    digest = hmac.new(secret.encode(), b"v0:" + timestamp.encode() + b":" + body, hashlib.sha256).hexdigest()
    return {"X-Slack-Request-Timestamp": timestamp, "X-Slack-Signature": f"v0={digest}", "Content-Type": "application/json"}


def test_slack_url_verification(client):
    response = client.post("/slack/events", json={"type": "url_verification", "challenge": "3eZbrw1aB"})
    assert response.json() == {"challenge": "3eZbrw1aB"}


def test_slack_message_event_is_dispatched(client, dispatched):
    event = {"type": "message", "channel": "C1", "user": "U1", "text": "morning all", "ts": "1760702400.000100"}
    response = client.post("/slack/events", json={"type": "event_callback", "event": event})

    assert response.json() == {"status": "ok"}
    assert dispatched == [("app.tasks.jobs.slack_message_task", (event,))]


def test_slack_edited_message_is_ignored(client, dispatched):
    event = {"type": "message", "subtype": "message_changed", "channel": "C1", "ts": "1760702400.000100"}
    client.post("/slack/events", json={"type": "event_callback", "event": event})
    assert dispatched == []


def test_slack_reaction_events_are_dispatched(client, dispatched):
    item = {"type": "message", "channel": "C1", "ts": "1760702400.000100"}
    for event_type in ("reaction_added", "reaction_removed"):
        event = {"type": event_type, "user": "U2", "reaction": "+1", "item": item}
        client.post("/slack/events", json={"type": "event_callback", "event": event})

    assert dispatched == [
        ("app.tasks.jobs.reaction_update_task", ("1760702400.000100", "+1", True)),
        ("app.tasks.jobs.reaction_update_task", ("1760702400.000100", "+1", False)),
    ]


def test_slack_events_reject_bad_bodies(client):
    assert client.post("/slack/events", content=b"not json").status_code == 400
    assert client.post("/slack/events", json=["event_callback"]).status_code == 400


def test_slack_signature_is_enforced(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "slack_signing_secret", "8f742231b10e8888abcd99yyyzzz85a5")
    body = json.dumps({"type": "url_verification", "challenge": "abc"}).encode()

    assert client.post("/slack/events", content=body).status_code == 401
    forged = _signed_headers("some-other-secret", body)
    assert client.post("/slack/events", content=body, headers=forged).status_code == 401
    stale = _signed_headers("8f742231b10e8888abcd99yyyzzz85a5", body, timestamp=int(time.time()) - 600)
    assert client.post("/slack/events", content=body, headers=stale).status_code == 401

    headers = _signed_headers("8f742231b10e8888abcd99yyyzzz85a5", body)
    response = client.post("/slack/events", content=body, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"challenge": "abc"}


def test_channel_list_and_unmonitor(client, db):
    db.add_all(
        [
            Channel(slack_channel_id="C2", name="eng-oncall", team_id="T1", team_name="Platform"),
            Channel(slack_channel_id="C1", name="eng-general", team_id="T1", team_name="Platform"),
            Channel(slack_channel_id="C3", name="random", team_id="T1", team_name="Platform", is_monitored=False),
        ]
    )
    db.commit()

    assert [c["name"] for c in client.get("/channels").json()] == ["eng-general", "eng-oncall"]

    response = client.delete("/admin/channels/C2")
    assert response.status_code == 200
    assert response.json()["is_monitored"] is False
    assert [c["slack_channel_id"] for c in client.get("/channels").json()] == ["C1"]

    assert client.delete("/admin/channels/C404").status_code == 404


def test_dashboard_sentiment_series(client, make_daily, monkeypatch):
    monkeypatch.setattr(routes, "utc_today", lambda: date(2026, 10, 17))
    make_daily("C1", date(2026, 10, 10), avg_sentiment=0.9, message_count=3)
    make_daily("C1", date(2026, 10, 16), avg_sentiment=0.6, message_count=10)
    make_daily("C2", date(2026, 10, 16), avg_sentiment=0.4, message_count=5)
    make_daily("C1", date(2026, 10, 17), avg_sentiment=0.7, message_count=10)

    week = client.get("/dashboard/sentiment").json()["data"]
    assert week == [
        {"date": "2026-10-16", "sentiment": 0.5, "message_count": 15},
        {"date": "2026-10-17", "sentiment": 0.7, "message_count": 10},
    ]
    month = client.get("/dashboard/sentiment", params={"timeframe": "30d"}).json()["data"]
    assert [point["date"] for point in month] == ["2026-10-10", "2026-10-16", "2026-10-17"]
    assert client.get("/dashboard/sentiment", params={"timeframe": "1y"}).status_code == 422


def test_dashboard_burnout_alerts(client, make_daily, monkeypatch):
    monkeypatch.setattr(routes, "utc_today", lambda: date(2026, 10, 17))
    make_daily("C1", date(2026, 10, 15), burnout_risk=0.8)
    make_daily("C1", date(2026, 10, 16), burnout_risk=0.4, avg_sentiment=0.3)
    make_daily("C2", date(2026, 10, 14), burnout_risk=0.6, message_count=150, trend="declining")
    make_daily("C3", date(2026, 10, 16), burnout_risk=0.2)
    make_daily("C4", date(2026, 10, 9), burnout_risk=0.9)

    alerts = client.get("/dashboard/burnout").json()["data"]

    assert [(a["channel_id"], a["risk_level"], a["detected_at"]) for a in alerts] == [
        ("C2", "medium", "2026-10-14"),
        ("C1", "low", "2026-10-16"),
    ]
    assert alerts[0]["signals"] == [
        "60.0% burnout risk detected",
        "Declining sentiment trend",
        "High message volume detected",
    ]
    assert alerts[1]["signals"] == ["40.0% burnout risk detected", "Low sentiment in recent messages"]
