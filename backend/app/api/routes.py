import json
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import get_db
from app.models.entities import Channel, DailyAggregate, WeeklyInsight
from app.schemas.insights import ChannelIn, ChannelOut, DailyAggregateOut, WeeklyInsightOut
from app.services.backfill import BackfillRangeError, utc_today, validate_backfill_days
from app.services.dashboard import TIMEFRAME_DAYS, recent_burnout_alerts, sentiment_series
from app.services.ingest import register_channel
from app.services.slack_client import get_slack_client, verify_slack_signature
from app.tasks.jobs import (
    aggregate_daily_task,
    backfill_task,
    generate_weekly_task,
    parse_day,
    reaction_update_task,
    slack_ingest_task,
    slack_message_task,
)

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def _require_admin(request: Request) -> None:
    settings = get_settings()
    if not settings.admin_token:
        return
    token = request.headers.get("X-Admin-Token", "")
    if token != settings.admin_token:
        raise HTTPException(status_code=401, detail="invalid admin token")


def _checked_day(value: str | None, field: str) -> str:
    try:
        return parse_day(value).isoformat()
    except (ValueError, OverflowError) as exc:
        raise HTTPException(status_code=400, detail=f"invalid {field}: {value}") from exc


def _dispatch(task, *args):
    settings = get_settings()
    if settings.celery_task_always_eager:
        return {"mode": "sync", **task.apply(args=args).get()}
    result = task.delay(*args)
    return {"mode": "async", "task_id": result.id}


@router.get("/channels/{channel_id}/daily", response_model=list[DailyAggregateOut])
def channel_daily(channel_id: str, from_date: date = Query(alias="from"), to_date: date = Query(alias="to"), db: Session = Depends(get_db)):
    stmt = (
        select(DailyAggregate)
        .where(
            DailyAggregate.channel_id == channel_id,
            DailyAggregate.date >= from_date,
            DailyAggregate.date <= to_date,
        )
        .order_by(DailyAggregate.date)
    )
    return db.execute(stmt).scalars().all()


@router.get("/insights/weekly/latest", response_model=WeeklyInsightOut)
def latest_weekly_insight(db: Session = Depends(get_db)):
    settings = get_settings()
    insight = db.execute(
        select(WeeklyInsight).where(WeeklyInsight.team_id == settings.team_id).order_by(WeeklyInsight.week_start.desc()).limit(1)
    ).scalar_one_or_none()
    if insight is None:
        raise HTTPException(status_code=404, detail="no weekly insight yet")
    return insight


@router.post("/admin/channels", response_model=ChannelOut)
def add_channel(payload: ChannelIn, request: Request, db: Session = Depends(get_db)):
    _require_admin(request)
    channel = register_channel(
        db,
        get_slack_client(),
        payload.slack_channel_id,
        team_id=payload.team_id,
        team_name=payload.team_name,
        monitored=payload.monitored,
    )
    if channel is None:
        raise HTTPException(status_code=404, detail="channel not found in Slack")
    return channel


@router.post("/admin/ingest/slack")
def trigger_ingest(request: Request, lookback_hours: int | None = None):
    _require_admin(request)
    return _dispatch(slack_ingest_task, lookback_hours)


@router.post("/admin/aggregation/daily")
def trigger_daily(request: Request, date_value: str | None = Query(default=None, alias="date")):
    _require_admin(request)
    return _dispatch(aggregate_daily_task, _checked_day(date_value, "date"))


@router.post("/admin/aggregation/weekly")
def trigger_weekly(request: Request, week_start: str | None = None):
    _require_admin(request)
    return _dispatch(generate_weekly_task, _checked_day(week_start, "week_start"))


@router.post("/admin/aggregation/backfill")
def trigger_backfill(request: Request, days: int = 7):
    _require_admin(request)
    try:
        validate_backfill_days(days)
    except BackfillRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _dispatch(backfill_task, days)


@router.get("/channels", response_model=list[ChannelOut])
def list_channels(db: Session = Depends(get_db)):
    return db.execute(select(Channel).where(Channel.is_monitored.is_(True)).order_by(Channel.name)).scalars().all()


@router.delete("/admin/channels/{channel_id}", response_model=ChannelOut)
def unmonitor_channel(channel_id: str, request: Request, db: Session = Depends(get_db)):
    _require_admin(request)
    channel = db.execute(select(Channel).where(Channel.slack_channel_id == channel_id)).scalar_one_or_none()
    if channel is None:
        raise HTTPException(status_code=404, detail="channel not found")
    # history stays; the channel is only dropped from ingestion
    channel.is_monitored = False
    db.commit()
    db.refresh(channel)
    return channel


@router.get("/dashboard/sentiment")
def dashboard_sentiment(timeframe: Literal["7d", "30d"] = "7d", db: Session = Depends(get_db)):
    return {"data": sentiment_series(db, TIMEFRAME_DAYS[timeframe], utc_today())}


@router.get("/dashboard/burnout")
def dashboard_burnout(db: Session = Depends(get_db)):
    return {"data": recent_burnout_alerts(db, utc_today())}


@router.post("/slack/events")
async def slack_events(request: Request):
    body = await request.body()
    settings = get_settings()
    if settings.slack_signing_secret and not verify_slack_signature(
        settings.slack_signing_secret,
        body,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
    ):
        raise HTTPException(status_code=401, detail="invalid signature")

    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid event payload")

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge")}

    if payload.get("type") == "event_callback":
        event = payload.get("event") or {}
        event_type = event.get("type")
        if event_type == "message" and not event.get("subtype"):
            _dispatch(slack_message_task, event)
        elif event_type in ("reaction_added", "reaction_removed"):
            item = event.get("item") or {}
            if item.get("type") == "message" and item.get("ts") and event.get("reaction"):
                _dispatch(reaction_update_task, item["ts"], event["reaction"], event_type == "reaction_added")
    return {"status": "ok"}
