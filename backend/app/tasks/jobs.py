from datetime import date, datetime, timedelta, timezone

from celery.utils.log import get_task_logger
from dateutil import parser as date_parser
from sqlalchemy.exc import OperationalError

from app.celery_app import celery_app
from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.aggregation import aggregate_day
from app.services.backfill import backfill, run_scheduled, utc_today
from app.services.ingest import apply_reaction_change, ingest_message_event, ingest_monitored_channels
from app.services.llm_client import get_llm_client
from app.services.narrative import WeeklyNarrator
from app.services.reporting import PipelineRunError
from app.services.sentiment import MessageScorer
from app.services.slack_client import get_slack_client
from app.services.weekly import generate_week, week_start_for

logger = get_task_logger(__name__)

STORAGE_ERRORS = (OperationalError, PipelineRunError)


def parse_day(value: str | None) -> date:
    """Accepts ISO dates, anything dateutil understands, "today" and "yesterday"."""
    today = utc_today()
    if not value or value == "today":
        return today
    if value == "yesterday":
        return today - timedelta(days=1)
    return date_parser.parse(value).date()


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def slack_ingest_task(self, lookback_hours: int | None = None):
    settings = get_settings()
    hours = lookback_hours or settings.ingest_lookback_hours
    oldest = datetime.now(timezone.utc) - timedelta(hours=hours)
    scorer = MessageScorer(llm=get_llm_client())

    db = SessionLocal()
    try:
        result = ingest_monitored_channels(db, get_slack_client(), scorer, oldest=oldest)
    finally:
        db.close()
    return {"status": "ok" if not result["failed"] else "partial", **result}


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def slack_message_task(self, event: dict):
    scorer = MessageScorer(llm=get_llm_client())
    db = SessionLocal()
    try:
        message = ingest_message_event(db, get_slack_client(), scorer, event)
        if message is None:
            return {"status": "skipped", "message_ts": event.get("ts")}
        return {"status": "ok", "message_ts": message.slack_timestamp, "sentiment": message.sentiment_label}
    finally:
        db.close()


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def reaction_update_task(self, message_ts: str, emoji: str, added: bool = True):
    scorer = MessageScorer(llm=get_llm_client())
    db = SessionLocal()
    try:
        message = apply_reaction_change(db, scorer, message_ts, emoji, added)
        if message is None:
            return {"status": "skipped", "reason": "message not stored", "message_ts": message_ts}
        return {"status": "ok", "message_ts": message_ts, "sentiment": message.sentiment_label, "score": message.sentiment_score}
    finally:
        db.close()


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def aggregate_daily_task(self, day: str = "today"):
    target = parse_day(day)
    db = SessionLocal()
    try:
        report = aggregate_day(db, target)
    finally:
        db.close()
    return {"status": "ok" if report.ok else "partial", "date": str(target), **report.as_dict()}


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def generate_weekly_task(self, week_start: str | None = None):
    target = week_start_for(parse_day(week_start))
    narrator = WeeklyNarrator(llm=get_llm_client())
    db = SessionLocal()
    try:
        insight = generate_week(db, target, narrator)
    finally:
        db.close()
    if insight is None:
        return {"status": "skipped", "reason": "no daily aggregates", "week_start": str(target)}
    return {"status": "ok", "week_start": str(target)}


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def backfill_task(self, days: int = 7):
    narrator = WeeklyNarrator(llm=get_llm_client())
    db = SessionLocal()
    try:
        result = backfill(db, days, narrator=narrator)
    finally:
        db.close()
    return {"status": "ok", **result}


@celery_app.task(bind=True, autoretry_for=STORAGE_ERRORS, retry_backoff=5, retry_kwargs={"max_retries": 3})
def scheduled_daily_task(self):
    narrator = WeeklyNarrator(llm=get_llm_client())
    db = SessionLocal()
    try:
        result = run_scheduled(db, narrator=narrator)
    finally:
        db.close()
    logger.info("Scheduled daily run finished: %s", result)
    return {"status": "ok", **result}
