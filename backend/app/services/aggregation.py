import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import and_, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.db.upsert import upsert_by_key
from app.models.entities import DailyAggregate, Message
from app.services.reporting import PipelineRunError, RunReport

logger = logging.getLogger(__name__)

TREND_BAND = 0.05
TOP_EMOJI_LIMIT = 10


def classify_trend(delta: float) -> str:
    if delta > TREND_BAND:
        return "improving"
    if delta < -TREND_BAND:
        return "declining"
    return "stable"


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    return datetime.combine(target_date, time.min), datetime.combine(target_date, time.max)


@dataclass(frozen=True)
class DailyValues:
    channel_name: str
    avg_sentiment: float
    message_count: int
    positive_count: int
    neutral_count: int
    negative_count: int
    burnout_risk: float
    top_emojis_json: list
    active_users: int
    sentiment_trend: str


def top_emojis(messages: Sequence[Message], limit: int = TOP_EMOJI_LIMIT) -> list[dict]:
    totals: dict[str, dict] = {}
    for message in messages:
        for reaction in message.reactions_json or []:
            emoji = reaction["emoji"]
            if emoji not in totals:
                totals[emoji] = {"emoji": emoji, "count": 0, "sentiment": reaction.get("sentiment", 0.0)}
            totals[emoji]["count"] += int(reaction.get("count", 0))
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(totals.values(), key=lambda item: item["count"], reverse=True)
    return ranked[:limit]


def compute_daily_values(messages: Sequence[Message], previous_avg: float | None) -> DailyValues:
    count = len(messages)
    avg_sentiment = sum(m.sentiment_score for m in messages) / count
    trend = "stable" if previous_avg is None else classify_trend(avg_sentiment - previous_avg)
    return DailyValues(
        channel_name=messages[0].slack_channel_name,
        avg_sentiment=avg_sentiment,
        message_count=count,
        positive_count=sum(1 for m in messages if m.sentiment_label == "positive"),
        neutral_count=sum(1 for m in messages if m.sentiment_label == "neutral"),
        negative_count=sum(1 for m in messages if m.sentiment_label == "negative"),
        burnout_risk=sum(1 for m in messages if m.burnout_signals) / count,
        top_emojis_json=top_emojis(messages),
        active_users=len({m.slack_user_id for m in messages}),
        sentiment_trend=trend,
    )


def _previous_average(db: Session, channel_id: str, target_date: date) -> float | None:
    previous = db.execute(
        select(DailyAggregate).where(
            DailyAggregate.channel_id == channel_id,
            DailyAggregate.date == target_date - timedelta(days=1),
        )
    ).scalar_one_or_none()
    return previous.avg_sentiment if previous else None


def aggregate_day(db: Session, target_date: date) -> RunReport:
    start_dt, end_dt = day_bounds(target_date)
    query = (
        select(Message)
        .where(and_(Message.timestamp >= start_dt, Message.timestamp <= end_dt))
        .order_by(Message.slack_channel_id, Message.timestamp, Message.id)
    )
    messages = db.execute(query).scalars().all()

    by_channel: dict[str, list[Message]] = defaultdict(list)
    for message in messages:
        by_channel[message.slack_channel_id].append(message)

    report = RunReport(unit="channel")
    computed: dict[str, DailyValues] = {}
    for channel_id, channel_messages in by_channel.items():
        try:
            computed[channel_id] = compute_daily_values(channel_messages, _previous_average(db, channel_id, target_date))
        except OperationalError as exc:
            raise PipelineRunError(f"Storage unavailable while aggregating {target_date}", report.as_dict()) from exc
        except Exception as exc:
            logger.exception("Daily statistics failed for channel %s on %s", channel_id, target_date)
            report.failed[channel_id] = str(exc)

    # upserts commit, which expires loaded messages; everything is computed first
    for channel_id, values in computed.items():
        try:
            upsert_by_key(db, DailyAggregate, {"channel_id": channel_id, "date": target_date}, asdict(values))
            report.succeeded.append(channel_id)
        except OperationalError as exc:
            db.rollback()
            report.failed[channel_id] = str(exc.orig)
            raise PipelineRunError(f"Storage unavailable while aggregating {target_date}", report.as_dict()) from exc
        except Exception as exc:
            db.rollback()
            logger.exception("Daily aggregation failed for channel %s on %s", channel_id, target_date)
            report.failed[channel_id] = str(exc)

    logger.info(
        "Aggregated daily data for %s: %d channels, %d failed",
        target_date.isoformat(),
        len(report.succeeded),
        len(report.failed),
    )
    return report
