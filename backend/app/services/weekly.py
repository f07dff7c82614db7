import logging
from collections.abc import Sequence
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.upsert import upsert_by_key
from app.models.entities import DailyAggregate, WeeklyInsight
from app.services.aggregation import classify_trend
from app.services.narrative import WeeklyNarrator

logger = logging.getLogger(__name__)

WEEK_LENGTH_DAYS = 7
BURNOUT_ALERT_THRESHOLD = 0.3
BURNOUT_MEDIUM_THRESHOLD = 0.5
BURNOUT_HIGH_THRESHOLD = 0.7
LOW_SENTIMENT_THRESHOLD = 0.4
EXPECTED_MESSAGES_PER_CHANNEL = 50
# placeholder in hours until reply latency is measured
RESPONSE_TIME_HOURS = 2.0


def week_start_for(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def half_split_trend(daily_sentiments: Sequence[float]) -> str:
    middle = (len(daily_sentiments) + 1) // 2
    first, second = daily_sentiments[:middle], daily_sentiments[middle:]
    if not first or not second:
        return "stable"
    return classify_trend(_mean(second) - _mean(first))


def rollup_channel(days: Sequence[DailyAggregate]) -> dict:
    sentiments = [d.avg_sentiment for d in days]
    return {
        "channel_id": days[0].channel_id,
        "channel_name": days[0].channel_name,
        "avg_sentiment": _mean(sentiments),
        "message_count": sum(d.message_count for d in days),
        "burnout_risk": _mean([d.burnout_risk for d in days]),
        "trend": half_split_trend(sentiments),
    }


def team_trend(rollups: Sequence[dict]) -> str:
    improving = sum(1 for r in rollups if r["trend"] == "improving")
    declining = sum(1 for r in rollups if r["trend"] == "declining")
    if improving > declining:
        return "improving"
    if declining > improving:
        return "declining"
    return "stable"


def burnout_tier(risk: float) -> str:
    if risk > BURNOUT_HIGH_THRESHOLD:
        return "high"
    if risk > BURNOUT_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def burnout_alerts(rollups: Sequence[dict]) -> list[dict]:
    alerts = []
    for r in rollups:
        if r["burnout_risk"] <= BURNOUT_ALERT_THRESHOLD:
            continue
        signals = [f"Burnout risk: {r['burnout_risk'] * 100:.1f}%"]
        if r["avg_sentiment"] < LOW_SENTIMENT_THRESHOLD:
            signals.append("Low sentiment detected")
        if r["trend"] == "declining":
            signals.append("Declining sentiment trend")
        alerts.append(
            {
                "channel_id": r["channel_id"],
                "channel_name": r["channel_name"],
                "risk_level": burnout_tier(r["burnout_risk"]),
                "signals": signals,
            }
        )
    return alerts


def key_metrics(rollups: Sequence[dict], total_messages: int, overall_sentiment: float) -> dict[str, float]:
    return {
        "engagement_score": min(1.0, total_messages / (len(rollups) * EXPECTED_MESSAGES_PER_CHANNEL)),
        # every channel with data counts as participating
        "participation_rate": 1.0,
        "response_time": RESPONSE_TIME_HOURS,
        "positivity_ratio": overall_sentiment,
    }


def load_week_rollups(db: Session, week_start: date) -> list[dict]:
    week_end = week_start + timedelta(days=WEEK_LENGTH_DAYS - 1)
    rows = db.execute(
        select(DailyAggregate)
        .where(DailyAggregate.date >= week_start, DailyAggregate.date <= week_end)
        .order_by(DailyAggregate.date, DailyAggregate.channel_id)
    ).scalars().all()

    by_channel: dict[str, list[DailyAggregate]] = {}
    for row in rows:
        by_channel.setdefault(row.channel_id, []).append(row)
    return [rollup_channel(days) for days in by_channel.values()]


def generate_week(
    db: Session,
    week_start: date,
    narrator: WeeklyNarrator,
    team_id: str | None = None,
    team_name: str | None = None,
) -> WeeklyInsight | None:
    settings = get_settings()
    week_start = week_start_for(week_start)
    week_end = week_start + timedelta(days=WEEK_LENGTH_DAYS - 1)

    rollups = load_week_rollups(db, week_start)
    if not rollups:
        logger.info("No daily aggregates for week starting %s, skipping weekly insight", week_start.isoformat())
        return None

    total_messages = sum(r["message_count"] for r in rollups)
    overall_sentiment = _mean([r["avg_sentiment"] for r in rollups])
    narrative = narrator.generate(rollups)
    metrics = key_metrics(rollups, total_messages, overall_sentiment)

    insight = upsert_by_key(
        db,
        WeeklyInsight,
        {"team_id": team_id or settings.team_id, "week_start": week_start},
        {
            "week_end": week_end,
            "team_name": team_name or settings.team_name,
            "channels_json": rollups,
            "overall_trend": team_trend(rollups),
            "overall_sentiment": overall_sentiment,
            "total_messages": total_messages,
            "insights_json": narrative.insights,
            "recommendations_json": narrative.recommendations,
            "burnout_alerts_json": burnout_alerts(rollups),
            **metrics,
        },
    )
    logger.info(
        "Generated weekly insight for week starting %s: %d channels, narrative %s",
        week_start.isoformat(),
        len(rollups),
        "generated" if narrative.generated else "fallback",
    )
    return insight
