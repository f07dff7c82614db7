from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.entities import DailyAggregate
from app.services.weekly import BURNOUT_ALERT_THRESHOLD, LOW_SENTIMENT_THRESHOLD, burnout_tier

TIMEFRAME_DAYS = {"7d": 7, "30d": 30}
ALERT_LOOKBACK_DAYS = 7
HIGH_VOLUME_MESSAGES = 100


def sentiment_series(db: Session, days: int, today: date) -> list[dict]:
    """Team-wide daily points: mean of channel averages and total messages."""
    start = today - timedelta(days=days - 1)
    rows = db.execute(
        select(
            DailyAggregate.date,
            func.avg(DailyAggregate.avg_sentiment),
            func.sum(DailyAggregate.message_count),
        )
        .where(DailyAggregate.date >= start, DailyAggregate.date <= today)
        .group_by(DailyAggregate.date)
        .order_by(DailyAggregate.date)
    ).all()
    return [
        {"date": day.isoformat(), "sentiment": round(avg, 2), "message_count": int(total)}
        for day, avg, total in rows
    ]


def recent_burnout_alerts(db: Session, today: date) -> list[dict]:
    rows = db.execute(
        select(DailyAggregate)
        .where(
            DailyAggregate.date >= today - timedelta(days=ALERT_LOOKBACK_DAYS),
            DailyAggregate.burnout_risk > BURNOUT_ALERT_THRESHOLD,
        )
        .order_by(DailyAggregate.date.desc(), DailyAggregate.channel_id)
    ).scalars().all()

    # newest qualifying day per channel
    latest: dict[str, DailyAggregate] = {}
    for row in rows:
        latest.setdefault(row.channel_id, row)

    alerts = []
    for row in latest.values():
        signals = [f"{row.burnout_risk * 100:.1f}% burnout risk detected"]
        if row.avg_sentiment < LOW_SENTIMENT_THRESHOLD:
            signals.append("Low sentiment in recent messages")
        if row.sentiment_trend == "declining":
            signals.append("Declining sentiment trend")
        if row.message_count > HIGH_VOLUME_MESSAGES:
            signals.append("High message volume detected")
        alerts.append(
            {
                "channel_id": row.channel_id,
                "channel_name": row.channel_name,
                "risk_level": burnout_tier(row.burnout_risk),
                "signals": signals,
                "affected_users": row.active_users or 1,
                "detected_at": row.date.isoformat(),
                "severity": row.burnout_risk,
            }
        )
    return sorted(alerts, key=lambda alert: alert["severity"], reverse=True)
