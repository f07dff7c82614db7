from datetime import datetime, date, timezone
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Channel(Base):
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slack_channel_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    team_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    team_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_monitored: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    include_bots: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    include_threads: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slack_channel_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    slack_channel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    slack_user_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    slack_user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    slack_timestamp: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    sentiment_score: Mapped[float] = mapped_column(Float, nullable=False)
    sentiment_label: Mapped[str] = mapped_column(String(16), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    burnout_signals: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reactions_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    thread_ts: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_thread: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    message_type: Mapped[str] = mapped_column(String(32), default="message", nullable=False)
    has_links: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_emojis: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class DailyAggregate(Base):
    __tablename__ = "daily_aggregates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    channel_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    channel_name: Mapped[str] = mapped_column(String(255), nullable=False)
    avg_sentiment: Mapped[float] = mapped_column(Float, nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    positive_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    neutral_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    negative_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    burnout_risk: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    top_emojis_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    active_users: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sentiment_trend: Mapped[str] = mapped_column(String(16), nullable=False, default="stable")
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("channel_id", "date", name="uq_daily_aggregate_channel_date"),)


class WeeklyInsight(Base):
    __tablename__ = "weekly_insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    team_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    week_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    team_name: Mapped[str] = mapped_column(String(255), nullable=False)
    channels_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    overall_trend: Mapped[str] = mapped_column(String(16), nullable=False)
    overall_sentiment: Mapped[float] = mapped_column(Float, nullable=False)
    total_messages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    insights_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recommendations_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    burnout_alerts_json: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    engagement_score: Mapped[float] = mapped_column(Float, nullable=False)
    participation_rate: Mapped[float] = mapped_column(Float, nullable=False)
    response_time: Mapped[float] = mapped_column(Float, nullable=False)
    positivity_ratio: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("team_id", "week_start", name="uq_weekly_insight_team_week"),)
