from datetime import date
from pydantic import BaseModel, ConfigDict


class DailyAggregateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel_id: str
    channel_name: str
    date: date
    avg_sentiment: float
    message_count: int
    positive_count: int
    neutral_count: int
    negative_count: int
    burnout_risk: float
    top_emojis_json: list
    active_users: int
    sentiment_trend: str


class WeeklyInsightOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: str
    team_name: str
    week_start: date
    week_end: date
    channels_json: list
    overall_trend: str
    overall_sentiment: float
    total_messages: int
    insights_json: list[str]
    recommendations_json: list[str]
    burnout_alerts_json: list
    engagement_score: float
    participation_rate: float
    response_time: float
    positivity_ratio: float


class ChannelIn(BaseModel):
    slack_channel_id: str
    team_id: str | None = None
    team_name: str | None = None
    monitored: bool = True


class ChannelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slack_channel_id: str
    name: str
    team_id: str
    is_monitored: bool
