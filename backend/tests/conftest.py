import itertools
import os
from datetime import date, datetime

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["ADMIN_TOKEN"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.entities import DailyAggregate, Message
from app.services.sentiment import label_for_score


class StubLLM:
    def __init__(self, replies: list[str] | None = None, error: Exception | None = None):
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[dict] = []

    def complete(self, prompt: str, *, model: str, max_tokens: int, temperature: float) -> str:
        self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens, "temperature": temperature})
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


@pytest.fixture
def stub_llm():
    return StubLLM


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def make_message(db):
    counter = itertools.count(1)

    def _make(
        channel_id: str = "C1",
        timestamp: datetime = datetime(2026, 10, 12, 12, 0),
        score: float = 0.5,
        burnout: bool = False,
        user: str = "U1",
        reactions: list[dict] | None = None,
        channel_name: str | None = None,
        content: str = "status update for the team",
    ) -> Message:
        n = next(counter)
        message = Message(
            slack_channel_id=channel_id,
            slack_channel_name=channel_name or f"channel-{channel_id.lower()}",
            slack_user_id=user,
            slack_user_name=user.lower(),
            content=content,
            timestamp=timestamp,
            slack_timestamp=f"{1760000000 + n}.000100",
            sentiment_score=score,
            sentiment_label=label_for_score(score),
            confidence=0.8,
            burnout_signals=burnout,
            reactions_json=reactions or [],
        )
        db.add(message)
        db.commit()
        return message

    return _make


@pytest.fixture
def make_daily(db):
    def _make(
        channel_id: str,
        day: date,
        avg_sentiment: float = 0.5,
        burnout_risk: float = 0.0,
        message_count: int = 10,
        channel_name: str | None = None,
        trend: str = "stable",
    ) -> DailyAggregate:
        row = DailyAggregate(
            channel_id=channel_id,
            date=day,
            channel_name=channel_name or f"channel-{channel_id.lower()}",
            avg_sentiment=avg_sentiment,
            message_count=message_count,
            positive_count=0,
            neutral_count=message_count,
            negative_count=0,
            burnout_risk=burnout_risk,
            top_emojis_json=[],
            active_users=1,
            sentiment_trend=trend,
        )
        db.add(row)
        db.commit()
        return row

    return _make
