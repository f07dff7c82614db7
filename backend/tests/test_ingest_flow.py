import logging
from datetime import datetime

import pytest
from sqlalchemy import select

from app.models.entities import Channel, Message
from app.services.ingest import (
    apply_reaction_change,
    ingest_channel,
    ingest_message_event,
    ingest_monitored_channels,
    register_channel,
)
from app.services.sentiment import MessageScorer
from app.services.slack_client import RawMessage, RawReaction, SlackAPIError


class FakeSlack:
    def __init__(self, history: dict[str, list[RawMessage]], users: dict[str, str], channels: dict[str, str] | None = None):
        self.history = history
        self.users = users
        self.channels = channels or {}
        self.user_lookups: list[str] = []

    def channel_history(self, channel_id, oldest=None, limit=100):
        messages = self.history[channel_id]
        if isinstance(messages, Exception):
            raise messages
        return list(messages)

    def user_name(self, user_id):
        self.user_lookups.append(user_id)
        return self.users.get(user_id)

    def channel_name(self, channel_id):
        return self.channels.get(channel_id)


def _raw(ts, text, user="U1", channel="C1", **kwargs) -> RawMessage:
    return RawMessage(channel=channel, user=user, text=text, ts=ts, **kwargs)


HISTORY = [
    _raw("1760702400.000100", "Great work everyone on the launch", reactions=(RawReaction("+1", 2),)),
    _raw("1760702460.000100", "deploy finished successfully", bot_id="B01"),
    _raw("1760702520.000100", "reminder: fill in the survey", user="USLACKBOT"),
    _raw("1760702580.000100", "ok"),
    _raw("1760702640.000100", "<@U2> has joined the channel", subtype="channel_join"),
    _raw("1760702700.000100", "who broke the staging build?", user="U404"),
    _raw("1760702760.000100", "<@U1> thanks, looking now", user="U2", thread_ts="1760702400.000100"),
]


@pytest.fixture
def channel(db):
    row = Channel(slack_channel_id="C1", name="eng-general", team_id="T1", team_name="Platform")
    db.add(row)
    db.commit()
    return row


@pytest.fixture
def scorer():
    return MessageScorer(llm=None, model="test-model")


@pytest.fixture
def slack():
    return FakeSlack({"C1": HISTORY}, users={"U1": "alice", "U2": "bob"})


def _stored(db) -> list[Message]:
    return db.execute(select(Message).order_by(Message.slack_timestamp)).scalars().all()


def test_ingest_channel_stores_scored_messages(db, channel, scorer, slack):
    result = ingest_channel(db, slack, scorer, channel)

    assert result["messages_found"] == 7
    assert result["messages_processed"] == 2
    assert result["messages_skipped"] == 4
    assert list(result["failed"]) == ["1760702700.000100"]

    first, reply = _stored(db)
    assert first.slack_channel_name == "eng-general"
    assert first.slack_user_name == "alice"
    assert first.timestamp == datetime(2025, 10, 17, 12, 0, 0, 100)
    assert first.reactions_json == [{"emoji": "+1", "count": 2, "sentiment": 0.7}]
    assert first.sentiment_score == pytest.approx(0.6 * 0.7 + ((0.7 + 1) / 2) * 0.3)
    assert first.sentiment_label == "positive"
    assert first.confidence == 0.4
    assert first.is_thread is False
    assert first.word_count == 6

    assert reply.content == "@user thanks, looking now"
    assert reply.is_thread is True
    assert reply.message_type == "thread_reply"
    assert reply.slack_user_name == "bob"
    assert channel.last_message_at is not None


def test_user_names_are_looked_up_once(db, channel, scorer):
    history = [_raw("1760702400.000100", "first message today"), _raw("1760702460.000100", "second message today")]
    slack = FakeSlack({"C1": history}, users={"U1": "alice"})

    ingest_channel(db, slack, scorer, channel)

    assert slack.user_lookups == ["U1"]


def test_rerun_skips_stored_messages(db, channel, scorer, slack):
    ingest_channel(db, slack, scorer, channel)
    result = ingest_channel(db, slack, scorer, channel)

    assert result["messages_processed"] == 0
    assert result["messages_skipped"] == 6
    assert len(_stored(db)) == 2


def test_bots_and_threads_follow_channel_flags(db, channel, scorer, slack):
    channel.include_bots = True
    channel.include_threads = False
    db.commit()

    ingest_channel(db, slack, scorer, channel)

    assert [m.content for m in _stored(db)] == ["Great work everyone on the launch", "deploy finished successfully"]


def test_monitored_channels_are_isolated(db, scorer):
    db.add_all(
        [
            Channel(slack_channel_id="C1", name="eng-general", team_id="T1", team_name="Platform"),
            Channel(slack_channel_id="C2", name="eng-oncall", team_id="T1", team_name="Platform"),
            Channel(slack_channel_id="C3", name="random", team_id="T1", team_name="Platform", is_monitored=False),
        ]
    )
    db.commit()
    slack = FakeSlack(
        {"C1": SlackAPIError("conversations.history: channel_not_found"), "C2": [_raw("1760702400.000100", "pager was quiet", channel="C2")]},
        users={"U1": "alice"},
    )

    result = ingest_monitored_channels(db, slack, scorer)

    assert result["succeeded"] == ["C2"]
    assert result["failed"] == {"C1": "conversations.history: channel_not_found"}
    assert [r["channel_id"] for r in result["results"]] == ["C2"]
    assert [m.slack_channel_id for m in _stored(db)] == ["C2"]


def test_reaction_add_and_remove_rescore(db, channel, scorer, slack):
    ingest_channel(db, slack, scorer, channel)
    ts = "1760702400.000100"

    message = apply_reaction_change(db, scorer, ts, "rage", added=True)
    assert message.reactions_json == [
        {"emoji": "+1", "count": 2, "sentiment": 0.7},
        {"emoji": "rage", "count": 1, "sentiment": -0.9},
    ]
    assert message.sentiment_score == pytest.approx(0.6 * 0.7 + ((0.5 / 3 + 1) / 2) * 0.3)
    assert message.sentiment_label == "neutral"

    apply_reaction_change(db, scorer, ts, "+1", added=False)
    message = apply_reaction_change(db, scorer, ts, "+1", added=False)
    assert message.reactions_json == [{"emoji": "rage", "count": 1, "sentiment": -0.9}]
    assert message.sentiment_score == pytest.approx(0.6 * 0.7 + ((-0.9 + 1) / 2) * 0.3)
    assert message.sentiment_label == "neutral"


def test_removing_absent_reaction_keeps_list(db, channel, scorer, slack):
    ingest_channel(db, slack, scorer, channel)

    message = apply_reaction_change(db, scorer, "1760702400.000100", "eyes", added=False)

    assert message.reactions_json == [{"emoji": "+1", "count": 2, "sentiment": 0.7}]


def test_reaction_on_unknown_message(db, scorer):
    assert apply_reaction_change(db, scorer, "1.000000", "+1", added=True) is None


def test_register_channel_creates_and_updates(db):
    slack = FakeSlack({}, users={}, channels={"C9": "eng-release"})

    created = register_channel(db, slack, "C9", team_id="T1", team_name="Platform")
    assert (created.name, created.team_id, created.is_monitored) == ("eng-release", "T1", True)

    slack.channels["C9"] = "eng-releases"
    updated = register_channel(db, slack, "C9", monitored=False)
    assert updated.id == created.id
    assert (updated.name, updated.is_monitored) == ("eng-releases", False)

    assert register_channel(db, slack, "C404") is None


def test_rescore_log_names_scoring_path(db, channel, scorer, slack, caplog):
    ingest_channel(db, slack, scorer, channel)

    with caplog.at_level(logging.INFO, logger="app.services.ingest"):
        apply_reaction_change(db, scorer, "1760702400.000100", "heart", added=True)

    assert "heuristic" in caplog.text


def _event(ts="1760702800.000100", text="shipping the hotfix now, great teamwork", **extra) -> dict:
    return {"type": "message", "channel": "C1", "user": "U1", "text": text, "ts": ts, **extra}


def test_message_event_is_stored(db, channel, scorer, slack):
    message = ingest_message_event(db, slack, scorer, _event())

    assert message is not None
    (stored,) = _stored(db)
    assert stored.slack_timestamp == "1760702800.000100"
    assert stored.slack_user_name == "alice"
    assert stored.reactions_json == []
    assert stored.sentiment_label == "positive"
    assert channel.last_message_at is not None


def test_message_event_redelivery_is_ignored(db, channel, scorer, slack):
    ingest_message_event(db, slack, scorer, _event())
    assert ingest_message_event(db, slack, scorer, _event()) is None
    assert len(_stored(db)) == 1


@pytest.mark.parametrize(
    "event",
    [
        _event(channel="C9"),
        _event(bot_id="B01"),
        _event(user="USLACKBOT"),
        _event(text="ok"),
        _event(user="U404"),
        _event(subtype="message_changed"),
    ],
)
def test_message_event_filters(db, channel, scorer, slack, event):
    assert ingest_message_event(db, slack, scorer, event) is None
    assert _stored(db) == []


def test_message_event_for_unmonitored_channel(db, channel, scorer, slack):
    channel.is_monitored = False
    db.commit()

    assert ingest_message_event(db, slack, scorer, _event()) is None
