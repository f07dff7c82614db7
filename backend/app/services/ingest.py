import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.entities import Channel, Message, utcnow
from app.services.emoji_table import EmojiSentimentTable
from app.services.reporting import PipelineRunError, RunReport
from app.services.sentiment import MIN_SCOREABLE_LENGTH, MessageScorer, SentimentResult
from app.services.slack_client import RawMessage, raw_message_from_payload
from app.services.text import clean_slack_text, message_metadata, parse_slack_ts

logger = logging.getLogger(__name__)

SLACKBOT_USER = "USLACKBOT"


class ChatSource(Protocol):
    def channel_history(self, channel_id: str, oldest: datetime | None = None, limit: int = 100) -> list[RawMessage]: ...

    def user_name(self, user_id: str) -> str | None: ...

    def channel_name(self, channel_id: str) -> str | None: ...


@dataclass(frozen=True)
class PreparedMessage:
    raw: RawMessage
    cleaned: str
    user_name: str
    reactions: list[tuple[str, int]]


def reactions_to_json(reactions: list[tuple[str, int]], table: EmojiSentimentTable) -> list[dict]:
    return [
        {"emoji": emoji, "count": count, "sentiment": table.weight(emoji) or 0.0}
        for emoji, count in reactions
    ]


def reaction_pairs(reactions_json: list[dict]) -> list[tuple[str, int]]:
    return [(r["emoji"], int(r["count"])) for r in reactions_json]


def apply_result(message: Message, result: SentimentResult) -> None:
    message.sentiment_score = result.score
    message.sentiment_label = result.sentiment
    message.confidence = result.confidence
    message.burnout_signals = result.burnout_signals
    message.updated_at = utcnow()


def _skip_reason(raw: RawMessage, channel: Channel) -> str | None:
    if raw.user == SLACKBOT_USER or raw.subtype:
        return "system message"
    if raw.bot_id and not channel.include_bots:
        return "bot message"
    if raw.thread_ts and raw.thread_ts != raw.ts and not channel.include_threads:
        return "thread reply"
    return None


def build_message(channel: Channel, prepared: PreparedMessage, result: SentimentResult, table: EmojiSentimentTable) -> Message:
    raw = prepared.raw
    message = Message(
        slack_channel_id=channel.slack_channel_id,
        slack_channel_name=channel.name,
        slack_user_id=raw.user,
        slack_user_name=prepared.user_name,
        content=prepared.cleaned,
        timestamp=parse_slack_ts(raw.ts),
        slack_timestamp=raw.ts,
        reactions_json=reactions_to_json(prepared.reactions, table),
        thread_ts=raw.thread_ts,
        is_thread=bool(raw.thread_ts),
        **message_metadata(raw.text, prepared.cleaned, raw.thread_ts),
    )
    apply_result(message, result)
    return message


def ingest_channel(
    db: Session,
    slack: ChatSource,
    scorer: MessageScorer,
    channel: Channel,
    oldest: datetime | None = None,
    limit: int = 100,
    concurrency: int = 4,
) -> dict:
    raw_messages = slack.channel_history(channel.slack_channel_id, oldest=oldest, limit=limit)
    seen = set(
        db.execute(
            select(Message.slack_timestamp).where(Message.slack_timestamp.in_([m.ts for m in raw_messages]))
        ).scalars()
    )

    report = RunReport(unit="message")
    user_names: dict[str, str | None] = {}
    prepared: list[PreparedMessage] = []
    skipped = 0
    for raw in raw_messages:
        if raw.ts in seen or _skip_reason(raw, channel):
            skipped += 1
            continue
        cleaned = clean_slack_text(raw.text)
        if len(cleaned) < MIN_SCOREABLE_LENGTH:
            skipped += 1
            continue
        if raw.user not in user_names:
            user_names[raw.user] = slack.user_name(raw.user)
        if user_names[raw.user] is None:
            report.failed[raw.ts] = f"user lookup failed for {raw.user}"
            continue
        reactions = [(r.name, r.count) for r in raw.reactions]
        prepared.append(PreparedMessage(raw=raw, cleaned=cleaned, user_name=user_names[raw.user], reactions=reactions))

    # scoring results depend only on each message, so completion order is irrelevant
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        futures = [(item, pool.submit(scorer.score, item.cleaned, item.reactions)) for item in prepared]

    table = scorer.emoji_table
    for item, future in futures:
        try:
            result = future.result()
            logger.debug("Scored %s in %s via %s: %s", item.raw.ts, channel.slack_channel_id, result.source, result.sentiment)
            db.add(build_message(channel, item, result, table))
            db.commit()
            report.succeeded.append(item.raw.ts)
        except OperationalError:
            db.rollback()
            raise
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to store message %s in %s", item.raw.ts, channel.name)
            report.failed[item.raw.ts] = str(exc)

    if report.succeeded:
        channel.last_message_at = utcnow()
        db.commit()

    logger.info(
        "Ingested %s: %d found, %d processed, %d skipped, %d failed",
        channel.name,
        len(raw_messages),
        len(report.succeeded),
        skipped,
        len(report.failed),
    )
    return {
        "channel_id": channel.slack_channel_id,
        "channel_name": channel.name,
        "messages_found": len(raw_messages),
        "messages_processed": len(report.succeeded),
        "messages_skipped": skipped,
        "failed": report.failed,
    }


def ingest_monitored_channels(db: Session, slack: ChatSource, scorer: MessageScorer, oldest: datetime | None = None) -> dict:
    settings = get_settings()
    channels = db.execute(
        select(Channel).where(Channel.is_monitored.is_(True)).order_by(Channel.slack_channel_id)
    ).scalars().all()

    report = RunReport(unit="channel")
    results = []
    for channel in channels:
        channel_id = channel.slack_channel_id
        try:
            results.append(
                ingest_channel(
                    db,
                    slack,
                    scorer,
                    channel,
                    oldest=oldest,
                    limit=settings.ingest_history_limit,
                    concurrency=settings.scoring_concurrency,
                )
            )
            report.succeeded.append(channel_id)
        except OperationalError as exc:
            db.rollback()
            report.failed[channel_id] = str(exc.orig)
            raise PipelineRunError("Storage unavailable during Slack ingestion", {**report.as_dict(), "results": results}) from exc
        except Exception as exc:
            db.rollback()
            logger.exception("Error processing channel %s", channel_id)
            report.failed[channel_id] = str(exc)

    return {**report.as_dict(), "results": results}


def ingest_message_event(db: Session, slack: ChatSource, scorer: MessageScorer, event: dict) -> Message | None:
    """Store one live ``message`` event pushed by Slack.

    Returns None when the message is not stored: unmonitored channel,
    filtered by the channel settings, already stored, or unknown author.
    """
    channel_id = event.get("channel")
    if not channel_id or not event.get("ts"):
        return None
    channel = db.execute(
        select(Channel).where(Channel.slack_channel_id == channel_id, Channel.is_monitored.is_(True))
    ).scalar_one_or_none()
    if channel is None:
        return None

    raw = raw_message_from_payload(channel_id, event)
    cleaned = clean_slack_text(raw.text)
    if _skip_reason(raw, channel) or len(cleaned) < MIN_SCOREABLE_LENGTH:
        return None
    # Slack redelivers events it did not see acknowledged in time
    if db.execute(select(Message.id).where(Message.slack_timestamp == raw.ts)).first() is not None:
        return None

    user_name = slack.user_name(raw.user)
    if user_name is None:
        logger.warning("Dropping message %s in %s: user lookup failed for %s", raw.ts, channel.name, raw.user)
        return None

    prepared = PreparedMessage(raw=raw, cleaned=cleaned, user_name=user_name, reactions=[(r.name, r.count) for r in raw.reactions])
    result = scorer.score(cleaned, prepared.reactions)
    message = build_message(channel, prepared, result, scorer.emoji_table)
    db.add(message)
    channel.last_message_at = utcnow()
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Message %s was stored by a concurrent delivery", raw.ts)
        return None
    logger.info("Processed message from %s in %s: %s (%.2f, %s)", user_name, channel.name, result.sentiment, result.score, result.source)
    return message


def apply_reaction_change(
    db: Session,
    scorer: MessageScorer,
    message_ts: str,
    emoji: str,
    added: bool,
) -> Message | None:
    """Add or remove one reaction on a stored message and re-score it.

    The row stays locked from read to commit, so two reaction events on the
    same message are scored one after the other against the latest list.
    """
    message = db.execute(
        select(Message).where(Message.slack_timestamp == message_ts).with_for_update()
    ).scalar_one_or_none()
    if message is None:
        db.rollback()
        return None

    counts = dict(reaction_pairs(message.reactions_json or []))
    if added:
        counts[emoji] = counts.get(emoji, 0) + 1
    elif emoji in counts:
        counts[emoji] -= 1
        if counts[emoji] <= 0:
            del counts[emoji]

    reactions = list(counts.items())
    result = scorer.score(message.content, reactions)
    message.reactions_json = reactions_to_json(reactions, scorer.emoji_table)
    apply_result(message, result)
    db.commit()
    logger.info(
        "Re-scored message %s after reaction %s %s: %s (%.2f, %s)",
        message_ts,
        "added" if added else "removed",
        emoji,
        result.sentiment,
        result.score,
        result.source,
    )
    return message


def register_channel(
    db: Session,
    slack: ChatSource,
    slack_channel_id: str,
    team_id: str | None = None,
    team_name: str | None = None,
    monitored: bool = True,
) -> Channel | None:
    settings = get_settings()
    name = slack.channel_name(slack_channel_id)
    if name is None:
        return None

    channel = db.execute(select(Channel).where(Channel.slack_channel_id == slack_channel_id)).scalar_one_or_none()
    if not channel:
        channel = Channel(
            slack_channel_id=slack_channel_id,
            name=name,
            team_id=team_id or settings.team_id,
            team_name=team_name or settings.team_name,
            is_monitored=monitored,
        )
        db.add(channel)
    else:
        channel.name = name
        channel.is_monitored = monitored
    db.commit()
    db.refresh(channel)
    return channel
