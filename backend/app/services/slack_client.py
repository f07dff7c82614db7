import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
SIGNATURE_MAX_AGE_SECONDS = 300


class SlackAPIError(RuntimeError):
    pass


@dataclass(frozen=True)
class RawReaction:
    name: str
    count: int


@dataclass(frozen=True)
class RawMessage:
    channel: str
    user: str
    text: str
    ts: str
    thread_ts: str | None = None
    bot_id: str | None = None
    subtype: str | None = None
    reactions: tuple[RawReaction, ...] = field(default_factory=tuple)


def raw_message_from_payload(channel_id: str, msg: dict) -> RawMessage:
    return RawMessage(
        channel=channel_id,
        user=msg.get("user") or "unknown",
        text=msg.get("text") or "",
        ts=msg["ts"],
        thread_ts=msg.get("thread_ts"),
        bot_id=msg.get("bot_id"),
        subtype=msg.get("subtype"),
        reactions=tuple(RawReaction(name=r["name"], count=int(r.get("count", 0))) for r in msg.get("reactions") or []),
    )


class SlackClient:
    def __init__(
        self,
        token: str,
        base_url: str = "https://slack.com/api",
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_s,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _call(self, method: str, params: dict) -> dict:
        for _ in range(MAX_ATTEMPTS):
            response = self._client.get(f"/{method}", params=params)
            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "1"))
                logger.info("Slack rate limited on %s, sleeping %ss", method, retry_after)
                time.sleep(retry_after)
                continue
            response.raise_for_status()
            data = response.json()
            if not data.get("ok"):
                raise SlackAPIError(f"{method}: {data.get('error', 'unknown_error')}")
            return data
        raise SlackAPIError(f"{method}: rate limited after {MAX_ATTEMPTS} attempts")

    def channel_history(self, channel_id: str, oldest: datetime | None = None, limit: int = 100) -> list[RawMessage]:
        params: dict = {"channel": channel_id, "limit": limit, "include_all_metadata": "true"}
        if oldest is not None:
            if oldest.tzinfo is None:
                oldest = oldest.replace(tzinfo=timezone.utc)
            params["oldest"] = f"{oldest.timestamp():.6f}"
        data = self._call("conversations.history", params)
        return [raw_message_from_payload(channel_id, msg) for msg in data.get("messages", []) if msg.get("ts")]

    def user_name(self, user_id: str) -> str | None:
        try:
            data = self._call("users.info", {"user": user_id})
        except (httpx.HTTPError, SlackAPIError) as exc:
            logger.warning("Slack user lookup failed for %s: %s", user_id, exc)
            return None
        return (data.get("user") or {}).get("name") or "unknown"

    def channel_name(self, channel_id: str) -> str | None:
        try:
            data = self._call("conversations.info", {"channel": channel_id})
        except (httpx.HTTPError, SlackAPIError) as exc:
            logger.warning("Slack channel lookup failed for %s: %s", channel_id, exc)
            return None
        return (data.get("channel") or {}).get("name") or "unknown"


@lru_cache
def get_slack_client() -> SlackClient:
    settings = get_settings()
    return SlackClient(
        token=settings.slack_bot_token,
        base_url=settings.slack_api_url,
        timeout_s=settings.slack_timeout_seconds,
    )


def verify_slack_signature(
    secret: str,
    body: bytes,
    timestamp: str | None,
    signature: str | None,
    now: float | None = None,
) -> bool:
    """Check Slack's v0 request signature; stale timestamps are rejected to stop replays."""
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > SIGNATURE_MAX_AGE_SECONDS:
        return False
    base = b"v0:" + timestamp.encode() + b":" + body
    expected = "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)
