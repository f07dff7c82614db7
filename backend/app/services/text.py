import re
from datetime import datetime, timezone

USER_MENTION_RE = re.compile(r"<@[UW][A-Z0-9]+(?:\|[^>]+)?>")
CHANNEL_MENTION_RE = re.compile(r"<#[CD][A-Z0-9]+\|([^>]+)>")
LABELLED_LINK_RE = re.compile(r"<(https?://[^|>]+)\|([^>]+)>")
BARE_LINK_RE = re.compile(r"<(https?://[^>]+)>")
SPECIAL_COMMAND_RE = re.compile(r"<![^>]+>")
LINK_RE = re.compile(r"https?://")
SHORTCODE_RE = re.compile(r":([a-zA-Z0-9_+-]+):")
UNICODE_EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF"
    "\u2600-\u26FF\u2700-\u27BF]"
)
SPACE_RE = re.compile(r"\s+")


def clean_slack_text(text: str | None) -> str:
    if not text:
        return ""
    text = USER_MENTION_RE.sub("@user", text)
    text = CHANNEL_MENTION_RE.sub(r"#\1", text)
    text = LABELLED_LINK_RE.sub(r"\2", text)
    text = BARE_LINK_RE.sub(r"\1", text)
    text = SPECIAL_COMMAND_RE.sub("", text)
    text = text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")
    return text.strip()


def parse_slack_ts(ts: str) -> datetime:
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).replace(tzinfo=None)


def extract_emojis(text: str | None) -> list[str]:
    if not text:
        return []
    return SHORTCODE_RE.findall(text) + UNICODE_EMOJI_RE.findall(text)


def message_metadata(raw_text: str, cleaned_text: str, thread_ts: str | None) -> dict:
    return {
        "message_type": "thread_reply" if thread_ts else "message",
        "has_links": bool(LINK_RE.search(raw_text or "")),
        "has_emojis": bool(extract_emojis(raw_text)),
        "word_count": len([w for w in SPACE_RE.split(cleaned_text) if w]),
    }
