from datetime import datetime

from app.services.text import clean_slack_text, extract_emojis, message_metadata, parse_slack_ts


def test_clean_slack_text_rewrites_markup():
    raw = "<@U024BE7LH> see <#C12345|eng-general> and <https://example.com/doc|the doc> &amp; <!here>"
    assert clean_slack_text(raw) == "@user see #eng-general and the doc &"


def test_clean_slack_text_keeps_bare_links():
    assert clean_slack_text("deploy log: <https://ci.example.com/run/42>") == "deploy log: https://ci.example.com/run/42"


def test_clean_slack_text_handles_empty():
    assert clean_slack_text(None) == ""
    assert clean_slack_text("   ") == ""


def test_parse_slack_ts_is_naive_utc():
    assert parse_slack_ts("1760702400.250000") == datetime(2025, 10, 17, 12, 0, 0, 250000)


def test_extract_emojis_finds_shortcodes_and_symbols():
    assert extract_emojis("nice :tada: work ✅") == ["tada", "✅"]
    assert extract_emojis("plain text") == []


def test_message_metadata():
    raw = "shipped it :rocket: <https://example.com|notes>"
    meta = message_metadata(raw, clean_slack_text(raw), thread_ts="1760702400.000100")
    assert meta == {"message_type": "thread_reply", "has_links": True, "has_emojis": True, "word_count": 4}

    meta = message_metadata("all good", "all good", thread_ts=None)
    assert meta == {"message_type": "message", "has_links": False, "has_emojis": False, "word_count": 2}
