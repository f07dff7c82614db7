import json
from pathlib import Path

from sqlalchemy import select

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.models.entities import Channel


def seed_channels(db, payload: list[dict], team_id: str, team_name: str) -> dict:
    created = 0
    updated = 0
    for entry in payload:
        slack_channel_id = entry.get("slack_channel_id")
        if not slack_channel_id:
            continue
        channel = db.execute(select(Channel).where(Channel.slack_channel_id == slack_channel_id)).scalar_one_or_none()
        if not channel:
            channel = Channel(slack_channel_id=slack_channel_id, team_id=team_id, team_name=team_name)
            db.add(channel)
            created += 1
        else:
            updated += 1
        channel.name = entry.get("name") or slack_channel_id
        channel.is_monitored = entry.get("is_monitored", True)
        channel.include_bots = entry.get("include_bots", False)
        channel.include_threads = entry.get("include_threads", True)
    db.commit()
    return {"created": created, "updated": updated}


def run() -> None:
    settings = get_settings()
    seed_path = Path(__file__).resolve().parents[2] / "data" / "channels_seed.json"
    payload = json.loads(seed_path.read_text())

    db = SessionLocal()
    try:
        result = seed_channels(db, payload, settings.team_id, settings.team_name)
    finally:
        db.close()
    print(f"Seeded channels from {seed_path}: {result}")


if __name__ == "__main__":
    run()
