from celery import Celery
from celery.schedules import crontab

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "teampulse",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.tasks.jobs"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=settings.celery_task_eager_propagates,
)

celery_app.conf.beat_schedule = {
    "slack-ingest-every-15-min": {
        "task": "app.tasks.jobs.slack_ingest_task",
        "schedule": crontab(minute="*/15"),
    },
    "scheduled-daily-run": {
        "task": "app.tasks.jobs.scheduled_daily_task",
        "schedule": crontab(hour=0, minute=30),
    },
}
