import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.services.aggregation import aggregate_day
from app.services.narrative import WeeklyNarrator
from app.services.reporting import PipelineRunError
from app.services.weekly import generate_week, week_start_for

logger = logging.getLogger(__name__)

MAX_BACKFILL_DAYS = 30


class BackfillRangeError(ValueError):
    pass


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def validate_backfill_days(days: int) -> int:
    if days < 1:
        raise BackfillRangeError("Backfill needs at least 1 day")
    if days > MAX_BACKFILL_DAYS:
        raise BackfillRangeError(f"Maximum backfill period is {MAX_BACKFILL_DAYS} days")
    return days


def _weekly_summary(db: Session, week_start: date, narrator: WeeklyNarrator, day_reports: dict[str, dict]) -> dict:
    week_label = week_start_for(week_start).isoformat()
    try:
        insight = generate_week(db, week_start, narrator)
    except OperationalError as exc:
        db.rollback()
        weekly = {"week_start": week_label, "written": False, "failed": str(exc.orig)}
        raise PipelineRunError(
            f"Storage unavailable while generating week {week_label}",
            {"days": day_reports, "weekly": weekly},
        ) from exc
    return {"week_start": week_label, "written": insight is not None}


def backfill(db: Session, days: int = 7, *, narrator: WeeklyNarrator, today: date | None = None) -> dict:
    validate_backfill_days(days)
    today = today or utc_today()
    logger.info("Starting backfill for last %d days", days)

    day_reports: dict[str, dict] = {}
    for offset in range(days - 1, -1, -1):
        target = today - timedelta(days=offset)
        try:
            day_reports[target.isoformat()] = aggregate_day(db, target).as_dict()
        except PipelineRunError as exc:
            day_reports[target.isoformat()] = exc.report
            raise PipelineRunError(f"Backfill stopped at {target.isoformat()}", {"days": day_reports}) from exc

    weekly = _weekly_summary(db, today, narrator, day_reports)
    logger.info("Backfill completed for %d days", days)
    return {"days": day_reports, "weekly": weekly}


def run_scheduled(db: Session, *, narrator: WeeklyNarrator, today: date | None = None) -> dict:
    """Daily driver: settle yesterday, refresh today, close out last week on Mondays."""
    today = today or utc_today()
    day_reports: dict[str, dict] = {}
    for target in (today - timedelta(days=1), today):
        try:
            day_reports[target.isoformat()] = aggregate_day(db, target).as_dict()
        except PipelineRunError as exc:
            day_reports[target.isoformat()] = exc.report
            raise PipelineRunError(f"Scheduled run stopped at {target.isoformat()}", {"days": day_reports}) from exc

    result: dict = {"days": day_reports}
    if today.weekday() == 0:
        result["weekly"] = _weekly_summary(db, today - timedelta(days=7), narrator, day_reports)
    return result
