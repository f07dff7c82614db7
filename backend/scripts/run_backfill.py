import argparse
import json

from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.backfill import MAX_BACKFILL_DAYS, BackfillRangeError, backfill
from app.services.llm_client import get_llm_client
from app.services.narrative import WeeklyNarrator
from app.services.reporting import PipelineRunError


def main() -> int:
    parser = argparse.ArgumentParser(description="Recompute daily aggregates for trailing days, then this week's insight.")
    parser.add_argument("--days", type=int, default=7, help=f"Trailing days to recompute (max {MAX_BACKFILL_DAYS})")
    parser.add_argument("--no-llm", action="store_true", help="Use the fixed fallback narrative instead of the model")
    args = parser.parse_args()

    configure_logging()
    narrator = WeeklyNarrator(llm=None if args.no_llm else get_llm_client())

    db = SessionLocal()
    try:
        result = backfill(db, args.days, narrator=narrator)
    except BackfillRangeError as exc:
        parser.error(str(exc))
    except PipelineRunError as exc:
        print(f"Backfill failed: {exc}")
        print(json.dumps(exc.report, indent=2))
        return 1
    finally:
        db.close()

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
