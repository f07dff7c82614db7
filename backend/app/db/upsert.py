import logging
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.entities import utcnow

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def upsert_by_key(db: Session, model: type[ModelT], key: dict[str, Any], values: dict[str, Any]) -> ModelT:
    """Insert or fully replace the row identified by ``key`` and commit.

    A concurrent writer inserting the same key first surfaces as an
    IntegrityError on commit; the row it wrote is then overwritten, so the
    last writer wins and the conflict is never reported as a failure.
    """
    stmt = select(model).filter_by(**key)
    values = {**values, "updated_at": utcnow()}

    existing = db.execute(stmt).scalar_one_or_none()
    if existing is None:
        row = model(**key, **values)
        db.add(row)
        try:
            db.commit()
            return row
        except IntegrityError:
            db.rollback()
            logger.info("Concurrent insert for %s %s, overwriting", model.__name__, key)
            existing = db.execute(stmt).scalar_one()

    for field, value in values.items():
        setattr(existing, field, value)
    db.commit()
    return existing
