from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import union
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from brokerage import models

ACTIVE_YEAR_KEY = "active_year"
MIN_YEAR = 2000
MAX_YEAR = 2100

logger = logging.getLogger("brokerage")


def _current_calendar_year() -> int:
    return date.today().year


def get_active_year(db: Session) -> int:
    """Return the year new records attach to and default listings are scoped to.

    Falls back to the current calendar year when the setting is missing or
    unparseable; never raises for a missing row.
    """

    row = db.query(models.AppSetting).filter(models.AppSetting.key == ACTIVE_YEAR_KEY).first()
    if row is None:
        return _current_calendar_year()
    try:
        return int(str(row.value).strip())
    except (TypeError, ValueError):
        logger.warning("active_year_unparseable", extra={"value": row.value})
        return _current_calendar_year()


def set_active_year(db: Session, year: int, *, max_retries: int = 3) -> int:
    """Insert-or-update the active year setting by key and commit."""

    year = int(year)
    if year < MIN_YEAR or year > MAX_YEAR:
        raise ValueError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")

    for _ in range(max_retries):
        row = db.query(models.AppSetting).filter(models.AppSetting.key == ACTIVE_YEAR_KEY).first()
        if row is None:
            row = models.AppSetting(key=ACTIVE_YEAR_KEY, value=str(year))
        else:
            row.value = str(year)
            row.updated_at = datetime.utcnow()
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # Another request inserted the key first; retry as an update.
            db.rollback()
            continue
        logger.info("active_year_changed", extra={"year": year})
        return year

    raise RuntimeError("Could not persist active year setting")


def list_known_years(db: Session) -> list[int]:
    """Distinct years that hold quotations or orders, plus the active year."""

    stmt = union(
        db.query(models.Quotation.year).distinct().statement,
        db.query(models.Order.year).distinct().statement,
    )
    years = {int(y) for (y,) in db.execute(stmt).all() if y is not None}
    years.add(get_active_year(db))
    return sorted(years)
