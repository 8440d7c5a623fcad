from __future__ import annotations

from datetime import date, datetime
from typing import Iterable

from sqlalchemy import Date, func
from sqlalchemy.orm import Query, Session

from brokerage import models
from brokerage.models.domain import POLICY_ISSUED, BusinessType, Department, QuotationStatus


def _as_date(value: date | datetime | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def _filter_calendar_range(q: Query, column, start: date | datetime | None, end: date | datetime | None) -> Query:
    """Inclusive range on the calendar-date part of `column` (time of day ignored)."""

    day = func.date(column, type_=Date)
    start_d = _as_date(start)
    end_d = _as_date(end)
    if start_d is not None:
        q = q.filter(day >= start_d)
    if end_d is not None:
        q = q.filter(day <= end_d)
    return q


def is_open_order(order: models.Order) -> bool:
    return POLICY_ISSUED not in (order.statuses or [])


def filter_orders_by_status(
    orders: Iterable[models.Order], *, status: str | None, include_all: bool = False
) -> list[models.Order]:
    """Apply the open/closed visibility rules to already-loaded orders.

    - include_all: no status filtering at all
    - status == Policy Issued: closed orders only
    - any other status: open orders that carry that tag
    - no status: open orders only
    """

    rows = list(orders)
    if include_all:
        return rows
    if status == POLICY_ISSUED:
        return [o for o in rows if not is_open_order(o)]
    if status:
        return [o for o in rows if is_open_order(o) and status in (o.statuses or [])]
    return [o for o in rows if is_open_order(o)]


def _orders_query(db: Session, *, department: Department | None, year: int) -> Query:
    q = db.query(models.Order).filter(models.Order.year == int(year))
    if department is not None:
        q = q.filter(models.Order.department == department)
    return q.order_by(models.Order.order_date.desc(), models.Order.id.desc())


def _quotations_query(db: Session, *, department: Department | None, year: int) -> Query:
    q = db.query(models.Quotation).filter(models.Quotation.year == int(year))
    if department is not None:
        q = q.filter(models.Quotation.department == department)
    return q.order_by(models.Quotation.quotation_date.desc(), models.Quotation.id.desc())


def list_orders(db: Session, *, department: Department | None, year: int) -> list[models.Order]:
    """Default listing: orders of the active year without Policy Issued."""

    return filter_orders_by_status(_orders_query(db, department=department, year=year).all(), status=None)


def list_closed_orders(db: Session, *, department: Department | None, year: int) -> list[models.Order]:
    return filter_orders_by_status(
        _orders_query(db, department=department, year=year).all(), status=POLICY_ISSUED
    )


def list_orders_in_date_range(
    db: Session,
    *,
    department: Department | None,
    year: int,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    status: str | None = None,
    include_all: bool = False,
    business_type: BusinessType | None = None,
) -> list[models.Order]:
    q = _orders_query(db, department=department, year=year)
    q = _filter_calendar_range(q, models.Order.order_date, start, end)
    if business_type is not None:
        q = q.filter(models.Order.business_type == business_type)
    return filter_orders_by_status(q.all(), status=status, include_all=include_all)


def list_orders_by_ids(
    db: Session, *, department: Department, year: int, ids: Iterable[int]
) -> list[models.Order]:
    wanted = [int(i) for i in ids]
    if not wanted:
        return []
    return _orders_query(db, department=department, year=year).filter(models.Order.id.in_(wanted)).all()


def list_quotations(db: Session, *, department: Department | None, year: int) -> list[models.Quotation]:
    return _quotations_query(db, department=department, year=year).all()


def list_quotations_in_date_range(
    db: Session,
    *,
    department: Department | None,
    year: int,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    status: QuotationStatus | None = None,
) -> list[models.Quotation]:
    """Year + calendar-date range + optional exact status match."""

    q = _quotations_query(db, department=department, year=year)
    q = _filter_calendar_range(q, models.Quotation.quotation_date, start, end)
    if status is not None:
        q = q.filter(models.Quotation.status == status)
    return q.all()


def list_quotations_by_ids(
    db: Session, *, department: Department, year: int, ids: Iterable[int]
) -> list[models.Quotation]:
    wanted = [int(i) for i in ids]
    if not wanted:
        return []
    return (
        _quotations_query(db, department=department, year=year)
        .filter(models.Quotation.id.in_(wanted))
        .all()
    )
