from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from sqlalchemy import exists
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.models.domain import (
    FIRM_ORDER_INITIAL_STATUSES,
    POLICY_ISSUED,
    BusinessType,
    Department,
    QuotationStatus,
)
from brokerage.services.departments import DepartmentProfile, get_profile
from brokerage.services.lifecycle_events import (
    CascadeError,
    QuotationConfirmed,
    is_confirmation_edge,
)

logger = logging.getLogger("brokerage")

ConfirmationHandler = Callable[..., models.Order]

# Fields a partial update may explicitly clear; anything else ignores a null.
_NULLABLE_QUOTATION_FIELDS = {"decline_reason", "notes", "cover_group"}
_NULLABLE_ORDER_FIELDS = {"notes", "cover_group"}


@dataclass(frozen=True)
class QuotationWriteResult:
    quotation: models.Quotation
    order: models.Order | None = None


@dataclass(frozen=True)
class OrderUpdateResult:
    order: models.Order
    status_log: models.StatusLog | None = None


@dataclass(frozen=True)
class BulkDeleteResult:
    deleted_ids: list[int] = field(default_factory=list)
    missing_ids: list[int] = field(default_factory=list)


def has_moved_to_closed(previous_statuses: Iterable[str] | None, new_statuses: Iterable[str] | None) -> bool:
    """True when an update adds Policy Issued to a set that lacked it."""

    if new_statuses is None:
        return False
    return POLICY_ISSUED not in list(previous_statuses or []) and POLICY_ISSUED in list(new_statuses)


def _resolve_product(
    profile: DepartmentProfile, data: dict[str, Any], *, current: Any | None = None
) -> None:
    if "product_type" not in data and "cover_group" not in data:
        return
    product_type = data.get("product_type") or getattr(current, "product_type", None)
    product_type, cover_group = profile.validate_product_type(
        product_type, data.get("cover_group")
    )
    data["product_type"] = product_type
    data["cover_group"] = cover_group


def _prune_nulls(changes: dict[str, Any], nullable: set[str]) -> dict[str, Any]:
    return {k: v for k, v in changes.items() if v is not None or k in nullable}


# Quotations ----------------------------------------------------------------


def create_quotation(
    *,
    db: Session,
    profile: DepartmentProfile,
    data: dict[str, Any],
    user_id: int | None,
    year: int,
    on_confirmed: ConfirmationHandler | None = None,
) -> QuotationWriteResult:
    """Persist a quotation stamped with `year`; cascade when created Confirmed.

    The quotation is committed before the cascade runs. A cascade failure
    surfaces as CascadeError while the quotation stays persisted.
    """

    data = dict(data)
    _resolve_product(profile, data)
    now = datetime.utcnow()

    quotation = models.Quotation(
        department=profile.department,
        created_by=user_id,
        year=int(year),
        last_updated=now,
        **data,
    )
    db.add(quotation)
    db.commit()
    db.refresh(quotation)
    logger.info(
        "quotation_created",
        extra={
            "quotation_id": quotation.id,
            "department": profile.department.value,
            "status": quotation.status.value,
            "year": quotation.year,
        },
    )

    order = None
    if is_confirmation_edge(None, quotation.status):
        order = _dispatch_confirmed(
            db=db, quotation=quotation, year=year, actor_user_id=user_id, handler=on_confirmed
        )
    return QuotationWriteResult(quotation=quotation, order=order)


def update_quotation(
    *,
    db: Session,
    quotation: models.Quotation,
    changes: dict[str, Any],
    year: int,
    actor_user_id: int | None = None,
    on_confirmed: ConfirmationHandler | None = None,
) -> QuotationWriteResult:
    """Apply a partial update; cascade only on a transition into Confirmed."""

    previous_status = quotation.status
    changes = _prune_nulls(dict(changes), _NULLABLE_QUOTATION_FIELDS)
    _resolve_product(get_profile(quotation.department), changes, current=quotation)

    for key, value in changes.items():
        setattr(quotation, key, value)
    quotation.last_updated = datetime.utcnow()

    db.add(quotation)
    db.commit()
    db.refresh(quotation)

    order = None
    if is_confirmation_edge(previous_status, quotation.status):
        order = _dispatch_confirmed(
            db=db,
            quotation=quotation,
            year=year,
            actor_user_id=actor_user_id,
            handler=on_confirmed,
        )
    return QuotationWriteResult(quotation=quotation, order=order)


def delete_quotation(*, db: Session, quotation: models.Quotation) -> None:
    # Orders derived from this quotation stay; they just lose the back-reference.
    db.query(models.Order).filter(models.Order.quotation_id == quotation.id).update(
        {models.Order.quotation_id: None}, synchronize_session=False
    )
    db.delete(quotation)
    db.commit()


def bulk_delete_quotations(
    *, db: Session, department: Department, ids: Iterable[int]
) -> BulkDeleteResult:
    """Delete each id independently; earlier deletions stay if a later one fails."""

    result = BulkDeleteResult()
    for quotation_id in ids:
        quotation = db.get(models.Quotation, int(quotation_id))
        if quotation is None or quotation.department != department:
            result.missing_ids.append(int(quotation_id))
            continue
        delete_quotation(db=db, quotation=quotation)
        result.deleted_ids.append(int(quotation_id))
    return result


# Cascade -------------------------------------------------------------------


def _dispatch_confirmed(
    *,
    db: Session,
    quotation: models.Quotation,
    year: int,
    actor_user_id: int | None,
    handler: ConfirmationHandler | None,
) -> models.Order:
    event = QuotationConfirmed(
        quotation_id=quotation.id,
        department=quotation.department,
        year=int(year),
        actor_user_id=actor_user_id,
    )
    logger.info(
        "quotation_confirmed",
        extra={"quotation_id": event.quotation_id, "department": event.department.value},
    )
    return (handler or handle_quotation_confirmed)(db=db, event=event)


def handle_quotation_confirmed(*, db: Session, event: QuotationConfirmed) -> models.Order:
    """Cascade handler: derive the firm order for a confirmed quotation.

    Failure policy:
    - only the order write is rolled back; the quotation stays Confirmed
    - the error is re-raised as CascadeError, never retried
    """

    quotation = db.get(models.Quotation, event.quotation_id)
    if quotation is None:
        raise CascadeError(event.quotation_id, "quotation no longer exists")
    try:
        return create_firm_order_from_quotation(db=db, quotation=quotation, year=event.year)
    except Exception as exc:
        db.rollback()
        logger.error(
            "cascade_failed",
            extra={"quotation_id": event.quotation_id, "error": str(exc)},
        )
        raise CascadeError(event.quotation_id, str(exc)) from exc


def create_firm_order_from_quotation(
    *, db: Session, quotation: models.Quotation, year: int
) -> models.Order:
    """Create the New Business firm order for a confirmed quotation.

    The order takes the active `year` passed in, not the quotation's own year.
    """

    order = models.Order(
        department=quotation.department,
        quotation_id=quotation.id,
        broker_name=quotation.broker_name,
        insured_name=quotation.insured_name,
        product_type=quotation.product_type,
        cover_group=quotation.cover_group,
        business_type=BusinessType.new_business,
        premium=quotation.estimated_premium,
        currency=quotation.currency,
        order_date=datetime.utcnow(),
        statuses=list(FIRM_ORDER_INITIAL_STATUSES),
        notes=quotation.notes,
        requires_pre_condition_survey=bool(quotation.requires_pre_condition_survey),
        created_by=quotation.created_by,
        year=int(year),
        last_updated=datetime.utcnow(),
    )
    db.add(order)
    db.flush()
    db.add(
        models.StatusLog(
            order_id=order.id,
            statuses=list(order.statuses),
            timestamp=datetime.utcnow(),
            notes=order.notes,
        )
    )
    db.commit()
    db.refresh(order)
    logger.info(
        "firm_order_created",
        extra={"order_id": order.id, "quotation_id": quotation.id, "year": order.year},
    )
    return order


def find_unreconciled_confirmations(
    db: Session, *, year: int, department: Department | None = None
) -> list[models.Quotation]:
    """Confirmed quotations of `year` that no order points back to."""

    has_order = exists().where(models.Order.quotation_id == models.Quotation.id)
    q = (
        db.query(models.Quotation)
        .filter(models.Quotation.year == int(year))
        .filter(models.Quotation.status == QuotationStatus.confirmed)
        .filter(~has_order)
    )
    if department is not None:
        q = q.filter(models.Quotation.department == department)
    return q.order_by(models.Quotation.id.asc()).all()


def reconcile_quotation(
    *, db: Session, quotation: models.Quotation, year: int, actor_user_id: int | None = None
) -> models.Order:
    """Run the cascade once for a Confirmed quotation left without its order."""

    if quotation.status != QuotationStatus.confirmed:
        raise ValueError("quotation_not_confirmed")
    existing = (
        db.query(models.Order.id).filter(models.Order.quotation_id == quotation.id).first()
    )
    if existing is not None:
        raise ValueError("order_already_exists")
    return handle_quotation_confirmed(
        db=db,
        event=QuotationConfirmed(
            quotation_id=quotation.id,
            department=quotation.department,
            year=int(year),
            actor_user_id=actor_user_id,
        ),
    )


# Orders --------------------------------------------------------------------


def create_order(
    *,
    db: Session,
    profile: DepartmentProfile,
    data: dict[str, Any],
    user_id: int | None,
    year: int,
) -> models.Order:
    """Persist an order stamped with `year` plus its initial status log."""

    data = dict(data)
    _resolve_product(profile, data)
    if not data.get("statuses"):
        data["statuses"] = list(FIRM_ORDER_INITIAL_STATUSES)
    if data.get("order_date") is None:
        data.pop("order_date", None)

    order = models.Order(
        department=profile.department,
        created_by=user_id,
        year=int(year),
        last_updated=datetime.utcnow(),
        **data,
    )
    db.add(order)
    db.flush()
    db.add(
        models.StatusLog(
            order_id=order.id,
            statuses=list(order.statuses),
            timestamp=datetime.utcnow(),
            notes=order.notes,
        )
    )
    db.commit()
    db.refresh(order)
    logger.info(
        "order_created",
        extra={"order_id": order.id, "department": profile.department.value, "year": order.year},
    )
    return order


def update_order(
    *, db: Session, order: models.Order, changes: dict[str, Any]
) -> OrderUpdateResult:
    """Merge only the provided fields.

    A status log row is written only when `statuses` is part of `changes`;
    its notes come from the same payload.
    """

    changes = _prune_nulls(dict(changes), _NULLABLE_ORDER_FIELDS)
    _resolve_product(get_profile(order.department), changes, current=order)

    for key, value in changes.items():
        setattr(order, key, value)
    order.last_updated = datetime.utcnow()
    db.add(order)

    log = None
    if "statuses" in changes:
        log = models.StatusLog(
            order_id=order.id,
            statuses=list(order.statuses),
            timestamp=datetime.utcnow(),
            notes=changes.get("notes") or None,
        )
        db.add(log)

    db.commit()
    db.refresh(order)
    if log is not None:
        db.refresh(log)
        logger.info(
            "order_status_logged",
            extra={"order_id": order.id, "statuses": list(order.statuses)},
        )
    return OrderUpdateResult(order=order, status_log=log)


def delete_order(*, db: Session, order: models.Order) -> None:
    # status_logs cascade through the relationship.
    db.delete(order)
    db.commit()


def bulk_delete_orders(
    *, db: Session, department: Department, ids: Iterable[int]
) -> BulkDeleteResult:
    """Delete each id independently; earlier deletions stay if a later one fails."""

    result = BulkDeleteResult()
    for order_id in ids:
        order = db.get(models.Order, int(order_id))
        if order is None or order.department != department:
            result.missing_ids.append(int(order_id))
            continue
        delete_order(db=db, order=order)
        result.deleted_ids.append(int(order_id))
    return result


def get_order_logs(db: Session, order_id: int) -> list[models.StatusLog]:
    return (
        db.query(models.StatusLog)
        .filter(models.StatusLog.order_id == int(order_id))
        .order_by(models.StatusLog.timestamp.asc(), models.StatusLog.id.asc())
        .all()
    )
