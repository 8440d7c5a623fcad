from datetime import datetime

import pytest

from brokerage import models
from brokerage.models.domain import FIRM_ORDER_INITIAL_STATUSES, POLICY_ISSUED, Department
from brokerage.services import lifecycle
from brokerage.services.departments import LIABILITY_FINANCIAL, MARINE


def _create_order(db, *, profile=MARINE, **overrides):
    data = {
        "broker_name": "Gulf Brokers",
        "insured_name": "Acme Shipping LLC",
        "product_type": "Marine Open Cover",
        "premium": 5000.0,
        "order_date": datetime(2025, 4, 2, 11, 0),
    }
    data.update(overrides)
    return lifecycle.create_order(db=db, profile=profile, data=data, user_id=None, year=2025)


def test_create_order_defaults_statuses_and_logs_initial_state(db_session):
    order = _create_order(db_session, notes="From broker email")

    assert order.statuses == FIRM_ORDER_INITIAL_STATUSES
    logs = lifecycle.get_order_logs(db_session, order.id)
    assert [log.statuses for log in logs] == [FIRM_ORDER_INITIAL_STATUSES]
    assert logs[0].notes == "From broker email"


def test_status_change_appends_log_with_payload_notes(db_session):
    order = _create_order(db_session)

    result = lifecycle.update_order(
        db=db_session,
        order=order,
        changes={"statuses": ["Firm Order Received", "KYC Completed"], "notes": "KYC docs in"},
    )

    assert result.status_log is not None
    logs = lifecycle.get_order_logs(db_session, order.id)
    assert len(logs) == 2
    assert logs[-1].statuses == ["Firm Order Received", "KYC Completed"]
    assert logs[-1].notes == "KYC docs in"


def test_update_without_statuses_writes_no_log(db_session):
    order = _create_order(db_session)

    result = lifecycle.update_order(db=db_session, order=order, changes={"premium": 7500.0})

    assert result.status_log is None
    assert result.order.premium == 7500.0
    assert len(lifecycle.get_order_logs(db_session, order.id)) == 1


def test_status_log_without_notes_stores_none(db_session):
    order = _create_order(db_session, notes="Original")

    lifecycle.update_order(
        db=db_session, order=order, changes={"statuses": ["Firm Order Received", "COI Issued"]}
    )

    logs = lifecycle.get_order_logs(db_session, order.id)
    assert logs[-1].notes is None
    assert order.notes == "Original"


def test_duplicate_tags_collapse_and_unknown_tags_fail(db_session):
    order = _create_order(db_session, statuses=["COI Issued", "COI Issued"])
    assert order.statuses == ["COI Issued"]

    with pytest.raises(ValueError, match="Unknown order status"):
        lifecycle.update_order(db=db_session, order=order, changes={"statuses": ["Shipped"]})
    db_session.rollback()

    with pytest.raises(ValueError, match="at least one status"):
        lifecycle.update_order(db=db_session, order=order, changes={"statuses": []})


def test_has_moved_to_closed():
    assert lifecycle.has_moved_to_closed(FIRM_ORDER_INITIAL_STATUSES, [POLICY_ISSUED])
    assert not lifecycle.has_moved_to_closed([POLICY_ISSUED], [POLICY_ISSUED, "COI Issued"])
    assert not lifecycle.has_moved_to_closed(FIRM_ORDER_INITIAL_STATUSES, None)
    assert not lifecycle.has_moved_to_closed(FIRM_ORDER_INITIAL_STATUSES, ["COI Issued"])


def test_policy_issued_closes_order(db_session):
    order = _create_order(db_session)
    lifecycle.update_order(
        db=db_session, order=order, changes={"statuses": ["COI Issued", POLICY_ISSUED]}
    )
    assert order.is_closed


def test_delete_order_removes_its_logs(db_session):
    order = _create_order(db_session)
    lifecycle.update_order(db=db_session, order=order, changes={"statuses": ["COI Issued"]})
    order_id = order.id

    lifecycle.delete_order(db=db_session, order=order)

    assert db_session.get(models.Order, order_id) is None
    assert lifecycle.get_order_logs(db_session, order_id) == []


def test_bulk_delete_reports_missing_and_foreign_ids(db_session):
    first = _create_order(db_session)
    second = _create_order(db_session, insured_name="Blue Dhow Co")
    other_department = _create_order(
        db_session,
        profile=LIABILITY_FINANCIAL,
        product_type="Cyber Liability Insurance",
    )

    result = lifecycle.bulk_delete_orders(
        db=db_session,
        department=Department.marine,
        ids=[first.id, 9999, second.id, other_department.id],
    )

    assert result.deleted_ids == [first.id, second.id]
    assert result.missing_ids == [9999, other_department.id]
    assert db_session.get(models.Order, other_department.id) is not None
