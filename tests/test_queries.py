from datetime import date, datetime

from brokerage import models
from brokerage.models.domain import POLICY_ISSUED, BusinessType, Department, QuotationStatus
from brokerage.services import lifecycle, queries
from brokerage.services.departments import MARINE


def _order(statuses):
    return models.Order(
        department=Department.marine,
        broker_name="B",
        insured_name="I",
        product_type="Jetski",
        premium=1.0,
        statuses=statuses,
        year=2025,
    )


def _create_order(db, *, year=2025, **overrides):
    data = {
        "broker_name": "Gulf Brokers",
        "insured_name": "Acme Shipping LLC",
        "product_type": "Marine Open Cover",
        "premium": 1000.0,
        "order_date": datetime(2025, 5, 1, 10, 0),
    }
    data.update(overrides)
    return lifecycle.create_order(db=db, profile=MARINE, data=data, user_id=None, year=year)


def _create_quotation(db, *, year=2025, **overrides):
    data = {
        "broker_name": "Gulf Brokers",
        "insured_name": "Acme Shipping LLC",
        "product_type": "Marine Open Cover",
        "estimated_premium": 1000.0,
        "quotation_date": datetime(2025, 5, 1, 10, 0),
    }
    data.update(overrides)
    return lifecycle.create_quotation(
        db=db, profile=MARINE, data=data, user_id=None, year=year
    ).quotation


def test_filter_orders_by_status_rules():
    open_kyc = _order(["Firm Order Received", "KYC Pending"])
    open_coi = _order(["COI Issued"])
    closed_kyc = _order(["KYC Pending", POLICY_ISSUED])
    rows = [open_kyc, open_coi, closed_kyc]

    assert queries.filter_orders_by_status(rows, status=None) == [open_kyc, open_coi]
    assert queries.filter_orders_by_status(rows, status=POLICY_ISSUED) == [closed_kyc]
    # A closed order never matches a non-closing tag even when it carries it.
    assert queries.filter_orders_by_status(rows, status="KYC Pending") == [open_kyc]
    assert queries.filter_orders_by_status(rows, status="KYC Pending", include_all=True) == rows


def test_default_listing_excludes_closed_orders(db_session):
    open_order = _create_order(db_session)
    closed = _create_order(db_session, statuses=["COI Issued", POLICY_ISSUED])

    assert [o.id for o in queries.list_orders(db_session, department=Department.marine, year=2025)] == [
        open_order.id
    ]
    assert [
        o.id for o in queries.list_closed_orders(db_session, department=Department.marine, year=2025)
    ] == [closed.id]


def test_listings_are_partitioned_by_year(db_session):
    _create_order(db_session, year=2024, insured_name="Old Co")
    current = _create_order(db_session, year=2025)
    _create_quotation(db_session, year=2024, insured_name="Old Co")
    quotation = _create_quotation(db_session, year=2025)

    orders = queries.list_orders(db_session, department=Department.marine, year=2025)
    quotations = queries.list_quotations(db_session, department=Department.marine, year=2025)

    assert [o.id for o in orders] == [current.id]
    assert [q.id for q in quotations] == [quotation.id]


def test_date_range_compares_calendar_days_inclusively(db_session):
    late_evening = _create_quotation(db_session, quotation_date=datetime(2025, 3, 31, 23, 59))
    early_morning = _create_quotation(db_session, quotation_date=datetime(2025, 3, 1, 0, 1))
    _create_quotation(db_session, quotation_date=datetime(2025, 4, 1, 0, 0))

    rows = queries.list_quotations_in_date_range(
        db_session,
        department=Department.marine,
        year=2025,
        start=date(2025, 3, 1),
        end=date(2025, 3, 31),
    )

    assert {q.id for q in rows} == {late_evening.id, early_morning.id}


def test_quotation_status_filter_is_exact(db_session):
    _create_quotation(db_session)
    declined = _create_quotation(
        db_session, status=QuotationStatus.decline, decline_reason="Too expensive"
    )

    rows = queries.list_quotations_in_date_range(
        db_session, department=Department.marine, year=2025, status=QuotationStatus.decline
    )
    assert [q.id for q in rows] == [declined.id]


def test_business_type_filter_with_include_all(db_session):
    renewal_closed = _create_order(
        db_session, business_type=BusinessType.renewal, statuses=[POLICY_ISSUED]
    )
    _create_order(db_session)

    rows = queries.list_orders_in_date_range(
        db_session,
        department=Department.marine,
        year=2025,
        include_all=True,
        business_type=BusinessType.renewal,
    )
    assert [o.id for o in rows] == [renewal_closed.id]


def test_list_by_ids_stays_inside_department_and_year(db_session):
    wanted = _create_order(db_session)
    other_year = _create_order(db_session, year=2024)

    rows = queries.list_orders_by_ids(
        db_session, department=Department.marine, year=2025, ids=[wanted.id, other_year.id]
    )
    assert [o.id for o in rows] == [wanted.id]
    assert queries.list_orders_by_ids(
        db_session, department=Department.marine, year=2025, ids=[]
    ) == []
