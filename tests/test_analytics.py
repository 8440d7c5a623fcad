from datetime import date, datetime

import pytest

from brokerage import models
from brokerage.models.domain import BusinessType, Currency, Department, QuotationStatus
from brokerage.services import analytics, lifecycle
from brokerage.services.departments import LIABILITY_FINANCIAL, MARINE, PROPERTY_ENGINEERING


def _quotation(status=QuotationStatus.open, *, broker="Gulf Brokers", product="Jetski",
               premium=100.0, currency=Currency.AED, when=datetime(2025, 3, 5, 10, 0)):
    return models.Quotation(
        department=Department.marine,
        broker_name=broker,
        insured_name="Acme",
        product_type=product,
        estimated_premium=premium,
        currency=currency,
        quotation_date=when,
        status=status,
        year=2025,
    )


def _order(*, broker="Gulf Brokers", product="Jetski", premium=100.0,
           business_type=BusinessType.new_business, currency=Currency.AED,
           when=datetime(2025, 3, 5, 10, 0)):
    return models.Order(
        department=Department.marine,
        broker_name=broker,
        insured_name="Acme",
        product_type=product,
        premium=premium,
        currency=currency,
        business_type=business_type,
        order_date=when,
        statuses=["Firm Order Received"],
        year=2025,
    )


def test_hit_ratio_formats_two_decimals_and_handles_zero():
    assert analytics.hit_ratio(0, 0) == "0.00"
    assert analytics.hit_ratio(1, 3) == "33.33"
    assert analytics.hit_ratio(2, 2) == "100.00"


def test_primary_currency_majority_then_catalogue_order():
    assert analytics.primary_currency() == "AED"
    assert analytics.primary_currency(
        [_quotation(currency=Currency.USD), _quotation(currency=Currency.USD)],
        [_order(currency=Currency.AED)],
    ) == "USD"
    assert analytics.primary_currency([_quotation(currency=Currency.EUR)], [_order(currency=Currency.USD)]) == "USD"


def test_time_series_zero_fills_default_window():
    points = analytics.time_series([], [], today=date(2025, 3, 31))

    assert len(points) == analytics.DEFAULT_WINDOW_DAYS
    assert points[0].date == "2025-03-02"
    assert points[-1].date == "2025-03-31"
    assert all(p.new_quotations == 0 and p.premium == 0.0 for p in points)


def test_time_series_buckets_by_calendar_day():
    quotations = [
        _quotation(when=datetime(2025, 3, 5, 23, 59)),
        _quotation(QuotationStatus.confirmed, when=datetime(2025, 3, 5, 8, 0)),
        _quotation(when=datetime(2025, 2, 1)),
    ]
    orders = [_order(premium=250.5, when=datetime(2025, 3, 6, 1, 0))]

    points = analytics.time_series(
        quotations, orders, start=date(2025, 3, 5), end=date(2025, 3, 7)
    )

    assert [p.date for p in points] == ["2025-03-05", "2025-03-06", "2025-03-07"]
    assert points[0].new_quotations == 2
    assert points[0].confirmed_quotations == 1
    assert points[1].premium == 250.5
    assert points[2].new_quotations == 0


def test_time_series_rejects_inverted_or_oversized_window():
    # A start after today with no end resolves to an inverted window.
    with pytest.raises(ValueError, match="Start date cannot be after end date"):
        analytics.time_series([], [], start=date(2025, 4, 10), today=date(2025, 3, 31))

    with pytest.raises(ValueError, match="cannot exceed"):
        analytics.time_series([], [], start=date(1, 1, 2), end=date(2025, 1, 1))

    full_year = analytics.time_series([], [], start=date(2024, 1, 1), end=date(2024, 12, 31))
    assert len(full_year) == analytics.MAX_WINDOW_DAYS


def test_overview_conversion_ignores_declined():
    quotations = [
        _quotation(QuotationStatus.open),
        _quotation(QuotationStatus.confirmed),
        _quotation(QuotationStatus.decline),
        _quotation(QuotationStatus.decline),
    ]
    orders = [
        _order(premium=300.0),
        _order(premium=100.0, business_type=BusinessType.renewal),
    ]

    result = analytics.overview(quotations, orders)

    assert result.total_quotations == 4
    assert result.conversion_rate == "50.00"
    assert result.avg_estimated_premium == 100.0
    assert result.total_premium == 400.0
    assert result.new_business_count == 1
    assert result.renewal_premium == 100.0


def test_broker_and_product_rows():
    quotations = [
        _quotation(QuotationStatus.confirmed, broker="A", product="Jetski"),
        _quotation(QuotationStatus.decline, broker="A", product="P&I"),
        _quotation(broker="B", product="Jetski"),
    ]
    orders = [_order(broker="A", product="Jetski", premium=500.0)]

    brokers = analytics.broker_analytics(quotations, orders)
    assert [b.name for b in brokers] == ["A", "B"]
    assert brokers[0].hit_ratio == "50.00"
    assert brokers[0].orders_count == 1
    assert brokers[0].premium == 500.0
    assert brokers[1].hit_ratio == "0.00"

    products = analytics.product_analytics(quotations, orders)
    jetski = next(p for p in products if p.name == "Jetski")
    assert jetski.quotations_count == 2
    assert jetski.avg_premium == 500.0


def _seed_insured(db):
    lifecycle.create_quotation(
        db=db,
        profile=MARINE,
        data={
            "broker_name": "Gulf Brokers",
            "insured_name": "Acme",
            "product_type": "Jetski",
            "estimated_premium": 1000.0,
            "currency": Currency.USD,
            "quotation_date": datetime(2025, 3, 5),
            "status": QuotationStatus.confirmed,
        },
        user_id=None,
        year=2025,
    )
    lifecycle.create_order(
        db=db,
        profile=PROPERTY_ENGINEERING,
        data={
            "broker_name": "Desert Re",
            "insured_name": "Acme",
            "product_type": "FIRE & PERILS",
            "business_type": BusinessType.renewal,
            "premium": 2000.0,
            "currency": Currency.USD,
            "order_date": datetime(2025, 3, 6),
            "statuses": ["Policy Issued"],
        },
        user_id=None,
        year=2025,
    )
    lifecycle.create_quotation(
        db=db,
        profile=LIABILITY_FINANCIAL,
        data={
            "broker_name": "Desert Re",
            "insured_name": "acme",
            "product_type": "Cyber Liability Insurance",
            "estimated_premium": 50.0,
            "quotation_date": datetime(2025, 3, 6),
        },
        user_id=None,
        year=2025,
    )


def test_insured_summary_rolls_up_every_department(db_session):
    _seed_insured(db_session)

    summary = analytics.insured_summary(db_session, year=2025, insured_name="Acme")

    assert [d.department for d in summary.departments] == [d.value for d in Department]
    marine, pe, lf = summary.departments
    assert marine.quotations.confirmed == 1
    assert marine.orders.total == 1
    assert pe.orders.renewal == 1
    assert pe.orders.renewal_premium == 2000.0
    # Name matching is exact.
    assert lf.quotations.total == 0
    assert summary.totals.orders.total == 2
    assert summary.totals.orders.total_premium == 3000.0
    assert summary.primary_currency == "USD"


def test_insured_names_are_distinct_across_departments(db_session):
    _seed_insured(db_session)

    assert analytics.list_insured_names(db_session, year=2025) == ["Acme", "acme"]
    assert analytics.list_insured_names(db_session, year=2024) == []


def test_management_dashboard_applies_filters(db_session):
    _seed_insured(db_session)

    dashboard = analytics.management_dashboard(
        db_session,
        year=2025,
        filters=analytics.ManagementFilters(department=Department.marine, broker="Gulf Brokers"),
        today=date(2025, 3, 31),
    )

    assert dashboard.department == Department.marine.value
    assert dashboard.overview.total_quotations == 1
    assert dashboard.overview.total_orders_count == 1
    assert len(dashboard.time_series) == 30
    assert [b.name for b in dashboard.brokers] == ["Gulf Brokers"]

    none = analytics.management_dashboard(
        db_session,
        year=2025,
        filters=analytics.ManagementFilters(department=Department.marine, broker="Nobody"),
        today=date(2025, 3, 31),
    )
    assert none.overview.total_quotations == 0
    assert none.overview.conversion_rate == "0.00"


def test_analyze_quotations_errors_and_result(db_session):
    with pytest.raises(ValueError, match="Start date cannot be after end date"):
        analytics.analyze_quotations(
            db_session,
            department=Department.marine,
            year=2025,
            start=date(2025, 4, 1),
            end=date(2025, 3, 1),
        )
    with pytest.raises(LookupError):
        analytics.analyze_quotations(db_session, department=Department.marine, year=2025)

    _seed_insured(db_session)
    analysis = analytics.analyze_quotations(db_session, department=Department.marine, year=2025)
    assert analysis.hit_ratio == "100.00"
    assert analysis.top_brokers[0].name == "Gulf Brokers"
