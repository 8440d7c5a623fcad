from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from brokerage import models
from brokerage.models.domain import BusinessType, Currency, Department, QuotationStatus
from brokerage.services import queries

DEFAULT_WINDOW_DAYS = 30
MAX_WINDOW_DAYS = 366


def to_float(value) -> float:
    """Parse a stored premium; anything unparseable counts as zero."""

    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _sum_premium(orders: Iterable[models.Order]) -> float:
    return sum(to_float(o.premium) for o in orders)


def _avg(total: float, count: int) -> float:
    return round(total / count, 2) if count else 0.0


def hit_ratio(confirmed: int, total: int) -> str:
    """Confirmed / total as a percentage string with two decimals."""

    if total <= 0:
        return "0.00"
    return f"{confirmed / total * 100:.2f}"


def primary_currency(
    quotations: Iterable[models.Quotation] = (), orders: Iterable[models.Order] = ()
) -> str:
    """Most frequent currency across the records; ties go to catalogue order."""

    counts: Counter[str] = Counter()
    for record in list(quotations) + list(orders):
        cur = getattr(record.currency, "value", record.currency)
        if cur:
            counts[str(cur)] += 1
    if not counts:
        return Currency.AED.value
    order = [c.value for c in Currency]
    return max(
        counts,
        key=lambda c: (counts[c], -(order.index(c) if c in order else len(order))),
    )


def _status_counts(quotations: Sequence[models.Quotation]) -> tuple[int, int, int]:
    open_ = sum(1 for q in quotations if q.status == QuotationStatus.open)
    confirmed = sum(1 for q in quotations if q.status == QuotationStatus.confirmed)
    declined = sum(1 for q in quotations if q.status == QuotationStatus.decline)
    return open_, confirmed, declined


def _distinct(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


# Per-insured cross-department rollup --------------------------------------


@dataclass
class QuotationMetrics:
    total: int = 0
    open: int = 0
    confirmed: int = 0
    declined: int = 0
    estimated_premium: float = 0.0


@dataclass
class OrderMetrics:
    total: int = 0
    new_business: int = 0
    renewal: int = 0
    total_premium: float = 0.0
    new_business_premium: float = 0.0
    renewal_premium: float = 0.0


@dataclass
class DepartmentMetrics:
    department: str
    quotations: QuotationMetrics = field(default_factory=QuotationMetrics)
    orders: OrderMetrics = field(default_factory=OrderMetrics)


@dataclass
class TotalsMetrics:
    quotations: QuotationMetrics = field(default_factory=QuotationMetrics)
    orders: OrderMetrics = field(default_factory=OrderMetrics)


@dataclass
class InsuredSummary:
    insured_name: str
    departments: List[DepartmentMetrics]
    totals: TotalsMetrics
    primary_currency: str


def _quotation_metrics(quotations: Sequence[models.Quotation]) -> QuotationMetrics:
    open_, confirmed, declined = _status_counts(quotations)
    return QuotationMetrics(
        total=len(quotations),
        open=open_,
        confirmed=confirmed,
        declined=declined,
        estimated_premium=sum(to_float(q.estimated_premium) for q in quotations),
    )


def _order_metrics(orders: Sequence[models.Order]) -> OrderMetrics:
    new_business = [o for o in orders if o.business_type == BusinessType.new_business]
    renewal = [o for o in orders if o.business_type == BusinessType.renewal]
    return OrderMetrics(
        total=len(orders),
        new_business=len(new_business),
        renewal=len(renewal),
        total_premium=_sum_premium(orders),
        new_business_premium=_sum_premium(new_business),
        renewal_premium=_sum_premium(renewal),
    )


def _add_metrics(target, source) -> None:
    for name in target.__dataclass_fields__:
        setattr(target, name, getattr(target, name) + getattr(source, name))


def list_insured_names(db: Session, *, year: int) -> list[str]:
    """Distinct insured names over quotations and all orders (open and closed)."""

    names: set[str] = set()
    for department in Department:
        for q in queries.list_quotations(db, department=department, year=year):
            names.add(q.insured_name)
        for o in queries.list_orders_in_date_range(
            db, department=department, year=year, include_all=True
        ):
            names.add(o.insured_name)
    return sorted(names)


def insured_summary(
    db: Session,
    *,
    year: int,
    insured_name: str,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
) -> InsuredSummary:
    """Per-department and total metrics for one insured (exact, case-sensitive name)."""

    departments: list[DepartmentMetrics] = []
    totals = TotalsMetrics()
    all_quotations: list[models.Quotation] = []
    all_orders: list[models.Order] = []

    for department in Department:
        quotations = [
            q
            for q in queries.list_quotations_in_date_range(
                db, department=department, year=year, start=start, end=end
            )
            if q.insured_name == insured_name
        ]
        orders = [
            o
            for o in queries.list_orders_in_date_range(
                db, department=department, year=year, start=start, end=end, include_all=True
            )
            if o.insured_name == insured_name
        ]
        metrics = DepartmentMetrics(
            department=department.value,
            quotations=_quotation_metrics(quotations),
            orders=_order_metrics(orders),
        )
        _add_metrics(totals.quotations, metrics.quotations)
        _add_metrics(totals.orders, metrics.orders)
        departments.append(metrics)
        all_quotations.extend(quotations)
        all_orders.extend(orders)

    return InsuredSummary(
        insured_name=insured_name,
        departments=departments,
        totals=totals,
        primary_currency=primary_currency(all_quotations, all_orders),
    )


# Management dashboard ------------------------------------------------------


@dataclass
class BrokerAnalyticsRow:
    name: str
    quotations_count: int
    confirmed_count: int
    declined_count: int
    open_count: int
    hit_ratio: str
    orders_count: int
    premium: float


@dataclass
class ProductAnalyticsRow:
    name: str
    quotations_count: int
    confirmed_count: int
    premium: float
    avg_premium: float


@dataclass
class BusinessTypeAnalyticsRow:
    name: str
    count: int
    premium: float
    avg_premium: float


@dataclass
class TimeSeriesPoint:
    date: str
    new_quotations: int = 0
    confirmed_quotations: int = 0
    premium: float = 0.0


@dataclass
class Overview:
    total_quotations: int
    open_quotations: int
    confirmed_quotations: int
    declined_quotations: int
    conversion_rate: str
    avg_estimated_premium: float
    total_orders_count: int
    total_premium: float
    new_business_count: int
    renewal_count: int
    new_business_premium: float
    renewal_premium: float


def broker_analytics(
    quotations: Sequence[models.Quotation], orders: Sequence[models.Order]
) -> list[BrokerAnalyticsRow]:
    """One row per broker appearing in `quotations`, in first-seen order."""

    rows: list[BrokerAnalyticsRow] = []
    for broker in _distinct(q.broker_name for q in quotations):
        broker_quotations = [q for q in quotations if q.broker_name == broker]
        broker_orders = [o for o in orders if o.broker_name == broker]
        open_, confirmed, declined = _status_counts(broker_quotations)
        rows.append(
            BrokerAnalyticsRow(
                name=broker,
                quotations_count=len(broker_quotations),
                confirmed_count=confirmed,
                declined_count=declined,
                open_count=open_,
                hit_ratio=hit_ratio(confirmed, len(broker_quotations)),
                orders_count=len(broker_orders),
                premium=round(_sum_premium(broker_orders), 2),
            )
        )
    return rows


def product_analytics(
    quotations: Sequence[models.Quotation], orders: Sequence[models.Order]
) -> list[ProductAnalyticsRow]:
    rows: list[ProductAnalyticsRow] = []
    for product in _distinct(q.product_type for q in quotations):
        product_quotations = [q for q in quotations if q.product_type == product]
        product_orders = [o for o in orders if o.product_type == product]
        premium = _sum_premium(product_orders)
        rows.append(
            ProductAnalyticsRow(
                name=product,
                quotations_count=len(product_quotations),
                confirmed_count=sum(
                    1 for q in product_quotations if q.status == QuotationStatus.confirmed
                ),
                premium=round(premium, 2),
                avg_premium=_avg(premium, len(product_orders)),
            )
        )
    return rows


def business_type_analytics(orders: Sequence[models.Order]) -> list[BusinessTypeAnalyticsRow]:
    rows: list[BusinessTypeAnalyticsRow] = []
    for business_type in _distinct(o.business_type.value for o in orders):
        typed = [o for o in orders if o.business_type.value == business_type]
        premium = _sum_premium(typed)
        rows.append(
            BusinessTypeAnalyticsRow(
                name=business_type,
                count=len(typed),
                premium=round(premium, 2),
                avg_premium=_avg(premium, len(typed)),
            )
        )
    return rows


def resolve_window(
    start: date | None, end: date | None, *, today: date | None = None
) -> tuple[date, date]:
    """Default window: the DEFAULT_WINDOW_DAYS days ending at `end` (or today).

    Raises ValueError when start falls after end or the window spans more
    than MAX_WINDOW_DAYS days.
    """

    end_d = end or today or date.today()
    start_d = start or (end_d - timedelta(days=DEFAULT_WINDOW_DAYS - 1))
    if start_d > end_d:
        raise ValueError("Start date cannot be after end date")
    if (end_d - start_d).days + 1 > MAX_WINDOW_DAYS:
        raise ValueError(f"Date range cannot exceed {MAX_WINDOW_DAYS} days")
    return start_d, end_d



def time_series(
    quotations: Sequence[models.Quotation],
    orders: Sequence[models.Order],
    *,
    start: date | None = None,
    end: date | None = None,
    today: date | None = None,
) -> list[TimeSeriesPoint]:
    """Day-by-day activity with every day of the window present."""

    start_d, end_d = resolve_window(start, end, today=today)
    points: dict[str, TimeSeriesPoint] = {}
    day = start_d
    while day <= end_d:
        key = day.isoformat()
        points[key] = TimeSeriesPoint(date=key)
        day += timedelta(days=1)

    for q in quotations:
        if q.quotation_date is None:
            continue
        point = points.get(q.quotation_date.date().isoformat())
        if point is None:
            continue
        point.new_quotations += 1
        if q.status == QuotationStatus.confirmed:
            point.confirmed_quotations += 1

    for o in orders:
        if o.order_date is None:
            continue
        point = points.get(o.order_date.date().isoformat())
        if point is not None:
            point.premium = round(point.premium + to_float(o.premium), 2)

    return list(points.values())


def overview(quotations: Sequence[models.Quotation], orders: Sequence[models.Order]) -> Overview:
    open_, confirmed, declined = _status_counts(quotations)
    new_business = [o for o in orders if o.business_type == BusinessType.new_business]
    renewal = [o for o in orders if o.business_type == BusinessType.renewal]
    # Dashboard conversion ignores declined quotations.
    decided = open_ + confirmed
    return Overview(
        total_quotations=len(quotations),
        open_quotations=open_,
        confirmed_quotations=confirmed,
        declined_quotations=declined,
        conversion_rate=hit_ratio(confirmed, decided),
        avg_estimated_premium=_avg(
            sum(to_float(q.estimated_premium) for q in quotations), len(quotations)
        ),
        total_orders_count=len(orders),
        total_premium=round(_sum_premium(orders), 2),
        new_business_count=len(new_business),
        renewal_count=len(renewal),
        new_business_premium=round(_sum_premium(new_business), 2),
        renewal_premium=round(_sum_premium(renewal), 2),
    )


@dataclass
class ManagementFilters:
    department: Department
    start: Optional[date] = None
    end: Optional[date] = None
    broker: Optional[str] = None
    product: Optional[str] = None
    business_type: Optional[BusinessType] = None


@dataclass
class ManagementDataset:
    quotations: list[models.Quotation]
    orders: list[models.Order]


def _wanted(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return None if not s or s.lower() == "all" else s


def load_management_dataset(
    db: Session, *, year: int, filters: ManagementFilters
) -> ManagementDataset:
    """Quotations and all orders (open and closed) matching the report filters."""

    broker = _wanted(filters.broker)
    product = _wanted(filters.product)

    quotations = queries.list_quotations_in_date_range(
        db, department=filters.department, year=year, start=filters.start, end=filters.end
    )
    orders = queries.list_orders_in_date_range(
        db,
        department=filters.department,
        year=year,
        start=filters.start,
        end=filters.end,
        include_all=True,
        business_type=filters.business_type,
    )
    quotations = [
        q
        for q in quotations
        if (broker is None or q.broker_name == broker)
        and (product is None or q.product_type == product)
    ]
    orders = [
        o
        for o in orders
        if (broker is None or o.broker_name == broker)
        and (product is None or o.product_type == product)
    ]
    return ManagementDataset(quotations=quotations, orders=orders)


@dataclass
class ManagementDashboard:
    department: str
    primary_currency: str
    overview: Overview
    brokers: list[BrokerAnalyticsRow]
    products: list[ProductAnalyticsRow]
    business_types: list[BusinessTypeAnalyticsRow]
    time_series: list[TimeSeriesPoint]


def management_dashboard(
    db: Session, *, year: int, filters: ManagementFilters, today: date | None = None
) -> ManagementDashboard:
    data = load_management_dataset(db, year=year, filters=filters)
    return ManagementDashboard(
        department=filters.department.value,
        primary_currency=primary_currency(data.quotations, data.orders),
        overview=overview(data.quotations, data.orders),
        brokers=broker_analytics(data.quotations, data.orders),
        products=product_analytics(data.quotations, data.orders),
        business_types=business_type_analytics(data.orders),
        time_series=time_series(
            data.quotations, data.orders, start=filters.start, end=filters.end, today=today
        ),
    )


# Quotation analysis ---------------------------------------------------------


@dataclass
class QuotationAnalysis:
    department: str
    start: Optional[str]
    end: Optional[str]
    primary_currency: str
    overview: Overview
    hit_ratio: str
    top_brokers: list[BrokerAnalyticsRow]
    top_products: list[ProductAnalyticsRow]
    business_types: list[BusinessTypeAnalyticsRow]


def analyze_quotations(
    db: Session,
    *,
    department: Department,
    year: int,
    start: date | None = None,
    end: date | None = None,
    top_n: int = 5,
) -> QuotationAnalysis:
    """Statistical read-out over a date range; raises LookupError when empty."""

    if start is not None and end is not None and start > end:
        raise ValueError("Start date cannot be after end date")

    quotations = queries.list_quotations_in_date_range(
        db, department=department, year=year, start=start, end=end
    )
    orders = queries.list_orders_in_date_range(
        db, department=department, year=year, start=start, end=end, include_all=True
    )
    if not quotations and not orders:
        raise LookupError("No data found in the specified date range")

    _, confirmed, _ = _status_counts(quotations)
    brokers = sorted(
        broker_analytics(quotations, orders), key=lambda r: (-r.quotations_count, r.name)
    )
    products = sorted(product_analytics(quotations, orders), key=lambda r: (-r.premium, r.name))
    return QuotationAnalysis(
        department=department.value,
        start=start.isoformat() if start else None,
        end=end.isoformat() if end else None,
        primary_currency=primary_currency(quotations, orders),
        overview=overview(quotations, orders),
        hit_ratio=hit_ratio(confirmed, len(quotations)),
        top_brokers=brokers[:top_n],
        top_products=products[:top_n],
        business_types=business_type_analytics(orders),
    )
