from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Iterable, Optional

from brokerage import models
from brokerage.models.domain import QuotationStatus

QUOTATION_HEADERS = [
    "Broker Name",
    "Insured Name",
    "Product Type",
    "Estimated Premium",
    "Quotation Date",
    "Status",
    "Decline Reason",
    "Notes",
    "Last Updated",
]

ORDER_HEADERS = [
    "Broker Name",
    "Insured Name",
    "Product Type",
    "Business Type",
    "Premium",
    "Order Date",
    "Statuses",
    "Notes",
    "Last Updated",
]

COVER_GROUP_HEADER = "Cover Group"


def format_day(value: date | datetime | None) -> str:
    """dd/mm/yyyy, the format the back office has always exported."""

    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def format_amount(value, currency) -> str:
    cur = getattr(currency, "value", currency) or ""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        amount = 0.0
    return f"{amount:.2f} {cur}".strip()


def decline_reason_cell(quotation: models.Quotation) -> str:
    if quotation.status != QuotationStatus.decline:
        return "-"
    return quotation.decline_reason or ""


def _with_cover_group(headers: list[str]) -> list[str]:
    # Cover group sits right after the product it qualifies.
    i = headers.index("Product Type") + 1
    return headers[:i] + [COVER_GROUP_HEADER] + headers[i:]


def quotation_row(q: models.Quotation, *, include_cover_group: bool = False) -> dict[str, str]:
    row = {
        "Broker Name": q.broker_name,
        "Insured Name": q.insured_name,
        "Product Type": q.product_type,
        "Estimated Premium": format_amount(q.estimated_premium, q.currency),
        "Quotation Date": format_day(q.quotation_date),
        "Status": q.status.value,
        "Decline Reason": decline_reason_cell(q),
        "Notes": q.notes or "",
        "Last Updated": format_day(q.last_updated),
    }
    if include_cover_group:
        row[COVER_GROUP_HEADER] = q.cover_group.value if q.cover_group else ""
    return row


def order_row(o: models.Order, *, include_cover_group: bool = False) -> dict[str, str]:
    row = {
        "Broker Name": o.broker_name,
        "Insured Name": o.insured_name,
        "Product Type": o.product_type,
        "Business Type": o.business_type.value,
        "Premium": format_amount(o.premium, o.currency),
        "Order Date": format_day(o.order_date),
        "Statuses": ", ".join(o.statuses or []),
        "Notes": o.notes or "",
        "Last Updated": format_day(o.last_updated),
    }
    if include_cover_group:
        row[COVER_GROUP_HEADER] = o.cover_group.value if o.cover_group else ""
    return row


def _write_csv(headers: list[str], rows: Iterable[dict[str, str]]) -> bytes:
    buf = io.StringIO(newline="")
    writer = csv.DictWriter(buf, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue().encode("utf-8")


def build_quotations_csv_bytes(
    quotations: Iterable[models.Quotation], *, include_cover_group: bool = False
) -> bytes:
    headers = _with_cover_group(QUOTATION_HEADERS) if include_cover_group else QUOTATION_HEADERS
    return _write_csv(
        headers, (quotation_row(q, include_cover_group=include_cover_group) for q in quotations)
    )


def build_orders_csv_bytes(
    orders: Iterable[models.Order], *, include_cover_group: bool = False
) -> bytes:
    headers = _with_cover_group(ORDER_HEADERS) if include_cover_group else ORDER_HEADERS
    return _write_csv(
        headers, (order_row(o, include_cover_group=include_cover_group) for o in orders)
    )


def export_filename(
    prefix: str,
    *,
    status: Optional[str] = None,
    start: date | None = None,
    end: date | None = None,
) -> str:
    """e.g. quotations-Open_01-03-2025_to_31-03-2025.csv"""

    if status == "selected":
        status_part = "_selected"
    elif status:
        status_part = f"-{status.replace(' ', '_')}"
    else:
        status_part = ""

    range_part = ""
    if start is not None:
        range_part = f"_{start.strftime('%d-%m-%Y')}"
        if end is not None:
            range_part += f"_to_{end.strftime('%d-%m-%Y')}"
    return f"{prefix}{status_part}{range_part}.csv"
