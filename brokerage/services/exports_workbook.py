from __future__ import annotations

from dataclasses import replace
from datetime import date
from io import BytesIO
from typing import Any, Sequence

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.models.domain import BusinessType, Department, QuotationStatus
from brokerage.services import analytics
from brokerage.services.analytics import ManagementFilters, hit_ratio, to_float
from brokerage.services.exports_csv import (
    ORDER_HEADERS,
    QUOTATION_HEADERS,
    order_row,
    quotation_row,
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHEET_NAMES = (
    "Overview",
    "Quotations",
    "Orders",
    "Broker Analysis",
    "Product Analysis",
    "Insured Analysis",
)

DEPARTMENT_LABELS = {
    Department.marine: "Marine",
    Department.property_engineering: "P&E",
    Department.liability_financial: "L&F",
}

HEADER_FONT = Font(bold=True)


def _money(value: float) -> str:
    return f"{value:.2f}"


def _fill_sheet(ws: Worksheet, headers: Sequence[str], rows: Sequence[dict[str, Any]]) -> None:
    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = HEADER_FONT
    for row in rows:
        ws.append([row.get(h, "") for h in headers])
    _autosize(ws)


def _autosize(ws: Worksheet) -> None:
    for col in range(1, ws.max_column + 1):
        max_len = 0
        for (value,) in ws.iter_rows(min_col=col, max_col=col, values_only=True):
            max_len = max(max_len, len(str(value)) if value is not None else 0)
        ws.column_dimensions[get_column_letter(col)].width = min(max(max_len + 2, 12), 60)


def overview_rows(
    quotations: Sequence[models.Quotation],
    orders: Sequence[models.Order],
    filters: ManagementFilters,
) -> list[list[Any]]:
    confirmed = sum(1 for q in quotations if q.status == QuotationStatus.confirmed)
    new_business = [o for o in orders if o.business_type == BusinessType.new_business]
    renewal = [o for o in orders if o.business_type == BusinessType.renewal]

    if filters.start and filters.end:
        date_range = f"{filters.start.strftime('%d/%m/%Y')} to {filters.end.strftime('%d/%m/%Y')}"
    else:
        date_range = "All Time"

    return [
        ["Management Report Overview"],
        ["Department", filters.department.value],
        ["Date Range", date_range],
        ["Filters Applied"],
        ["Broker", filters.broker or "All Brokers"],
        ["Product Type", filters.product or "All Products"],
        ["Business Type", filters.business_type.value if filters.business_type else "All Types"],
        [""],
        ["QUOTATION METRICS"],
        ["Total Quotations", len(quotations)],
        ["Open Quotations", sum(1 for q in quotations if q.status == QuotationStatus.open)],
        ["Confirmed Quotations", confirmed],
        ["Declined Quotations", sum(1 for q in quotations if q.status == QuotationStatus.decline)],
        # Workbook conversion is confirmed over all quotations, unlike the dashboard card.
        ["Conversion Rate (%)", hit_ratio(confirmed, len(quotations))],
        [""],
        ["ORDER METRICS"],
        ["Total Orders", len(orders)],
        ["New Business Orders", len(new_business)],
        ["Renewal Orders", len(renewal)],
        ["Total Premium", _money(sum(to_float(o.premium) for o in orders))],
        ["New Business Premium", _money(sum(to_float(o.premium) for o in new_business))],
        ["Renewal Premium", _money(sum(to_float(o.premium) for o in renewal))],
    ]


def broker_sheet_rows(
    quotations: Sequence[models.Quotation], orders: Sequence[models.Order]
) -> list[dict[str, Any]]:
    return [
        {
            "Broker": r.name,
            "Total Quotations": r.quotations_count,
            "Confirmed Quotations": r.confirmed_count,
            "Declined Quotations": r.declined_count,
            "Open Quotations": r.open_count,
            "Hit Ratio (%)": r.hit_ratio,
            "Orders Count": r.orders_count,
            "Total Premium": _money(r.premium),
        }
        for r in analytics.broker_analytics(quotations, orders)
    ]


def product_sheet_rows(
    quotations: Sequence[models.Quotation], orders: Sequence[models.Order]
) -> list[dict[str, Any]]:
    return [
        {
            "Product Type": r.name,
            "Total Quotations": r.quotations_count,
            "Confirmed Quotations": r.confirmed_count,
            "Confirmation Rate (%)": hit_ratio(r.confirmed_count, r.quotations_count),
            "Total Premium": _money(r.premium),
            "Average Premium": _money(r.avg_premium),
        }
        for r in analytics.product_analytics(quotations, orders)
    ]


def insured_sheet_headers() -> list[str]:
    headers = ["Insured Name", "Total Quotations"]
    headers += [f"{DEPARTMENT_LABELS[d]} Quotations" for d in Department]
    headers += ["Total Orders"]
    headers += [f"{DEPARTMENT_LABELS[d]} Orders" for d in Department]
    headers += ["Total Premium"]
    headers += [f"{DEPARTMENT_LABELS[d]} Premium" for d in Department]
    headers += ["Products", "Average Premium per Order"]
    return headers


def insured_sheet_rows(
    datasets: dict[Department, analytics.ManagementDataset],
) -> list[dict[str, Any]]:
    """Cross-department rollup per insured, highest total premium first."""

    names: list[str] = []
    for data in datasets.values():
        names.extend(q.insured_name for q in data.quotations)
        names.extend(o.insured_name for o in data.orders)

    rows: list[tuple[float, dict[str, Any]]] = []
    for name in dict.fromkeys(names):
        row: dict[str, Any] = {"Insured Name": name}
        total_quotations = total_orders = 0
        total_premium = 0.0
        products: list[str] = []
        for department, data in datasets.items():
            label = DEPARTMENT_LABELS[department]
            quotations = [q for q in data.quotations if q.insured_name == name]
            orders = [o for o in data.orders if o.insured_name == name]
            premium = sum(to_float(o.premium) for o in orders)
            row[f"{label} Quotations"] = len(quotations)
            row[f"{label} Orders"] = len(orders)
            row[f"{label} Premium"] = _money(premium)
            total_quotations += len(quotations)
            total_orders += len(orders)
            total_premium += premium
            products.extend(q.product_type for q in quotations if q.product_type)
        row["Total Quotations"] = total_quotations
        row["Total Orders"] = total_orders
        row["Total Premium"] = _money(total_premium)
        row["Products"] = ", ".join(dict.fromkeys(products))
        row["Average Premium per Order"] = _money(total_premium / total_orders) if total_orders else "0.00"
        rows.append((total_premium, row))

    rows.sort(key=lambda item: item[0], reverse=True)
    return [row for _, row in rows]


def build_management_workbook_bytes(
    db: Session, *, year: int, filters: ManagementFilters
) -> bytes:
    """Render the multi-sheet management report for one department.

    The Insured Analysis sheet spans every department; it honours the broker
    and business-type filters but not the product filter, whose catalogue is
    department specific.
    """

    data = analytics.load_management_dataset(db, year=year, filters=filters)
    cross_filters = replace(filters, product=None)
    datasets = {
        department: analytics.load_management_dataset(
            db, year=year, filters=replace(cross_filters, department=department)
        )
        for department in Department
    }

    wb = openpyxl.Workbook()
    overview_ws = wb.active
    overview_ws.title = "Overview"
    for row in overview_rows(data.quotations, data.orders, filters):
        overview_ws.append(row)
    overview_ws["A1"].font = HEADER_FONT
    _autosize(overview_ws)

    _fill_sheet(
        wb.create_sheet("Quotations"),
        QUOTATION_HEADERS,
        [quotation_row(q) for q in data.quotations],
    )
    _fill_sheet(wb.create_sheet("Orders"), ORDER_HEADERS, [order_row(o) for o in data.orders])
    _fill_sheet(
        wb.create_sheet("Broker Analysis"),
        [
            "Broker",
            "Total Quotations",
            "Confirmed Quotations",
            "Declined Quotations",
            "Open Quotations",
            "Hit Ratio (%)",
            "Orders Count",
            "Total Premium",
        ],
        broker_sheet_rows(data.quotations, data.orders),
    )
    _fill_sheet(
        wb.create_sheet("Product Analysis"),
        [
            "Product Type",
            "Total Quotations",
            "Confirmed Quotations",
            "Confirmation Rate (%)",
            "Total Premium",
            "Average Premium",
        ],
        product_sheet_rows(data.quotations, data.orders),
    )
    _fill_sheet(
        wb.create_sheet("Insured Analysis"), insured_sheet_headers(), insured_sheet_rows(datasets)
    )

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def workbook_filename(today: date | None = None) -> str:
    return f"management_report_{(today or date.today()).isoformat()}.xlsx"
