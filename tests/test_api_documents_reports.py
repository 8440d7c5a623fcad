import csv
import io

import openpyxl
from fastapi.testclient import TestClient

from brokerage.main import app
from brokerage.models.domain import Department, RoleName
from brokerage.services.exports_workbook import SHEET_NAMES, XLSX_MEDIA_TYPE
from brokerage.services.extraction import BROKER_REQUIRED_MESSAGE

client = TestClient(app)

BOAT_DOCUMENT = b"""Insured: Sea Breeze Rentals
Product: pleasure boat
Premium: USD 3,100
Date: 2025-03-12
Vessel: Blue Fin II
Notes: Weekend charter use
"""


def _create_quotation(department_slug, **overrides):
    payload = {
        "broker_name": "Gulf Brokers",
        "insured_name": "Acme",
        "product_type": "Jetski",
        "estimated_premium": 1000,
        "quotation_date": "2025-03-10T09:30:00",
    }
    payload.update(overrides)
    r = client.post(f"/api/{department_slug}/quotations", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


def test_extract_returns_draft_without_saving(login_as):
    login_as()
    r = client.post(
        "/api/marine/quotations/extract",
        files={"document": ("quote.txt", BOAT_DOCUMENT, "text/plain")},
        data={"broker_name": "Harbour Brokers"},
    )
    assert r.status_code == 200
    draft = r.json()
    assert draft["broker_name"] == "Harbour Brokers"
    assert draft["product_type"] == "Pleasure Boats"
    assert draft["estimated_premium"] == 3100.0
    assert draft["status"] == "Open"
    assert draft["notes"] == "Weekend charter use\nVessel: Blue Fin II"

    assert client.get("/api/marine/quotations").json() == []


def test_extract_requires_a_document(login_as):
    login_as()
    r = client.post("/api/marine/quotations/extract", data={"broker_name": "X"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Quotation document is required"


def test_upload_order_needs_broker_then_creates_firm_order(login_as):
    login_as()
    missing = client.post(
        "/api/marine/orders/upload",
        files={"document": ("quote.txt", BOAT_DOCUMENT, "text/plain")},
    )
    assert missing.status_code == 400
    assert missing.json()["detail"] == BROKER_REQUIRED_MESSAGE

    created = client.post(
        "/api/marine/orders/upload",
        files={"document": ("quote.txt", BOAT_DOCUMENT, "text/plain")},
        data={"broker_name": "Harbour Brokers", "business_type": "Renewal"},
    )
    assert created.status_code == 201
    order = created.json()
    assert order["broker_name"] == "Harbour Brokers"
    assert order["business_type"] == "Renewal"
    assert order["statuses"] == ["Firm Order Received", "KYC Pending"]
    assert order["currency"] == "AED"

    logs = client.get(f"/api/marine/orders/{order['id']}/logs").json()
    assert len(logs) == 1


def test_quotation_csv_export_selected_and_cover_group(login_as):
    login_as(Department.property_engineering)
    first = _create_quotation("property-engineering", product_type="CONTRACTORS ALL RISKS")
    _create_quotation("property-engineering", product_type="FIRE & PERILS")

    r = client.get(
        "/api/property-engineering/quotations/export",
        params={"status": "selected", "ids": [first["quotation"]["id"]]},
    )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "quotations_selected.csv" in r.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert len(rows) == 1
    assert rows[0]["Cover Group"] == "ENGINEERING"
    assert rows[0]["Decline Reason"] == "-"


def test_order_csv_export_by_business_type_includes_closed(login_as):
    login_as()
    client.post(
        "/api/marine/orders",
        json={
            "broker_name": "Gulf Brokers",
            "insured_name": "Acme",
            "product_type": "Jetski",
            "premium": 10,
            "business_type": "Renewal",
            "statuses": ["Policy Issued"],
        },
    )

    default = client.get("/api/marine/orders/export")
    assert len(list(csv.DictReader(io.StringIO(default.text)))) == 0

    renewal = client.get("/api/marine/orders/export", params={"business_type": "Renewal"})
    rows = list(csv.DictReader(io.StringIO(renewal.text)))
    assert [r["Statuses"] for r in rows] == ["Policy Issued"]
    assert "Cover Group" not in rows[0]


def test_management_dashboard_and_workbook(login_as):
    login_as(Department.marine, RoleName.admin)
    _create_quotation("marine", status="Confirmed")
    _create_quotation("liability", product_type="Cyber Liability Insurance", insured_name="Other")

    dashboard = client.get("/api/analytics/management", params={"department": "marine"})
    assert dashboard.status_code == 200
    body = dashboard.json()
    assert body["department"] == "Marine"
    assert body["overview"]["confirmed_quotations"] == 1
    assert body["overview"]["total_orders_count"] == 1
    assert len(body["time_series"]) == 30

    by_name = client.get("/api/analytics/management", params={"department": "Liability & Financial"})
    assert by_name.json()["overview"]["total_quotations"] == 1

    inverted = client.get(
        "/api/analytics/management",
        params={"start_date": "2025-05-01", "end_date": "2025-04-01"},
    )
    assert inverted.status_code == 400

    export = client.get("/api/reports/management-export", params={"department": "marine"})
    assert export.status_code == 200
    assert export.headers["content-type"] == XLSX_MEDIA_TYPE
    wb = openpyxl.load_workbook(io.BytesIO(export.content))
    assert tuple(wb.sheetnames) == SHEET_NAMES


def test_management_dashboard_respects_department_access(login_as):
    login_as(Department.marine)
    assert client.get("/api/analytics/management").status_code == 200
    denied = client.get("/api/analytics/management", params={"department": "liability"})
    assert denied.status_code == 403
    assert client.get("/api/analytics/management", params={"department": "aviation"}).status_code == 404


def test_insured_endpoints(login_as):
    login_as(Department.marine, RoleName.admin)
    _create_quotation("marine", insured_name="Acme")
    _create_quotation("liability", product_type="Cyber Liability Insurance", insured_name="Acme")
    _create_quotation("liability", product_type="Cyber Liability Insurance", insured_name="Beta")

    names = client.get("/api/analytics/insured-names").json()
    assert names["names"] == ["Acme", "Beta"]

    summary = client.get("/api/analytics/insured/Acme").json()
    assert summary["insured_name"] == "Acme"
    assert summary["totals"]["quotations"]["total"] == 2
    assert [d["department"] for d in summary["departments"]] == [d.value for d in Department]
    assert summary["primary_currency"] == "AED"


def test_insured_summary_reachable_for_name_with_slash(login_as):
    login_as(Department.marine, RoleName.admin)
    _create_quotation("marine", insured_name="Al Noor/Trading LLC")

    assert client.get("/api/analytics/insured-names").json()["names"] == ["Al Noor/Trading LLC"]

    r = client.get("/api/analytics/insured/Al Noor/Trading LLC")
    assert r.status_code == 200
    assert r.json()["insured_name"] == "Al Noor/Trading LLC"
    assert r.json()["totals"]["quotations"]["total"] == 1


def test_management_window_is_bounded(login_as):
    login_as(Department.marine, RoleName.admin)

    too_long = client.get("/api/analytics/management", params={"start_date": "0001-01-02"})
    assert too_long.status_code == 400
    assert "cannot exceed" in too_long.json()["detail"]

    future = client.get("/api/analytics/management", params={"start_date": "2999-01-01"})
    assert future.status_code == 400
    assert future.json()["detail"] == "Start date cannot be after end date"

    export = client.get("/api/reports/management-export", params={"start_date": "0001-01-02"})
    assert export.status_code == 400

    year = client.get(
        "/api/analytics/management",
        params={"start_date": "2024-01-01", "end_date": "2024-12-31"},
    )
    assert year.status_code == 200
    assert len(year.json()["time_series"]) == 366
