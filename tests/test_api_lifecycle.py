from fastapi.testclient import TestClient

from brokerage import models
from brokerage.main import app
from brokerage.models.domain import Department, RoleName
from brokerage.services import lifecycle
from brokerage.services.active_year import set_active_year

client = TestClient(app)


def _quotation_payload(**overrides):
    payload = {
        "broker_name": "Gulf Brokers",
        "insured_name": "Acme Shipping LLC",
        "product_type": "Marine Open Cover",
        "estimated_premium": 12500,
        "currency": "USD",
        "quotation_date": "2025-03-10T09:30:00",
        "notes": "Annual cover",
    }
    payload.update(overrides)
    return payload


def test_quotation_to_closed_order_flow(db_session, login_as):
    set_active_year(db_session, 2025)
    login_as()

    created = client.post("/api/marine/quotations", json=_quotation_payload())
    assert created.status_code == 201
    body = created.json()
    assert body["order"] is None
    quotation_id = body["quotation"]["id"]
    assert body["quotation"]["year"] == 2025
    assert body["quotation"]["status"] == "Open"

    confirmed = client.put(f"/api/marine/quotations/{quotation_id}", json={"status": "Confirmed"})
    assert confirmed.status_code == 200
    order = confirmed.json()["order"]
    assert order["quotation_id"] == quotation_id
    assert order["statuses"] == ["Firm Order Received", "KYC Pending"]
    assert order["business_type"] == "New Business"
    assert order["year"] == 2025

    resaved = client.put(f"/api/marine/quotations/{quotation_id}", json={"status": "Confirmed"})
    assert resaved.json()["order"] is None

    listed = client.get("/api/marine/orders")
    assert [o["id"] for o in listed.json()] == [order["id"]]

    closed = client.put(
        f"/api/marine/orders/{order['id']}",
        json={"statuses": ["COI Issued", "Policy Issued"], "notes": "Policy sent"},
    )
    assert closed.status_code == 200
    assert closed.json()["has_moved_to_closed"] is True
    assert closed.json()["order"]["is_closed"] is True

    again = client.put(f"/api/marine/orders/{order['id']}", json={"premium": 13000})
    assert again.json()["has_moved_to_closed"] is False

    assert client.get("/api/marine/orders").json() == []
    assert [o["id"] for o in client.get("/api/marine/orders/closed").json()] == [order["id"]]
    by_status = client.get("/api/marine/orders", params={"status": "Policy Issued"}).json()
    assert [o["id"] for o in by_status] == [order["id"]]
    assert client.get("/api/marine/orders", params={"status": "COI Issued"}).json() == []
    assert len(client.get("/api/marine/orders", params={"include_all": True}).json()) == 1

    logs = client.get(f"/api/marine/orders/{order['id']}/logs").json()
    assert [log["statuses"] for log in logs] == [
        ["Firm Order Received", "KYC Pending"],
        ["COI Issued", "Policy Issued"],
    ]
    assert logs[-1]["notes"] == "Policy sent"


def test_cascade_failure_returns_dedicated_error(db_session, monkeypatch, login_as):
    login_as()

    def broken(*, db, quotation, year):
        raise RuntimeError("order table locked")

    monkeypatch.setattr(lifecycle, "create_firm_order_from_quotation", broken)

    r = client.post("/api/marine/quotations", json=_quotation_payload(status="Confirmed"))
    assert r.status_code == 500
    body = r.json()
    assert body["code"] == "CASCADE_FAILED"
    quotation_id = body["quotation_id"]

    assert client.get(f"/api/marine/quotations/{quotation_id}").json()["status"] == "Confirmed"
    pending = client.get("/api/marine/quotations/unreconciled").json()
    assert [q["id"] for q in pending] == [quotation_id]

    monkeypatch.undo()
    reconciled = client.post(f"/api/marine/quotations/{quotation_id}/reconcile")
    assert reconciled.status_code == 201
    assert reconciled.json()["quotation_id"] == quotation_id

    duplicate = client.post(f"/api/marine/quotations/{quotation_id}/reconcile")
    assert duplicate.status_code == 409


def test_department_access_rules(login_as):
    login_as(Department.property_engineering)
    r = client.get("/api/marine/quotations")
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied. This endpoint requires Marine department access."

    assert client.get("/api/property-engineering/quotations").status_code == 200
    assert client.get("/api/aviation/quotations").status_code == 404

    login_as(Department.property_engineering, RoleName.admin)
    assert client.get("/api/marine/orders").status_code == 200


def test_quotation_from_other_department_is_not_found(login_as):
    login_as(Department.marine, RoleName.admin)
    created = client.post(
        "/api/liability/quotations",
        json=_quotation_payload(product_type="Cyber Liability Insurance"),
    )
    assert created.status_code == 201
    quotation_id = created.json()["quotation"]["id"]

    assert client.get(f"/api/marine/quotations/{quotation_id}").status_code == 404
    assert client.get(f"/api/liability/quotations/{quotation_id}").status_code == 200


def test_invalid_product_type_is_rejected(login_as):
    login_as()
    r = client.post("/api/marine/quotations", json=_quotation_payload(product_type="FIRE & PERILS"))
    assert r.status_code == 400
    assert "Invalid product type" in r.json()["detail"]


def test_quotation_status_filter_and_bulk_delete(login_as):
    login_as()
    open_id = client.post("/api/marine/quotations", json=_quotation_payload()).json()["quotation"]["id"]
    declined_id = client.post(
        "/api/marine/quotations",
        json=_quotation_payload(status="Decline", decline_reason="Price"),
    ).json()["quotation"]["id"]

    declined = client.get("/api/marine/quotations", params={"status": "Decline"}).json()
    assert [q["id"] for q in declined] == [declined_id]
    assert client.get("/api/marine/quotations", params={"status": "Maybe"}).status_code == 400

    r = client.post("/api/marine/quotations/bulk-delete", json={"ids": [open_id, 404]})
    assert r.status_code == 200
    assert r.json() == {"deleted_ids": [open_id], "missing_ids": [404]}

    assert client.delete(f"/api/marine/quotations/{declined_id}").status_code == 204
    assert client.get("/api/marine/quotations").json() == []


def test_analyze_validation_and_empty_range(login_as):
    login_as()
    bad = client.get("/api/marine/quotations/analyze", params={"start_date": "10/03/2025"})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid start date format"

    inverted = client.get(
        "/api/marine/quotations/analyze",
        params={"start_date": "2025-04-01", "end_date": "2025-03-01"},
    )
    assert inverted.status_code == 400

    empty = client.get("/api/marine/quotations/analyze")
    assert empty.status_code == 404
    assert empty.json()["detail"] == "No data found in the specified date range"

    client.post("/api/marine/quotations", json=_quotation_payload(status="Confirmed"))
    ok = client.get("/api/marine/quotations/analyze")
    assert ok.status_code == 200
    assert ok.json()["hit_ratio"] == "100.00"


def test_switching_active_year_hides_and_restores_records(db_session, login_as):
    set_active_year(db_session, 2025)
    login_as(Department.marine, RoleName.admin)

    quotation_id = client.post("/api/marine/quotations", json=_quotation_payload()).json()[
        "quotation"
    ]["id"]
    order = client.post(
        "/api/marine/orders",
        json={
            "broker_name": "Gulf Brokers",
            "insured_name": "Acme Shipping LLC",
            "product_type": "Jetski",
            "premium": 900,
            "business_type": "Renewal",
        },
    )
    assert order.status_code == 201
    order_id = order.json()["id"]

    assert client.put("/api/settings/year", json={"year": 2026}).status_code == 200
    assert client.get("/api/marine/orders").json() == []
    assert client.get("/api/marine/quotations").json() == []

    db_session.expire_all()
    assert db_session.get(models.Order, order_id).year == 2025
    assert db_session.get(models.Quotation, quotation_id).year == 2025

    assert client.put("/api/settings/year", json={"year": 2025}).status_code == 200
    assert [o["id"] for o in client.get("/api/marine/orders").json()] == [order_id]
    assert [q["id"] for q in client.get("/api/marine/quotations").json()] == [quotation_id]
