from fastapi.testclient import TestClient

from brokerage import models
from brokerage.core.security import create_access_token, decode_access_token, hash_password
from brokerage.main import app
from brokerage.models.domain import Department, RoleName

client = TestClient(app)


def _add_user(db, email, *, role=RoleName.staff, department=Department.marine, active=True):
    user = models.User(
        email=email,
        name=email.split("@")[0],
        hashed_password=hash_password("secret123"),
        department=department,
        role=role,
        active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _token(email, password="secret123"):
    r = client.post("/api/auth/token", data={"username": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def test_token_carries_subject_and_desk_claims():
    token = create_access_token("someone@brokerage.dev", department="Marine", role="staff")
    claims = decode_access_token(token)
    assert claims.subject == "someone@brokerage.dev"
    assert claims.department == "Marine"
    assert claims.role == "staff"
    assert claims.expires_at is not None

    assert decode_access_token("garbage") is None
    assert decode_access_token(create_access_token("someone@brokerage.dev", expires_minutes=-1)) is None


def test_login_and_me(db_session):
    _add_user(db_session, "marine@brokerage.dev")

    token = _token("  Marine@Brokerage.dev ")
    assert decode_access_token(token).department == "Marine"
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["department"] == "Marine"
    assert me.json()["role"] == "staff"

    audit_actions = [a.action for a in db_session.query(models.AuditLog).all()]
    assert "auth.login_success" in audit_actions


def test_login_rejects_bad_password_and_inactive_user(db_session):
    _add_user(db_session, "marine@brokerage.dev")
    _add_user(db_session, "gone@brokerage.dev", active=False)

    wrong = client.post(
        "/api/auth/token", data={"username": "marine@brokerage.dev", "password": "nope"}
    )
    assert wrong.status_code == 401

    inactive = client.post(
        "/api/auth/token", data={"username": "gone@brokerage.dev", "password": "secret123"}
    )
    assert inactive.status_code == 403


def test_requests_without_token_are_unauthorised():
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/marine/orders").status_code == 401
    assert client.get(
        "/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
    ).status_code == 401


def test_signup_always_creates_staff(db_session):
    r = client.post(
        "/api/auth/signup",
        json={
            "email": "New.Person@Brokerage.dev",
            "name": "New Person",
            "password": "secret123",
            "department": "Property & Engineering",
            "role": "admin",
        },
    )
    assert r.status_code == 201
    assert r.json()["email"] == "new.person@brokerage.dev"
    assert r.json()["role"] == "staff"

    duplicate = client.post(
        "/api/auth/signup",
        json={
            "email": "new.person@brokerage.dev",
            "name": "Again",
            "password": "secret123",
            "department": "Marine",
        },
    )
    assert duplicate.status_code == 400


def test_first_user_bootstraps_then_admin_required(db_session):
    first = client.post(
        "/api/users",
        json={
            "email": "admin@brokerage.local",
            "name": "Admin",
            "password": "secret123",
            "department": "Marine",
            "role": "admin",
        },
    )
    assert first.status_code == 201
    assert first.json()["role"] == "admin"

    anonymous = client.post(
        "/api/users",
        json={
            "email": "staff@brokerage.dev",
            "name": "Staff",
            "password": "secret123",
            "department": "Marine",
        },
    )
    assert anonymous.status_code == 403

    token = _token("admin@brokerage.local")
    created = client.post(
        "/api/users",
        json={
            "email": "staff@brokerage.dev",
            "name": "Staff",
            "password": "secret123",
            "department": "Liability & Financial",
        },
        headers={"Authorization": f"Bearer {token}"},
    )
    assert created.status_code == 201
    listed = client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
    assert [u["email"] for u in listed.json()] == ["admin@brokerage.local", "staff@brokerage.dev"]


def test_active_year_settings(db_session, login_as):
    login_as(Department.marine, RoleName.staff)
    assert client.get("/api/settings/year").status_code == 200
    assert client.put("/api/settings/year", json={"year": 2024}).status_code == 403

    login_as(Department.marine, RoleName.admin)
    r = client.put("/api/settings/year", json={"year": 2024})
    assert r.status_code == 200
    assert r.json() == {"year": 2024}
    assert client.get("/api/settings/year").json() == {"year": 2024}
    assert client.put("/api/settings/year", json={"year": 1999}).status_code == 422

    years = client.get("/api/settings/years").json()
    assert years["active_year"] == 2024
    assert 2024 in years["years"]

    changes = db_session.query(models.AuditLog).filter_by(action="settings.active_year_changed").all()
    assert len(changes) == 1


def test_health_endpoints():
    for path in ("/health", "/healthz", "/api/health"):
        r = client.get(path)
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
