from decimal import Decimal

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from gestion_academica.config import _load_rules_settings
from gestion_academica.models import User


def test_signup_and_login_flow(client: TestClient):
    email = "user1@test.com"
    r = client.post("/auth/signup", json={
        "email": email,
        "full_name": "User One",
        "password": "pass1234",
        "role": "student"
    })
    assert r.status_code == 200
    assert r.json()["access_token"]

    r2 = client.post("/auth/token", data={"username": email, "password": "pass1234"}, headers={"Content-Type": "application/x-www-form-urlencoded"})
    assert r2.status_code == 200
    token = r2.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "student"

    bad = client.post("/auth/token", data={"username": email, "password": "otra"}, headers={"Content-Type": "application/x-www-form-urlencoded"})
    assert bad.status_code == 400


def test_default_admin_is_idempotent(client: TestClient):
    from gestion_academica import db
    from gestion_academica.seed import DEFAULT_ADMIN_EMAIL, ensure_default_admin

    ensure_default_admin()
    ensure_default_admin()
    with Session(db.engine) as session:
        admins = session.exec(select(User).where(User.email == DEFAULT_ADMIN_EMAIL)).all()
        assert len(admins) == 1
        assert admins[0].role == "admin"

    login = client.post(
        "/auth/token",
        data={"username": DEFAULT_ADMIN_EMAIL, "password": "admin123"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert login.status_code == 200


def test_rules_settings_read_environment(monkeypatch):
    monkeypatch.setenv("RULES_PASSING_GRADE", "13")
    monkeypatch.setenv("RULES_PRACTICUM_MIN_CREDITS", "no-es-numero")
    rules = _load_rules_settings()
    assert rules.passing_grade == Decimal("13")
    assert rules.practicum_min_credits == 140
    assert rules.max_grade == Decimal("20")
