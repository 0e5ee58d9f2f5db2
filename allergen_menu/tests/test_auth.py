from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from allergen_menu.app import app

client = TestClient(app)


def _login_owner(c):
    c.post("/auth/login", json={"email": "owner@example.com", "password": "owner123"})


def _login_admin(c):
    c.post("/auth/login", json={"email": "admin@example.com", "password": "admin123"})


# ── Login / Logout ───────────────────────────────────────────────────────


def test_login_success_owner():
    resp = client.post("/auth/login", json={"email": "owner@example.com", "password": "owner123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["user"]["email"] == "owner@example.com"
    assert body["user"]["role"] == "owner"
    assert body["user"]["id"] == "user_owner"


def test_login_is_case_insensitive_on_email():
    resp = client.post("/auth/login", json={"email": "Admin@Example.com", "password": "admin123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "admin"


def test_login_wrong_password():
    resp = client.post("/auth/login", json={"email": "owner@example.com", "password": "wrong"})
    assert resp.status_code == 401


def test_login_unknown_user():
    resp = client.post("/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert resp.status_code == 401


def test_login_validation_rejects_bad_email():
    resp = client.post("/auth/login", json={"email": "not-an-email", "password": "x"})
    assert resp.status_code == 422


def test_auth_me_when_logged_in():
    _login_owner(client)
    resp = client.get("/auth/me")
    assert resp.status_code == 200
    assert resp.json()["email"] == "owner@example.com"


def test_auth_me_not_logged_in():
    c = TestClient(app)  # fresh client, no session
    resp = c.get("/auth/me")
    assert resp.status_code == 401


def test_logout():
    _login_owner(client)
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["status"] == "logged_out"
    resp = client.get("/auth/me")
    assert resp.status_code == 401


# ── Sign-up ──────────────────────────────────────────────────────────────


def test_sign_up_logs_in_new_owner():
    c = TestClient(app)
    email = f"chef-{uuid.uuid4().hex[:8]}@example.com"
    resp = c.post("/auth/sign-up", json={"email": email, "password": "s3cretpass"})
    assert resp.status_code == 201
    assert resp.json()["user"]["role"] == "owner"
    assert c.get("/auth/me").json()["email"] == email


def test_sign_up_duplicate_email():
    c = TestClient(app)
    resp = c.post("/auth/sign-up", json={"email": "owner@example.com", "password": "s3cretpass"})
    assert resp.status_code == 409


def test_sign_up_short_password():
    c = TestClient(app)
    resp = c.post("/auth/sign-up", json={"email": "x@example.com", "password": "short"})
    assert resp.status_code == 422


# ── Route protection ─────────────────────────────────────────────────────


def test_dashboard_requires_login():
    c = TestClient(app)
    assert c.get("/restaurant").status_code == 401
    assert c.get("/menus").status_code == 401
    assert c.post("/dishes", json={"name": "Soup"}).status_code == 401
    assert c.post("/billing/checkout", json={"plan": "pro"}).status_code == 401


def test_admin_endpoints_require_admin():
    c = TestClient(app)
    _login_owner(c)
    assert c.get("/admin/webhook-stats").status_code == 403
    assert c.get("/admin/webhook-events").status_code == 403


def test_admin_endpoints_allowed_for_admin():
    c = TestClient(app)
    _login_admin(c)
    assert c.get("/admin/webhook-stats").status_code == 200


# ── Public endpoints stay public ─────────────────────────────────────────


def test_health_is_public():
    c = TestClient(app)
    assert c.get("/health").status_code == 200


def test_allergen_catalog_is_public():
    c = TestClient(app)
    resp = c.get("/allergens")
    assert resp.status_code == 200
    codes = [a["code"] for a in resp.json()["allergens"]]
    assert codes == sorted(codes)
    assert {"GL", "NU", "MI", "MR"} <= set(codes)
    assert len(codes) == 17
