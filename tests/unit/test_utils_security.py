from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from billing_backend.errors import ConfigurationError
from billing_backend.utils.security import get_current_user, require_admin, is_doctor_owner

SERVICE = "billing_backend.auth.service.get_user_from_token"


def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    @app.get("/admin")
    def admin(user=Depends(require_admin)):
        return {"ok": True}

    return app


def test_get_current_user_bearer_success(monkeypatch):
    monkeypatch.setattr(SERVICE, lambda token: {"id": "u1", "email": "a@b.c", "role": "user", "token": token})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok-123"})
    assert r.status_code == 200
    assert r.json() == {"id": "u1", "email": "a@b.c", "role": "user", "token": "tok-123"}


def test_get_current_user_missing_token_401(monkeypatch):
    client = TestClient(_make_app())
    r = client.get("/me")
    assert r.status_code == 401
    assert "unauthorized" in r.text


def test_cookie_is_not_an_identity(monkeypatch):
    monkeypatch.setattr(SERVICE, lambda token: {"id": "u1", "email": "a@b.c"})
    client = TestClient(_make_app())
    client.cookies.set("sb_access", "cookie-token")
    assert client.get("/me").status_code == 401


def test_rejected_token_401(monkeypatch):
    def _reject(token):
        raise RuntimeError("invalid JWT")
    monkeypatch.setattr(SERVICE, _reject)
    client = TestClient(_make_app())
    assert client.get("/me", headers={"Authorization": "Bearer bad"}).status_code == 401


def test_user_without_email_401(monkeypatch):
    monkeypatch.setattr(SERVICE, lambda token: {"id": "u1", "email": ""})
    client = TestClient(_make_app())
    assert client.get("/me", headers={"Authorization": "Bearer tok"}).status_code == 401


def test_auth_backend_not_configured_is_not_a_401(monkeypatch):
    def _unconfigured(token):
        raise ConfigurationError("Supabase is not configured.")
    monkeypatch.setattr(SERVICE, _unconfigured)
    client = TestClient(_make_app(), raise_server_exceptions=False)
    assert client.get("/me", headers={"Authorization": "Bearer tok"}).status_code == 500


def test_require_admin_forbidden_and_allowed(monkeypatch):
    client = TestClient(_make_app())

    monkeypatch.setattr(SERVICE, lambda token: {"id": "u1", "email": "a@b.c", "role": "user"})
    assert client.get("/admin", headers={"Authorization": "Bearer tok"}).status_code == 403

    monkeypatch.setattr(SERVICE, lambda token: {"id": "u1", "email": "a@b.c", "role": "admin"})
    r_ok = client.get("/admin", headers={"Authorization": "Bearer tok"})
    assert r_ok.status_code == 200
    assert r_ok.json() == {"ok": True}


def test_is_doctor_owner():
    doctor = {"user_uid": "u1", "email": "Doc@Example.com"}
    assert is_doctor_owner(doctor, {"id": "u1", "email": "x@y.z"}) is True
    assert is_doctor_owner(doctor, {"id": "u2", "email": "doc@example.com "}) is True
    assert is_doctor_owner(doctor, {"id": "u2", "email": "x@y.z"}) is False
    assert is_doctor_owner({"user_uid": None, "email": ""}, {"id": "", "email": ""}) is False
