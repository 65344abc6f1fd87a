import os
from typing import Any, Dict, Generator

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from fastapi.testclient import TestClient

from billing_backend import config
from billing_backend.app import app as fastapi_app
from billing_backend.utils.security import require_user
from tests.factories import FakeSupabase


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


@pytest.fixture()
def store(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()
    monkeypatch.setattr("billing_backend.infra.supabase_client.get_service_supabase", lambda: fake)
    monkeypatch.setattr("billing_backend.infra.supabase_client.get_supabase", lambda: fake)
    return fake


# Aucun test ne doit joindre un vrai Supabase
@pytest.fixture(autouse=True)
def _isolate_supabase(store):
    yield


@pytest.fixture(autouse=True)
def _billing_config(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", "whsec_dummy")
    monkeypatch.setattr(config, "DEFAULT_CURRENCY", "USD")
    monkeypatch.setattr(config, "MIN_CHECKOUT_AMOUNT", 50)
    monkeypatch.setattr(config, "LEDGER_DUPLICATE_WINDOW_SECONDS", 120)
    monkeypatch.setattr(config, "LEDGER_DEFAULT_LIMIT", 200)
    monkeypatch.setattr(config, "LEDGER_MAX_LIMIT", 500)
    monkeypatch.setattr(config, "ADMIN_EMAILS", ["admin@example.com"])


@pytest.fixture()
def fake_stripe(monkeypatch):
    """
    Remplace les appels réseau Stripe:
    - sessions: dict {session_id: session} servi par get_session
    - created: kwargs reçus par create_session
    """
    state: Dict[str, Any] = {"sessions": {}, "created": []}

    def _get_session(session_id):
        if session_id not in state["sessions"]:
            from billing_backend.errors import NotFoundError
            raise NotFoundError("Checkout session not found.", reason="session_not_found")
        return state["sessions"][session_id]

    def _create_session(**kwargs):
        state["created"].append(kwargs)
        return {"id": f"cs_test_{len(state['created'])}", "url": "https://checkout.stripe.test/pay"}

    monkeypatch.setattr("billing_backend.payments.stripe_client.get_session", _get_session)
    monkeypatch.setattr("billing_backend.payments.stripe_client.create_session", _create_session)
    return state


@pytest.fixture(scope="session")
def app():
    return fastapi_app


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def current_user() -> Dict[str, Any]:
    return {"id": "user-1", "email": "doctor@example.com", "role": "user", "token": "fake-token"}


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, current_user):
    app.dependency_overrides[require_user] = lambda: current_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)
