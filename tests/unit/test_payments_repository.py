import pytest
from postgrest.exceptions import APIError

from billing_backend.errors import ConflictError
from billing_backend.payments import repository
from tests.factories import make_doctor


def test_acquire_lock_once(store):
    assert repository.acquire_payment_lock(session_id="cs_1", doctor_id="doc-1", user_uid="u1", source="confirm") is True
    assert repository.acquire_payment_lock(session_id="cs_1", doctor_id="doc-1", user_uid="u1", source="webhook") is False
    locks = store.rows("stripe_payment_locks")
    assert len(locks) == 1
    assert locks[0]["source"] == "confirm"


def test_lock_store_error_is_not_already_processed(store):
    store.fail("stripe_payment_locks", "insert")
    with pytest.raises(APIError):
        repository.acquire_payment_lock(session_id="cs_1", doctor_id="doc-1", user_uid=None, source="confirm")


def test_increment_wallet_months_sets_payment_done(store):
    store.seed("doctors", make_doctor(wallet_months=2))
    row = repository.increment_wallet_months("doc-1", 12)
    assert row["wallet_months"] == 14
    doctor = store.get("doctors", "doc-1")
    assert doctor["payment_done"] is True
    assert doctor["payment_done_at"]
    assert doctor["stripe_last_payment_at"]


def test_increment_wallet_months_from_null(store):
    store.seed("doctors", make_doctor(wallet_months=None))
    repository.increment_wallet_months("doc-1", 1)
    assert store.get("doctors", "doc-1")["wallet_months"] == 1


def test_wallet_cas_retries_after_concurrent_write(store):
    store.seed("doctors", make_doctor(wallet_months=1))

    # Une autre écriture passe entre la lecture et l'UPDATE conditionnel
    def _concurrent(_query):
        store.tables["doctors"][0]["wallet_months"] = 5
    store.hooks[("doctors", "update")] = _concurrent

    repository.increment_wallet_months("doc-1", 1)
    assert store.get("doctors", "doc-1")["wallet_months"] == 6


def test_wallet_cas_gives_up_after_max_attempts(store, monkeypatch):
    store.seed("doctors", make_doctor(wallet_months=1))
    monkeypatch.setattr(repository, "WALLET_CAS_MAX_ATTEMPTS", 2)

    original = store._execute
    def _always_conflict(q):
        if q.table_name == "doctors" and q.op == "update":
            store.tables["doctors"][0]["wallet_months"] += 1
        return original(q)
    monkeypatch.setattr(store, "_execute", _always_conflict)

    with pytest.raises(ConflictError):
        repository.increment_wallet_months("doc-1", 1)


def test_increment_unknown_doctor(store):
    with pytest.raises(LookupError):
        repository.increment_wallet_months("ghost", 1)


def test_referral_latch_flips_once(store):
    store.seed("doctors", make_doctor())
    assert repository.flip_referral_latch("doc-1") is True
    assert repository.flip_referral_latch("doc-1") is False
    assert store.get("doctors", "doc-1")["referral_bonus_applied"] is True


def test_insert_payment_record_duplicate_returns_false(store):
    assert repository.insert_payment_record({"id": "stripe_payment_cs_1", "doctor_id": "doc-1"}) is True
    assert repository.insert_payment_record({"id": "stripe_payment_cs_1", "doctor_id": "doc-1"}) is False


def test_find_doctor_by_short_id(store):
    store.seed("doctors", make_doctor(id="doc-7", doctor_id_short="REF7"))
    assert repository.find_doctor_by_short_id("REF7")["id"] == "doc-7"
    assert repository.find_doctor_by_short_id("") is None
