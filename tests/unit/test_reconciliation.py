import json
from datetime import datetime, timezone

import pytest

from billing_backend.reconciliation import find_orphaned_locks, is_referral_eligible, reconcile_referral_rewards
from billing_backend.reconciliation.__main__ import main
from billing_backend.reconciliation.referral_rewards import clamp_max
from tests.factories import make_doctor

NOW = datetime(2026, 5, 10, 9, 0, tzinfo=timezone.utc)


def _referred(id, **overrides):
    fields = {
        "id": id,
        "email": f"{id}@example.com",
        "user_uid": f"user-{id}",
        "doctor_id_short": id.upper(),
        "referred_by_doctor_id": "doc-ref",
        "payment_done": True,
        "referral_eligible_at": "2026-05-01T00:00:00Z",
    }
    fields.update(overrides)
    return make_doctor(**fields)


def _referrer():
    return make_doctor(id="doc-ref", email="ref@example.com", user_uid="user-ref", doctor_id_short="REF")


@pytest.mark.parametrize("overrides,eligible", [
    ({}, True),
    ({"referral_eligible_at": None}, False),
    ({"referral_eligible_at": "2026-06-01T00:00:00Z"}, False),
    ({"payment_done": False}, False),
    ({"referral_bonus_applied": True}, False),
    ({"is_approved": False}, False),
    ({"is_approved": None}, True),
    ({"is_disabled": True}, False),
    ({"referred_by_doctor_id": None}, False),
])
def test_is_referral_eligible(overrides, eligible):
    assert is_referral_eligible(_referred("doc-a", **overrides), NOW) is eligible


def test_clamp_max():
    assert clamp_max(None) == 1000
    assert clamp_max(-3) == 1000
    assert clamp_max(20) == 20
    assert clamp_max(99999) == 5000


def test_reconcile_applies_missing_rewards(store):
    store.seed(
        "doctors",
        _referrer(),
        _referred("doc-a"),
        _referred("doc-b", referral_eligible_at=None),
        _referred("doc-c", referred_by_doctor_id="ghost"),
    )
    summary = reconcile_referral_rewards(now=NOW)

    assert summary["dryRun"] is False
    assert summary["scanned"] == 3
    assert summary["eligible"] == 2
    assert summary["applied"] == 1
    assert summary["skipped"] == 1
    assert summary["errors"] == 0
    assert store.get("doctors", "doc-ref")["wallet_months"] == 1
    assert store.get("doctors", "doc-a")["referral_bonus_applied"] is True

    # Relancer le job ne crédite pas une seconde fois
    again = reconcile_referral_rewards(now=NOW)
    assert again["applied"] == 0
    assert store.get("doctors", "doc-ref")["wallet_months"] == 1


def test_reconcile_dry_run_writes_nothing(store):
    store.seed("doctors", _referrer(), _referred("doc-a"))
    summary = reconcile_referral_rewards(dry_run=True, now=NOW)
    assert summary["planned"] == 1
    assert summary["applied"] == 0
    assert store.get("doctors", "doc-ref")["wallet_months"] == 0
    assert store.rows("doctor_payment_records") == []


def test_reconcile_counts_errors_and_continues(store):
    store.seed("doctors", _referrer(), _referred("doc-a"), _referred("doc-b"))
    store.fail("doctor_payment_records", "insert")
    summary = reconcile_referral_rewards(now=NOW)
    assert summary["errors"] == 2
    assert [d["status"] for d in summary["details"]] == ["error", "error"]


def test_find_orphaned_locks(store):
    store.seed("doctors", make_doctor(wallet_months=0))
    store.seed(
        "stripe_payment_locks",
        {"session_id": "cs_ok", "doctor_id": "doc-1", "source": "webhook", "created_at": "2026-05-01T10:00:00Z"},
        {"session_id": "cs_orphan", "doctor_id": "doc-1", "source": "confirm", "created_at": "2026-05-02T10:00:00Z"},
    )
    store.seed("doctor_payment_records", {"id": "stripe_payment_cs_ok", "doctor_id": "doc-1"})

    report = find_orphaned_locks()
    assert report["scanned"] == 2
    assert report["orphaned"] == 1
    orphan = report["details"][0]
    assert orphan["sessionId"] == "cs_orphan"
    assert orphan["source"] == "confirm"
    assert orphan["doctorFound"] is True
    assert orphan["walletMonths"] == 0


def test_cli_referral_rewards_dry_run(store, capsys):
    store.seed("doctors", _referrer(), _referred("doc-a", referral_eligible_at="2020-01-01T00:00:00Z"))
    code = main(["referral-rewards", "--dry-run", "--max", "10"])
    out = json.loads(capsys.readouterr().out)
    assert code == 0
    assert out["dryRun"] is True
    assert out["planned"] == 1


def test_cli_orphaned_locks_exit_code(store, capsys):
    store.seed("stripe_payment_locks", {"session_id": "cs_orphan", "doctor_id": "doc-x", "source": "webhook"})
    code = main(["orphaned-locks"])
    out = json.loads(capsys.readouterr().out)
    assert code == 1
    assert out["details"][0]["doctorFound"] is False


def test_cli_requires_command():
    with pytest.raises(SystemExit):
        main([])
