"""
Audit des verrous orphelins: verrou stripe_payment_locks présent sans entrée
stripe_payment_<session_id> dans doctor_payment_records. Rapport uniquement,
aucun crédit n'est rejoué automatiquement.
"""
import logging
from typing import Any, Dict, Optional

from billing_backend.payments import repository as payments_repo
from billing_backend.payments.service import payment_record_id
from .referral_rewards import clamp_max

logger = logging.getLogger(__name__)

# module billing_backend.reconciliation.orphaned_locks
def find_orphaned_locks(*, max_locks: Optional[int] = None) -> Dict[str, Any]:
    locks = payments_repo.list_payment_locks(clamp_max(max_locks))
    expected = {payment_record_id(lock["session_id"]): lock for lock in locks if lock.get("session_id")}
    present = set(payments_repo.find_payment_record_ids(list(expected.keys())))

    orphans = []
    for record_id, lock in expected.items():
        if record_id in present:
            continue
        doctor = payments_repo.get_doctor(lock.get("doctor_id")) if lock.get("doctor_id") else None
        orphans.append({
            "sessionId": lock.get("session_id"),
            "doctorId": lock.get("doctor_id"),
            "source": lock.get("source"),
            "lockedAt": lock.get("created_at"),
            "walletMonths": (doctor or {}).get("wallet_months"),
            "doctorFound": doctor is not None,
        })
    if orphans:
        logger.error("reconciliation.orphaned_locks found=%s", len(orphans))
    return {"scanned": len(locks), "orphaned": len(orphans), "details": orphans}
