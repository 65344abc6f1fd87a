"""
Rattrapage des bonus de parrainage non appliqués.

Parcourt les médecins parrainés dont le loquet referral_bonus_applied est encore
à false, garde ceux devenus éligibles et applique la même routine que la
confirmation de paiement (payments.referral). Idempotent: relancer le job
n'applique jamais deux fois le même bonus.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from billing_backend.payments import referral
from billing_backend.payments import repository as payments_repo
from billing_backend.utils.dates import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX = 1000
MAX_CAP = 5000

# module billing_backend.reconciliation.referral_rewards
def clamp_max(value: Optional[int]) -> int:
    if value is None or value <= 0:
        return DEFAULT_MAX
    return min(MAX_CAP, int(value))

def is_referral_eligible(doctor: Dict[str, Any], now: datetime) -> bool:
    """
    Éligible si: parrainé, bonus non appliqué, non refusé, actif, déjà payé,
    et referral_eligible_at renseigné et atteint.
    """
    if not doctor.get("referred_by_doctor_id") or doctor.get("referral_bonus_applied"):
        return False
    if doctor.get("is_approved") is False or doctor.get("is_disabled"):
        return False
    if not doctor.get("payment_done"):
        return False
    return referral.is_eligible_now(doctor, now)

def reconcile_referral_rewards(*, dry_run: bool = False, max_doctors: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Retour (imprimé en JSON par la CLI):
    {dryRun, scanned, eligible, applied, planned, skipped, errors, details}
    """
    now = now or utcnow()
    doctors = payments_repo.list_referral_candidates(clamp_max(max_doctors))
    candidates = [d for d in doctors if is_referral_eligible(d, now)]

    summary: Dict[str, Any] = {
        "dryRun": dry_run,
        "scanned": len(doctors),
        "eligible": len(candidates),
        "applied": 0,
        "planned": 0,
        "skipped": 0,
        "errors": 0,
        "details": [],
    }
    for doctor in candidates:
        doctor_id = str(doctor.get("id"))
        try:
            result = referral.apply_referral_bonus(doctor, now=now, dry_run=dry_run)
        except Exception as e:
            logger.exception("reconciliation.referral_rewards failed doctor_id=%s", doctor_id)
            summary["errors"] += 1
            summary["details"].append({"referredDoctorId": doctor_id, "status": "error", "message": str(e)})
            continue
        status = result["status"]
        if status in ("applied", "planned"):
            summary[status] += 1
        else:
            summary["skipped"] += 1
        summary["details"].append({
            "referredDoctorId": doctor_id,
            "status": status,
            "reason": result.get("reason"),
            "referrerId": result.get("referrerId"),
        })
    logger.info(
        "reconciliation.referral_rewards dry_run=%s scanned=%s applied=%s planned=%s errors=%s",
        dry_run, summary["scanned"], summary["applied"], summary["planned"], summary["errors"],
    )
    return summary
