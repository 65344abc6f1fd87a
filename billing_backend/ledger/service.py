"""
Cas d'usage 'ledger': historique des paiements d'un médecin, fusionné et dédoublonné.
"""
import logging
from typing import Any, Dict, List, Optional

from billing_backend.errors import AuthorizationError, NotFoundError
from billing_backend.payments import repository as payments_repo
from billing_backend.utils.security import is_doctor_owner
from . import repository
from .merge import clamp_limit, merge_ledger
from .normalize import normalize_checkout_log, normalize_wallet_record

logger = logging.getLogger(__name__)

# module billing_backend.ledger.service
def build_doctor_ledger(doctor_id: str, *, email: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Lit les deux sources, normalise, fusionne.
    - Logs retrouvés par email mais rattachés à un autre médecin: écartés
    """
    n = clamp_limit(limit)
    wallet_rows = repository.list_payment_records(doctor_id, n)
    log_rows = repository.list_checkout_logs(doctor_id, n, email=email)

    entries = [normalize_wallet_record(r) for r in wallet_rows]
    for row in log_rows:
        owner = row.get("doctor_id")
        if owner and str(owner) != str(doctor_id):
            continue
        entries.append(normalize_checkout_log(row, doctor_id))

    merged = merge_ledger(entries, n)
    logger.debug(
        "ledger.build doctor_id=%s wallet=%s logs=%s merged=%s",
        doctor_id, len(wallet_rows), len(log_rows), len(merged),
    )
    return merged

def get_doctor_ledger(
    doctor_id: str,
    user: Dict[str, Any],
    *,
    email: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Historique consultable par le propriétaire du médecin ou par un admin.
    - email: fallback de recherche des logs Stripe; hors admin, seul l'email du médecin
      ou celui de l'appelant est accepté
    """
    doctor = payments_repo.get_doctor(doctor_id)
    if not doctor:
        raise NotFoundError("Doctor not found.", reason="doctor_not_found")
    is_admin = user.get("role") == "admin"
    if not is_admin and not is_doctor_owner(doctor, user):
        raise AuthorizationError("You cannot read this doctor's ledger.", reason="doctor_access_denied")

    lookup_email = (email or "").strip().lower() or None
    if lookup_email and not is_admin:
        allowed = {
            (doctor.get("email") or "").strip().lower(),
            (user.get("email") or "").strip().lower(),
        }
        if lookup_email not in allowed:
            raise AuthorizationError("Email does not belong to this doctor.", reason="ledger_email_mismatch")

    records = build_doctor_ledger(str(doctor.get("id") or doctor_id), email=lookup_email, limit=limit)
    return {"success": True, "records": records}
