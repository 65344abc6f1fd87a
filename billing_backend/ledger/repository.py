"""
Accès aux données pour la feature 'ledger' (lecture seule).
"""
from typing import Any, Dict, List, Optional
import logging
import billing_backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

# module billing_backend.ledger.repository
def list_payment_records(doctor_id: str, limit: int) -> List[Dict[str, Any]]:
    """
    Lignes natives du portefeuille (doctor_payment_records) d'un médecin.
    - Retourne [] en cas d’erreur (lecture dégradée, loggée)
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("doctor_payment_records")
            .select("*")
            .eq("doctor_id", str(doctor_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("ledger.repository.list_payment_records failed doctor_id=%s", doctor_id)
        return []

def list_checkout_logs(doctor_id: str, limit: int, email: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Journal brut Stripe (stripe_checkout_logs) par doctor_id, puis par user_email si fourni
    (sessions anciennes sans doctorId). Les doublons entre les deux requêtes sont tolérés:
    la fusion les élimine.
    """
    client = supabase_client.get_service_supabase()
    rows: List[Dict[str, Any]] = []
    try:
        res = (
            client.table("stripe_checkout_logs")
            .select("*")
            .eq("doctor_id", str(doctor_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        rows.extend(res.data or [])
    except Exception:
        logger.exception("ledger.repository.list_checkout_logs failed doctor_id=%s", doctor_id)

    normalized_email = (email or "").strip().lower()
    if normalized_email:
        try:
            res = (
                client.table("stripe_checkout_logs")
                .select("*")
                .eq("user_email", normalized_email)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            rows.extend(res.data or [])
        except Exception:
            logger.exception("ledger.repository.list_checkout_logs by email failed doctor_id=%s", doctor_id)
    return rows
