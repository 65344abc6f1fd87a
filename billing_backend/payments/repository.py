"""
Accès aux données pour la feature 'payments': médecins, verrous d'idempotence,
portefeuille et journal des paiements.

Toutes les écritures passent par le client service-role. PostgREST n'offre ni
transaction ni incrément atomique: l'exclusivité repose sur l'INSERT unique du
verrou, et les incréments du portefeuille sur des UPDATE conditionnels (CAS).
"""
from typing import Any, Callable, Dict, List, Optional
import logging
from postgrest.exceptions import APIError
import billing_backend.infra.supabase_client as supabase_client
from billing_backend.errors import ConflictError
from billing_backend.utils.dates import to_iso, utcnow

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
WALLET_CAS_MAX_ATTEMPTS = 5

DOCTOR_COLUMNS = (
    "id, email, user_uid, doctor_id_short, wallet_months, access_expires_at, payment_done, "
    "payment_done_at, stripe_last_payment_at, admin_stripe_discount_percent, referred_by_doctor_id, "
    "referral_eligible_at, referral_bonus_applied, referral_bonus_applied_at, is_approved, is_disabled"
)

# module billing_backend.payments.repository
def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if not code and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return str(code) if code else None

def _first(res) -> Optional[Dict[str, Any]]:
    data = res.data or []
    if isinstance(data, list):
        return data[0] if data else None
    return data or None

# --- Médecins ---

def get_doctor(doctor_id: str) -> Optional[Dict[str, Any]]:
    """Retourne la ligne 'doctors' ou None si absente. Les erreurs du store sont propagées."""
    if not doctor_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table("doctors")
        .select(DOCTOR_COLUMNS)
        .eq("id", str(doctor_id))
        .limit(1)
        .execute()
    )
    return _first(res)

def find_doctor_by_short_id(short_id: str) -> Optional[Dict[str, Any]]:
    """Code de parrainage court (doctor_id_short), accepté dans referred_by_doctor_id."""
    if not short_id:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table("doctors")
        .select(DOCTOR_COLUMNS)
        .eq("doctor_id_short", str(short_id))
        .limit(1)
        .execute()
    )
    return _first(res)

def list_referral_candidates(limit: int) -> List[Dict[str, Any]]:
    """Médecins parrainés dont le bonus n'a pas encore été appliqué."""
    res = (
        supabase_client.get_service_supabase()
        .table("doctors")
        .select(DOCTOR_COLUMNS)
        .eq("referral_bonus_applied", False)
        .not_.is_("referred_by_doctor_id", "null")
        .limit(limit)
        .execute()
    )
    return res.data or []

# --- Verrou d'idempotence ---

def acquire_payment_lock(*, session_id: str, doctor_id: str, user_uid: Optional[str], source: str) -> bool:
    """
    INSERT du verrou stripe_payment_locks (clé primaire session_id).
    - True: ce processus a gagné et doit créditer
    - False: doublon (23505), la session a déjà été traitée
    - Toute autre erreur est propagée: elle ne signifie jamais « déjà traité »
    """
    payload = {
        "session_id": session_id,
        "doctor_id": str(doctor_id),
        "user_uid": user_uid,
        "source": source,
        "created_at": to_iso(utcnow()),
    }
    try:
        supabase_client.get_service_supabase().table("stripe_payment_locks").insert(payload).execute()
        return True
    except APIError as e:
        if _error_code(e) == UNIQUE_VIOLATION:
            logger.info("payments.repository.acquire_payment_lock duplicate session_id=%s", session_id)
            return False
        raise

def list_payment_locks(limit: int) -> List[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table("stripe_payment_locks")
        .select("*")
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []

# --- Portefeuille ---

def apply_wallet_update(doctor_id: str, build_update: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Dict[str, Any]:
    """
    UPDATE conditionnel (compare-and-swap) sur wallet_months:
    - relit la ligne, calcule les champs via build_update(row)
    - n'écrit que si wallet_months n'a pas changé depuis la lecture, sinon réessaie
    - ConflictError après WALLET_CAS_MAX_ATTEMPTS tentatives, LookupError si médecin absent
    Retour: la ligne mise à jour.
    """
    client = supabase_client.get_service_supabase()
    for attempt in range(1, WALLET_CAS_MAX_ATTEMPTS + 1):
        row = get_doctor(doctor_id)
        if not row:
            raise LookupError(f"doctor {doctor_id} not found")
        current = row.get("wallet_months")
        fields = build_update(row)
        fields["updated_at"] = to_iso(utcnow())
        query = client.table("doctors").update(fields).eq("id", str(doctor_id))
        if current is None:
            query = query.is_("wallet_months", "null")
        else:
            query = query.eq("wallet_months", current)
        updated = _first(query.execute())
        if updated:
            return updated
        logger.info("payments.repository.apply_wallet_update conflict doctor_id=%s attempt=%s", doctor_id, attempt)
    raise ConflictError("Concurrent wallet updates, please retry.", reason="wallet_update_conflict")

def increment_wallet_months(doctor_id: str, months: int) -> Dict[str, Any]:
    """Crédit d'un paiement: wallet_months += months, payment_done = true."""
    def _build(row: Dict[str, Any]) -> Dict[str, Any]:
        now = to_iso(utcnow())
        fields = {
            "wallet_months": int(row.get("wallet_months") or 0) + int(months),
            "payment_done": True,
            "stripe_last_payment_at": now,
        }
        if not row.get("payment_done_at"):
            fields["payment_done_at"] = now
        return fields
    return apply_wallet_update(doctor_id, _build)

# --- Parrainage ---

def flip_referral_latch(doctor_id: str) -> bool:
    """
    Bascule referral_bonus_applied false => true par UPDATE conditionnel.
    True uniquement pour l'appelant qui a effectivement basculé le loquet.
    """
    res = (
        supabase_client.get_service_supabase()
        .table("doctors")
        .update({"referral_bonus_applied": True, "referral_bonus_applied_at": to_iso(utcnow())})
        .eq("id", str(doctor_id))
        .eq("referral_bonus_applied", False)
        .execute()
    )
    return bool(res.data)

# --- Journal des paiements ---

def insert_payment_record(record: Dict[str, Any]) -> bool:
    """
    INSERT dans doctor_payment_records (id déterministe).
    - False si l'entrée existe déjà (23505), autres erreurs propagées
    """
    try:
        supabase_client.get_service_supabase().table("doctor_payment_records").insert(record).execute()
        return True
    except APIError as e:
        if _error_code(e) == UNIQUE_VIOLATION:
            logger.warning("payments.repository.insert_payment_record duplicate id=%s", record.get("id"))
            return False
        raise

def find_payment_record_ids(ids: List[str]) -> List[str]:
    if not ids:
        return []
    res = (
        supabase_client.get_service_supabase()
        .table("doctor_payment_records")
        .select("id")
        .in_("id", ids)
        .execute()
    )
    return [str(r.get("id")) for r in (res.data or [])]

def insert_checkout_log(row: Dict[str, Any]) -> None:
    """Ajoute une ligne brute stripe_checkout_logs (append-only, jamais mise à jour)."""
    supabase_client.get_service_supabase().table("stripe_checkout_logs").insert(row).execute()
