"""
Lecture normalisée des sessions Stripe Checkout (email, metadata, intervalle).
"""
from typing import Any, Dict

# module billing_backend.payments.metadata
MONTHS_BY_INTERVAL = {"month": 1, "year": 12}

def months_delta_for_interval(interval: str | None) -> int:
    """month => 1, year => 12, tout autre intervalle => 0 (aucun mois crédité)."""
    return MONTHS_BY_INTERVAL.get((interval or "").strip().lower(), 0)

def session_email(session: Dict[str, Any]) -> str:
    """customer_email, sinon customer_details.email (Stripe remplit l'un ou l'autre)."""
    s = session or {}
    email = s.get("customer_email") or (s.get("customer_details") or {}).get("email") or ""
    return str(email).strip()

def session_view(session: Dict[str, Any]) -> Dict[str, Any]:
    """
    Vue métier d'une session Checkout:
    - Attend session["metadata"] = {planId, doctorId, userUid, promoCode, interval}
    - Tolérant: champs absents => None / "" ; interval lu sur la session puis dans la metadata
    """
    s = session or {}
    meta = s.get("metadata") or {}
    interval = s.get("interval") or meta.get("interval") or ""
    return {
        "id": s.get("id"),
        "status": s.get("status"),
        "payment_status": s.get("payment_status"),
        "email": session_email(s),
        "plan_id": meta.get("planId"),
        "doctor_id": meta.get("doctorId") or None,
        "user_uid": meta.get("userUid") or None,
        "promo_code": meta.get("promoCode") or "",
        "interval": interval,
        "months_delta": months_delta_for_interval(interval),
        "amount_total": s.get("amount_total"),
        "currency": (s.get("currency") or "").upper() or None,
    }

def make_metadata(*, plan_id: str, doctor_id: str, user_uid: str, promo_code: str, interval: str) -> Dict[str, str]:
    """Métadonnées posées à la création de session (Stripe n'accepte que des chaînes)."""
    return {
        "planId": plan_id,
        "doctorId": str(doctor_id),
        "userUid": str(user_uid or ""),
        "promoCode": promo_code or "",
        "interval": interval or "",
    }
