"""
Cas d'usage 'payments': confirmation idempotente des sessions Stripe et traitement des webhooks.

Cycle d'une session: unseen -> locked-in-progress -> credited.
Le verrou stripe_payment_locks est le seul point de synchronisation: le processus
qui gagne l'INSERT crédite le portefeuille, les autres répondent succès sans rien écrire.
"""
import logging
from typing import Any, Dict, Optional

from billing_backend.errors import (
    AuthorizationError,
    ConflictError,
    InvalidRequestError,
    PaymentCreditIncompleteError,
)
from billing_backend.utils.dates import to_iso, utcnow
from . import repository
from . import referral
from . import stripe_client
from . import metadata as meta

logger = logging.getLogger(__name__)

CREDIT_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILURE_EVENTS = {
    "checkout.session.async_payment_failed": "failed",
    "checkout.session.expired": "expired",
}

# module billing_backend.payments.service
def payment_record_id(session_id: str) -> str:
    return f"stripe_payment_{session_id}"

def _payment_record(view: Dict[str, Any]) -> Dict[str, Any]:
    amount_total = view.get("amount_total") or 0
    return {
        "id": payment_record_id(view["id"]),
        "doctor_id": str(view["doctor_id"]),
        "type": "stripe_payment",
        "source": "stripe",
        "status": "confirmed",
        "months_delta": view["months_delta"],
        "amount": round(int(amount_total) / 100, 2),
        "currency": view.get("currency"),
        "reference_id": view["id"],
        "note": f"Stripe checkout {view.get('plan_id') or ''}".strip(),
        "created_at": to_iso(utcnow()),
    }

def credit_session(view: Dict[str, Any], *, source: str) -> Dict[str, Any]:
    """
    Crédite une session complète au plus une fois.
    - Verrou déjà présent => {"credited": False}, aucune écriture
    - Gagnant: portefeuille (+months_delta, payment_done), entrée stripe_payment, puis bonus de parrainage
    - Échec du store après verrou gagné => PaymentCreditIncompleteError (jamais réessayé ici)
    """
    session_id = view.get("id")
    doctor_id = view.get("doctor_id")
    if not doctor_id:
        raise ConflictError("Checkout session has no doctor attached.", reason="session_missing_doctor")

    won = repository.acquire_payment_lock(
        session_id=session_id,
        doctor_id=doctor_id,
        user_uid=view.get("user_uid"),
        source=source,
    )
    if not won:
        logger.info("payments.credit_session already processed session_id=%s source=%s", session_id, source)
        return {"credited": False, "sessionId": session_id, "doctorId": doctor_id}

    try:
        repository.increment_wallet_months(doctor_id, view["months_delta"])
        repository.insert_payment_record(_payment_record(view))
    except Exception as e:
        logger.error(
            "payments.credit_session orphaned lock session_id=%s doctor_id=%s months=%s",
            session_id, doctor_id, view["months_delta"], exc_info=True,
        )
        raise PaymentCreditIncompleteError(
            "Payment received but the wallet credit could not be completed.", session_id=session_id,
        ) from e

    logger.info(
        "payments.credit_session credited session_id=%s doctor_id=%s months=%s source=%s",
        session_id, doctor_id, view["months_delta"], source,
    )

    # Le paiement est acquis: un échec du parrainage est journalisé sans annuler le crédit
    try:
        referred = repository.get_doctor(doctor_id)
        if referred:
            referral.apply_referral_bonus(referred)
    except Exception:
        logger.exception("payments.credit_session referral bonus failed doctor_id=%s", doctor_id)

    return {"credited": True, "sessionId": session_id, "doctorId": doctor_id}

def confirm_session_by_id(session_id: Optional[str], user: Dict[str, Any]) -> Dict[str, Any]:
    """
    Confirmation côté client (retour de Checkout).
    - session_id manquant => 400 session_id_required
    - email de session différent de l'email vérifié => 403 session_email_mismatch
    - status != complete => 409 session_not_complete
    Retour {"success": True} que ce processus ait crédité ou que la session soit déjà traitée.
    """
    session_id = (session_id or "").strip()
    if not session_id:
        raise InvalidRequestError("sessionId is required.", reason="session_id_required")

    session = stripe_client.get_session(session_id)
    view = meta.session_view(session)

    caller_email = (user.get("email") or "").strip().lower()
    if not view["email"] or view["email"].lower() != caller_email:
        logger.warning("payments.confirm email mismatch session_id=%s user_id=%s", session_id, user.get("id"))
        raise AuthorizationError("This checkout session belongs to another account.", reason="session_email_mismatch")

    if view["status"] != "complete":
        raise ConflictError(
            f"Checkout session is not complete (status={view['status']}).", reason="session_not_complete",
        )

    credit_session(view, source="confirm")
    return {"success": True}

def build_event_log(view: Dict[str, Any], status: str) -> Dict[str, Any]:
    """Ligne brute stripe_checkout_logs issue d'un événement webhook."""
    return {
        "session_id": view.get("id"),
        "doctor_id": view.get("doctor_id"),
        "user_uid": view.get("user_uid"),
        "user_email": (view.get("email") or "").lower() or None,
        "plan_id": view.get("plan_id"),
        "amount": view.get("amount_total"),
        "currency": view.get("currency"),
        "interval": view.get("interval") or None,
        "status": status,
        "promo_code": view.get("promo_code") or None,
        "created_at": to_iso(utcnow()),
    }

def _append_event_log(view: Dict[str, Any], status: str) -> None:
    try:
        repository.insert_checkout_log(build_event_log(view, status))
    except Exception:
        logger.exception("payments.webhook log insert failed session_id=%s status=%s", view.get("id"), status)

def handle_webhook_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Traite un événement Stripe déjà vérifié (signature).
    - completed / async_payment_succeeded: crédit idempotent + log brut 'confirmed'
    - session sans doctorId: journalisée et acquittée (credited False)
    - async_payment_failed / expired: log brut 'failed' / 'expired'
    - autres types: acquittés et ignorés
    """
    event_type = (event or {}).get("type") or ""
    obj = ((event or {}).get("data") or {}).get("object") or {}

    if event_type in CREDIT_EVENTS:
        view = meta.session_view(obj)
        if view["status"] != "complete":
            logger.info("payments.webhook session not complete session_id=%s status=%s", view["id"], view["status"])
            return {"received": True, "type": event_type, "credited": False}
        # Session sans médecin: acquittée, jamais créditée
        if not view.get("doctor_id"):
            logger.warning("payments.webhook session without doctor session_id=%s event_id=%s", view["id"], (event or {}).get("id"))
            return {"received": True, "type": event_type, "credited": False}
        result = credit_session(view, source="webhook")
        _append_event_log(view, "confirmed")
        return {"received": True, "type": event_type, "credited": result["credited"]}

    if event_type in FAILURE_EVENTS:
        view = meta.session_view(obj)
        _append_event_log(view, FAILURE_EVENTS[event_type])
        return {"received": True, "type": event_type, "credited": False}

    logger.info("payments.webhook ignored event type=%s", event_type)
    return {"received": True, "type": event_type, "ignored": True}
