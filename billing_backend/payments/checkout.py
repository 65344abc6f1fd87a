"""
Ouverture d'une session Stripe Checkout pour un plan d'abonnement.
"""
import logging
from typing import Any, Dict, Optional

from billing_backend import config
from billing_backend.errors import AuthorizationError, NotFoundError
from billing_backend.pricing import repository as pricing_repo
from billing_backend.pricing.resolver import normalize_promo_code, resolve_checkout_price
from billing_backend.utils.dates import to_iso, utcnow
from billing_backend.utils.security import is_doctor_owner
from . import repository
from . import stripe_client
from . import metadata as meta

logger = logging.getLogger(__name__)

PLAN_LABELS = {
    "month": "Professional plan (1 month)",
    "year": "Professional plan (12 months)",
}

# module billing_backend.payments.checkout
def to_line_items(price: Dict[str, Any]) -> list:
    """Une seule ligne price_data au montant remisé (unités mineures)."""
    return [{
        "price_data": {
            "currency": price["currency"].lower(),
            "unit_amount": int(price["discountedAmount"]),
            "product_data": {"name": PLAN_LABELS.get(price["interval"], price["planId"])},
        },
        "quantity": 1,
    }]

def build_checkout_log(*, session: Dict[str, Any], price: Dict[str, Any], doctor_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    """Ligne stripe_checkout_logs (status 'created') reflétant la décision tarifaire."""
    return {
        "session_id": session.get("id"),
        "doctor_id": str(doctor_id),
        "user_uid": user.get("id"),
        "user_email": (user.get("email") or "").strip().lower() or None,
        "plan_id": price["planId"],
        "amount": price["discountedAmount"],
        "original_amount": price["originalAmount"],
        "currency": price["currency"],
        "interval": price["interval"],
        "status": "created",
        "promo_code": price["promoCode"] or None,
        "applied_discount_source": price["appliedDiscountSource"],
        "promo_applied": price["promoApplied"],
        "promo_validated": price["promoValidated"],
        "created_at": to_iso(utcnow()),
    }

def create_checkout(
    *,
    user: Dict[str, Any],
    plan_id: str,
    doctor_id: str,
    promo_code: Optional[str] = None,
    individual_discount_eligible: bool = True,
) -> Dict[str, Any]:
    """
    Crée la session Checkout d'un médecin appartenant à l'appelant.
    Étapes:
      1) Stripe configuré (sinon stripe_not_configured, rien n'est écrit)
      2) Médecin existant et appartenant à l'appelant
      3) Prix résolu (surcharge, promo, remise individuelle); promo inconnue => échec franc
      4) Session Stripe (mode payment, customer_email = email vérifié)
      5) Journal stripe_checkout_logs (un échec d'écriture est loggé, la session est tout de même renvoyée)
    """
    stripe_client.require_stripe()

    doctor = repository.get_doctor(doctor_id)
    if not doctor:
        raise NotFoundError("Doctor not found.", reason="doctor_not_found")
    if not is_doctor_owner(doctor, user):
        raise AuthorizationError("You cannot purchase a plan for this doctor.", reason="doctor_access_denied")

    code = normalize_promo_code(promo_code)
    override = pricing_repo.get_pricing_override()
    promo = pricing_repo.find_promo_code(code) if code else None
    price = resolve_checkout_price(
        plan_id=plan_id,
        doctor=doctor,
        override=override,
        promo=promo,
        promo_code=code,
        individual_discount_eligible=individual_discount_eligible,
    )

    session = stripe_client.create_session(
        line_items=to_line_items(price),
        mode="payment",
        success_url=config.CHECKOUT_SUCCESS_URL,
        cancel_url=config.CHECKOUT_CANCEL_URL,
        metadata=meta.make_metadata(
            plan_id=price["planId"],
            doctor_id=doctor_id,
            user_uid=user.get("id"),
            promo_code=price["promoCode"],
            interval=price["interval"],
        ),
        customer_email=user.get("email"),
    )

    # Pas d'URL de paiement sans entrée d'audit
    try:
        repository.insert_checkout_log(build_checkout_log(session=session, price=price, doctor_id=doctor_id, user=user))
    except Exception:
        logger.error("payments.checkout log insert failed session_id=%s doctor_id=%s", session.get("id"), doctor_id)
        raise

    logger.info(
        "payments.checkout created session_id=%s doctor_id=%s plan=%s source=%s amount=%s",
        session.get("id"), doctor_id, price["planId"], price["appliedDiscountSource"], price["discountedAmount"],
    )
    return {
        "success": True,
        "promoApplied": price["promoApplied"],
        "promoValidated": price["promoValidated"],
        "appliedDiscountSource": price["appliedDiscountSource"],
        "originalAmount": price["originalAmount"],
        "discountedAmount": price["discountedAmount"],
        "sessionId": session.get("id"),
        "url": session.get("url"),
    }
