import logging
from typing import Optional

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from billing_backend.utils.security import require_user
from billing_backend.utils.rate_limit import optional_rate_limit
from billing_backend.payments import stripe_client
from billing_backend.payments import checkout as payments_checkout
from billing_backend.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

class CheckoutRequest(BaseModel):
    plan_id: str = Field(alias="planId", min_length=1)
    doctor_id: str = Field(alias="doctorId", min_length=1)
    promo_code: Optional[str] = Field(default=None, alias="promoCode")
    individual_discount_eligible: bool = Field(default=True, alias="individualDiscountEligible")

# module billing_backend.payments.views
@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(req: CheckoutRequest, user: dict = Depends(require_user)):
    """
    Crée une session Checkout Stripe pour un médecin de l’utilisateur authentifié.
    - Entrée JSON: { "planId", "doctorId", "promoCode"?, "individualDiscountEligible"? }
    - Sécurité: require_user (Bearer) + rate limit (10 req / 60s)
    - Réponse: {success, promoApplied, promoValidated, appliedDiscountSource,
      originalAmount, discountedAmount, sessionId, url}
    - Erreurs: 500 stripe_not_configured / invalid_promo_code, 404 doctor_not_found,
      403 doctor_access_denied, 400 invalid_plan
    """
    return payments_checkout.create_checkout(
        user=user,
        plan_id=req.plan_id,
        doctor_id=req.doctor_id,
        promo_code=req.promo_code,
        individual_discount_eligible=req.individual_discount_eligible,
    )

@router.post("/confirm", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def confirm_checkout(request: Request, user: dict = Depends(require_user)):
    """
    Confirme une session Stripe au retour du Checkout (alternative au webhook).
    - Accepte sessionId (ou session_id) en query ou en JSON body
    - Idempotent: {"success": true} même si la session a déjà été créditée
    - Erreurs: 400 session_id_required, 403 session_email_mismatch, 409 session_not_complete
    """
    session_id = request.query_params.get("sessionId") or request.query_params.get("session_id")
    if not session_id:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            session_id = body.get("sessionId") or body.get("session_id")
    return payments_service.confirm_session_by_id(session_id, user)

@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(request: Request):
    """
    Webhook Stripe (Checkout), POST uniquement (405 sinon).
    - Signature: vérifiée sur le body brut (Stripe-Signature + STRIPE_WEBHOOK_SECRET)
    - Traitement: payments_service.handle_webhook_event (crédit idempotent, logs bruts)
    - Réponse: {"received": true, ...}
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    event = stripe_client.construct_event(payload, sig_header)
    result = payments_service.handle_webhook_event(event)
    logger.info("payments.webhook type=%s result=%s", event.get("type"), result)
    return JSONResponse(result)
