"""
Adaptateur Stripe: centralise les appels, la configuration et la traduction des erreurs Stripe.
"""
import logging
import stripe
from typing import Any, Dict, List

from billing_backend import config
from billing_backend.errors import (
    ConfigurationError,
    InvalidRequestError,
    NotFoundError,
    ProcessorRequestError,
    ProcessorUnavailableError,
)

logger = logging.getLogger(__name__)

# module billing_backend.payments.stripe_client
def require_stripe() -> stripe:
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Sans STRIPE_SECRET_KEY: ConfigurationError(stripe_not_configured), aucun appel n'est tenté
    - Client HTTP avec timeout borné (STRIPE_TIMEOUT_SECONDS) et nombre de retries réseau limité
    """
    if not config.STRIPE_SECRET_KEY:
        raise ConfigurationError("Stripe is not configured.", reason="stripe_not_configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    stripe.max_network_retries = config.STRIPE_MAX_NETWORK_RETRIES
    client = stripe.default_http_client
    if client is None or getattr(client, "_timeout", None) != config.STRIPE_TIMEOUT_SECONDS:
        stripe.default_http_client = stripe.RequestsClient(timeout=config.STRIPE_TIMEOUT_SECONDS)
    return stripe

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject => dict récursif (metadata, customer_details inclus)
    if hasattr(obj, "to_dict_recursive"):
        return obj.to_dict_recursive()
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

def _translate_error(exc: stripe.StripeError, action: str) -> Exception:
    """
    Traduit une erreur Stripe en erreur métier:
    - réseau / timeout / indisponibilité Stripe => ProcessorUnavailableError (503, réessayable)
    - ressource inconnue => NotFoundError
    - autre requête refusée => ProcessorRequestError
    """
    if isinstance(exc, (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)):
        logger.warning("stripe.%s unavailable: %s", action, exc)
        return ProcessorUnavailableError("Payment processor is unavailable, please retry.")
    if isinstance(exc, stripe.InvalidRequestError) and getattr(exc, "code", None) == "resource_missing":
        return NotFoundError("Checkout session not found.", reason="session_not_found")
    logger.warning("stripe.%s rejected: %s", action, exc)
    return ProcessorRequestError(getattr(exc, "user_message", None) or "Payment processor rejected the request.")

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
    customer_email: str,
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    - line_items: lignes Stripe (price_data au montant remisé)
    - mode: "payment"
    - metadata: {planId, doctorId, userUid, promoCode, interval}
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.create(
            line_items=line_items,
            mode=mode,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=customer_email,
            payment_method_types=["card"],
        )
    except stripe.StripeError as e:
        raise _translate_error(e, "create_session") from e
    return _as_dict(session)

def get_session(session_id: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session incluant "id", "status", "customer_email", "metadata", etc.
    """
    require_stripe()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        raise _translate_error(e, "get_session") from e
    return _as_dict(session)

def construct_event(payload: bytes, sig_header: str | None) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé (webhook) sur le body brut.
    - Secret absent => 500 webhook_not_configured
    - En-tête Stripe-Signature absent => 400 missing_stripe_signature
    - Signature invalide => 400 invalid_stripe_signature
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        raise ConfigurationError("Stripe webhook secret is not configured.", reason="webhook_not_configured")
    if not sig_header:
        raise InvalidRequestError("Missing Stripe-Signature header.", reason="missing_stripe_signature")
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, config.STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe.construct_event invalid signature: %s", e)
        raise InvalidRequestError("Invalid Stripe signature.", reason="invalid_stripe_signature") from e
    except ValueError as e:
        raise InvalidRequestError("Invalid Stripe payload.", reason="invalid_stripe_payload") from e
    return _as_dict(event)
