"""
Erreurs métier du moteur de facturation.

Chaque erreur porte un code stable (reason) et un statut HTTP; le message est
sûr à afficher côté client. Les handlers FastAPI (app_setup.exceptions) les
transforment en {"success": false, "error": reason, "detail": message}.
"""


class BillingError(Exception):
    """Erreur de base; status_code/reason par défaut surchargés par les sous-classes."""

    status_code = 500
    reason = "billing_error"

    def __init__(self, message: str, reason: str | None = None, status_code: int | None = None):
        self.message = message
        if reason:
            self.reason = reason
        if status_code:
            self.status_code = status_code
        super().__init__(message)


class InvalidRequestError(BillingError):
    status_code = 400
    reason = "invalid_request"


class AuthorizationError(BillingError):
    status_code = 403
    reason = "forbidden"


class NotFoundError(BillingError):
    status_code = 404
    reason = "not_found"


class ConflictError(BillingError):
    status_code = 409
    reason = "conflict"


class ConfigurationError(BillingError):
    """Secret Stripe/webhook manquant: fatal pour la requête, jamais appliqué partiellement."""

    status_code = 500
    reason = "configuration_error"


class PromoCodeNotFoundError(BillingError):
    status_code = 500
    reason = "invalid_promo_code"


class ProcessorUnavailableError(BillingError):
    """Timeout / erreur réseau Stripe: réessayable, ne signifie jamais « déjà traité »."""

    status_code = 503
    reason = "processor_unavailable"


class ProcessorRequestError(BillingError):
    status_code = 400
    reason = "processor_request_failed"


class PaymentCreditIncompleteError(BillingError):
    """Verrou acquis mais crédit/ledger non écrit: à réconcilier hors bande."""

    status_code = 500
    reason = "payment_credit_incomplete"

    def __init__(self, message: str, session_id: str):
        self.session_id = session_id
        super().__init__(message)
