"""
Module 'payments' (feature-first): point d'entrée public.
Réunit checkout, confirmation idempotente, webhook, parrainage, client Stripe et repository BD.
"""

from .metadata import months_delta_for_interval, session_email, session_view, make_metadata
from .stripe_client import require_stripe, create_session, get_session, construct_event
from .repository import (
    get_doctor,
    acquire_payment_lock,
    increment_wallet_months,
    flip_referral_latch,
    insert_payment_record,
    insert_checkout_log,
)
from .checkout import create_checkout
from .referral import apply_referral_bonus
from .service import credit_session, confirm_session_by_id, handle_webhook_event

__all__ = [
    # metadata
    "months_delta_for_interval",
    "session_email",
    "session_view",
    "make_metadata",
    # stripe
    "require_stripe",
    "create_session",
    "get_session",
    "construct_event",
    # repository
    "get_doctor",
    "acquire_payment_lock",
    "increment_wallet_months",
    "flip_referral_latch",
    "insert_payment_record",
    "insert_checkout_log",
    # services
    "create_checkout",
    "apply_referral_bonus",
    "credit_session",
    "confirm_session_by_id",
    "handle_webhook_event",
]
