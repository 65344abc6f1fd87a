"""
Résolution du prix de checkout (fonction pure).

Entrées explicites: plan, instantané du médecin, surcharge de prix, promo, code
saisi, éligibilité à la remise individuelle et horloge. Aucune lecture en base ici:
les repositories fournissent les instantanés, les tests les construisent à la main.
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Optional

from billing_backend import config
from billing_backend.errors import InvalidRequestError, PromoCodeNotFoundError
from billing_backend.utils.dates import parse_timestamp, utcnow
from .catalog import resolve_plan_catalog, get_plan

SOURCE_INDIVIDUAL = "individual"
SOURCE_PROMO = "promo"
SOURCE_NONE = "none"


def normalize_promo_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _percent(value: Any) -> Decimal:
    """Pourcentage borné à [0, 100]; toute valeur illisible vaut 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        pct = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not pct.is_finite():
        return Decimal(0)
    return max(Decimal(0), min(Decimal(100), pct))


def is_promo_applicable(
    promo: Dict[str, Any],
    *,
    plan_id: str,
    currency: str,
    now: datetime,
) -> bool:
    """
    Une promo existante n'est applicable que si:
    - is_active est vrai
    - now est dans [valid_from, valid_until] (bornes incluses, absentes = ouvertes)
    - redemption_count < max_redemptions (max absent = illimité)
    - la devise et la liste de plans, si renseignées, couvrent le plan demandé
    """
    if not promo.get("is_active"):
        return False
    valid_from = parse_timestamp(promo.get("valid_from"))
    valid_until = parse_timestamp(promo.get("valid_until"))
    if valid_from and now < valid_from:
        return False
    if valid_until and now > valid_until:
        return False
    max_redemptions = promo.get("max_redemptions")
    if max_redemptions is not None and int(promo.get("redemption_count") or 0) >= int(max_redemptions):
        return False
    promo_currency = str(promo.get("currency") or "").strip().upper()
    if promo_currency and promo_currency != currency.upper():
        return False
    plan_ids = promo.get("plan_ids") or []
    if plan_ids and plan_id not in plan_ids:
        return False
    return True


def apply_discount(amount: int, percent: Decimal) -> int:
    """Arrondi au plus proche (demi vers le haut), plancher au minimum facturable."""
    raw = Decimal(amount) * (Decimal(100) - percent) / Decimal(100)
    discounted = int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(discounted, config.MIN_CHECKOUT_AMOUNT)


def resolve_checkout_price(
    *,
    plan_id: str,
    doctor: Optional[Dict[str, Any]],
    override: Optional[Dict[str, Any]] = None,
    promo: Optional[Dict[str, Any]] = None,
    promo_code: Optional[str] = None,
    individual_discount_eligible: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Calcule le montant final d'un plan pour un médecin.
    - Plan inconnu => InvalidRequestError(invalid_plan)
    - Code promo saisi mais introuvable => PromoCodeNotFoundError (aucune session, aucun log)
    - Promo trouvée mais non applicable => contribue 0 %, promoValidated False
    - Remise individuelle vs promo: la plus grande gagne, égalité => individual, jamais cumulées
    """
    now = now or utcnow()
    catalog = resolve_plan_catalog(override, doctor)
    plan = get_plan(plan_id, catalog)
    if not plan:
        raise InvalidRequestError(f"Unknown plan '{plan_id}'.", reason="invalid_plan")

    code = normalize_promo_code(promo_code)
    promo_percent = Decimal(0)
    promo_validated = False
    if code:
        if not promo:
            raise PromoCodeNotFoundError(f"Promo code '{code}' does not exist.")
        if is_promo_applicable(promo, plan_id=plan_id, currency=plan["currency"], now=now):
            promo_validated = True
            promo_percent = _percent(promo.get("percent_off"))

    individual_percent = Decimal(0)
    if individual_discount_eligible:
        individual_percent = _percent((doctor or {}).get("admin_stripe_discount_percent"))

    if individual_percent == 0 and promo_percent == 0:
        source, percent = SOURCE_NONE, Decimal(0)
    elif individual_percent >= promo_percent:
        source, percent = SOURCE_INDIVIDUAL, individual_percent
    else:
        source, percent = SOURCE_PROMO, promo_percent

    original = int(plan["amount"])
    discounted = apply_discount(original, percent) if percent > 0 else original

    return {
        "planId": plan_id,
        "currency": plan["currency"],
        "interval": plan["interval"],
        "originalAmount": original,
        "discountedAmount": discounted,
        "discountPercent": float(percent),
        "appliedDiscountSource": source,
        "promoApplied": source == SOURCE_PROMO,
        "promoValidated": promo_validated,
        "promoCode": code if source == SOURCE_PROMO else "",
    }
