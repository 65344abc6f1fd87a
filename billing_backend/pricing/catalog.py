"""
Catalogue des plans et substitution par la surcharge de prix (pricing_settings).
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from billing_backend import config

# module billing_backend.pricing.catalog
# Montants en unités mineures (cents USD, cents LKR)
PLAN_CATALOG: Dict[str, Dict[str, Any]] = {
    "professional_monthly_usd": {"amount": 2000, "currency": "USD", "interval": "month"},
    "professional_annual_usd": {"amount": 20000, "currency": "USD", "interval": "year"},
    "professional_monthly_lkr": {"amount": 500000, "currency": "LKR", "interval": "month"},
    "professional_annual_lkr": {"amount": 5000000, "currency": "LKR", "interval": "year"},
}

# Champ de la surcharge (unités majeures) pour chaque plan
OVERRIDE_FIELDS = {
    "professional_monthly_usd": "monthly_usd",
    "professional_annual_usd": "annual_usd",
    "professional_monthly_lkr": "monthly_lkr",
    "professional_annual_lkr": "annual_lkr",
}

APPLIES_TO_NEW = "new_customers"
APPLIES_TO_ALL = "all_customers"


def is_new_customer(doctor: Optional[Dict[str, Any]]) -> bool:
    """Nouveau client: aucun mois en portefeuille et aucun paiement passé."""
    d = doctor or {}
    return int(d.get("wallet_months") or 0) == 0 and not bool(d.get("payment_done"))


def override_applies(override: Optional[Dict[str, Any]], doctor: Optional[Dict[str, Any]]) -> bool:
    """
    La surcharge s'applique si:
    - enabled est vrai
    - applies_to == all_customers, ou new_customers et le médecin est nouveau
    Toute autre valeur de applies_to désactive la surcharge.
    """
    if not override or not override.get("enabled"):
        return False
    scope = str(override.get("applies_to") or "").strip().lower()
    if scope == APPLIES_TO_ALL:
        return True
    if scope == APPLIES_TO_NEW:
        return is_new_customer(doctor)
    return False


def _major_to_minor(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        minor = (Decimal(str(value)) * 100).to_integral_value()
    except (InvalidOperation, ValueError):
        return None
    return int(minor)


def resolve_plan_catalog(
    override: Optional[Dict[str, Any]],
    doctor: Optional[Dict[str, Any]],
) -> Dict[str, Dict[str, Any]]:
    """
    Retourne une copie du catalogue avec les montants de la surcharge substitués.
    - Valeurs non numériques ou sous le minimum facturable: ignorées plan par plan
    """
    catalog = {plan_id: dict(plan) for plan_id, plan in PLAN_CATALOG.items()}
    if not override_applies(override, doctor):
        return catalog
    for plan_id, field in OVERRIDE_FIELDS.items():
        minor = _major_to_minor(override.get(field))
        if minor is None or minor < config.MIN_CHECKOUT_AMOUNT:
            continue
        catalog[plan_id]["amount"] = minor
    return catalog


def get_plan(plan_id: str, catalog: Optional[Dict[str, Dict[str, Any]]] = None) -> Optional[Dict[str, Any]]:
    plans = catalog if catalog is not None else PLAN_CATALOG
    plan = plans.get((plan_id or "").strip())
    return dict(plan) if plan else None
