"""
Module 'pricing' (feature-first): catalogue des plans, surcharge et résolution du prix.
"""

from .catalog import PLAN_CATALOG, is_new_customer, override_applies, resolve_plan_catalog, get_plan
from .resolver import (
    SOURCE_INDIVIDUAL,
    SOURCE_PROMO,
    SOURCE_NONE,
    normalize_promo_code,
    is_promo_applicable,
    apply_discount,
    resolve_checkout_price,
)

__all__ = [
    # catalog
    "PLAN_CATALOG",
    "is_new_customer",
    "override_applies",
    "resolve_plan_catalog",
    "get_plan",
    # resolver
    "SOURCE_INDIVIDUAL",
    "SOURCE_PROMO",
    "SOURCE_NONE",
    "normalize_promo_code",
    "is_promo_applicable",
    "apply_discount",
    "resolve_checkout_price",
]
