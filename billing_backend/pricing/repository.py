"""
Accès aux données de tarification: surcharge singleton et codes promo (lecture seule).
"""
from typing import Any, Dict, Optional
import logging
import billing_backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

PRICING_SETTINGS_ID = "stripe_pricing"

# module billing_backend.pricing.repository
def get_pricing_override() -> Optional[Dict[str, Any]]:
    """
    Lit la ligne singleton pricing_settings (id='stripe_pricing').
    - Retourne None si absente ou en cas d'erreur (prix catalogue utilisés)
    """
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("pricing_settings")
            .select("*")
            .eq("id", PRICING_SETTINGS_ID)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("pricing.repository.get_pricing_override failed")
        return None

def find_promo_code(code: str) -> Optional[Dict[str, Any]]:
    """
    Cherche un code promo (stocké en majuscules).
    Les erreurs du store sont propagées: un code saisi ne doit jamais être ignoré en silence.
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        return None
    res = (
        supabase_client.get_service_supabase()
        .table("promo_codes")
        .select("*")
        .eq("code", normalized)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None
