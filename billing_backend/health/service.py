from typing import Any, Dict
import logging
from billing_backend import config
import billing_backend.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

def health_dependencies_info() -> Dict[str, Any]:
    """
    État des dépendances externes, sans exposer de secret:
    - stripe: clé secrète et secret webhook configurés
    - supabase: lecture d'une ligne de 'doctors' via le client service-role
    """
    info: Dict[str, Any] = {
        "stripe": {
            "configured": bool(config.STRIPE_SECRET_KEY),
            "webhook_configured": bool(config.STRIPE_WEBHOOK_SECRET),
        },
        "supabase": {"configured": bool(config.SUPABASE_URL and config.SUPABASE_SERVICE_KEY), "reachable": False},
    }
    if not info["supabase"]["configured"]:
        return info
    try:
        supabase_client.get_service_supabase().table("doctors").select("id").limit(1).execute()
        info["supabase"]["reachable"] = True
    except Exception as e:
        logger.warning("health.supabase unreachable: %s", e)
        info["supabase"]["error"] = type(e).__name__
    return info
