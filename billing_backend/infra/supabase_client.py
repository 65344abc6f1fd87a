from typing import Optional
from supabase import create_client, Client
from billing_backend import config
from billing_backend.errors import ConfigurationError

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def get_supabase() -> Client:
    """Client 'anon': vérification des jetons d'identité (supabase.auth.get_user)."""
    global _supabase
    if not config.SUPABASE_URL or not config.SUPABASE_ANON:
        raise ConfigurationError("Supabase is not configured.", reason="supabase_not_configured")
    if _supabase is None:
        _supabase = create_client(config.SUPABASE_URL, config.SUPABASE_ANON)
    return _supabase

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS): toutes les lectures/écritures wallet et ledger.
    Le moteur agit pour le compte du système, jamais avec le jeton de l'appelant.
    """
    global _service_supabase
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_KEY:
        raise ConfigurationError("SUPABASE_SERVICE_KEY is missing.", reason="supabase_not_configured")
    if _service_supabase is None:
        _service_supabase = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
    return _service_supabase
