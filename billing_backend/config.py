# billing_backend.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du moteur de facturation.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), CORS/hosts
- Expose les réglages du ledger (fenêtre de doublons, devise par défaut, limites)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

# Supabase: URLs et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# Comptes admin (lecture du ledger de n'importe quel médecin)
ADMIN_EMAILS = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]

# Stripe: clé secrète, secret webhook, timeouts réseau
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_TIMEOUT_SECONDS = _int_env("STRIPE_TIMEOUT_SECONDS", 10)
STRIPE_MAX_NETWORK_RETRIES = _int_env("STRIPE_MAX_NETWORK_RETRIES", 1)

# Redirections du checkout ({CHECKOUT_SESSION_ID} est substitué par Stripe)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")
CHECKOUT_SUCCESS_URL = _clean_env(
    os.getenv("CHECKOUT_SUCCESS_URL") or f"{BASE_URL}/payments?payment=success&session_id={{CHECKOUT_SESSION_ID}}"
)
CHECKOUT_CANCEL_URL = _clean_env(os.getenv("CHECKOUT_CANCEL_URL") or f"{BASE_URL}/payments?payment=cancel")

# Montant minimal facturable (unités mineures) accepté par Stripe
MIN_CHECKOUT_AMOUNT = _int_env("MIN_CHECKOUT_AMOUNT", 50)

# Ledger: devise de repli, fenêtre de regroupement des quasi-doublons, limites de lecture
DEFAULT_CURRENCY = (_clean_env(os.getenv("DEFAULT_CURRENCY")) or "USD").upper()
LEDGER_DUPLICATE_WINDOW_SECONDS = _int_env("LEDGER_DUPLICATE_WINDOW_SECONDS", 120)
LEDGER_DEFAULT_LIMIT = _int_env("LEDGER_DEFAULT_LIMIT", 200)
LEDGER_MAX_LIMIT = _int_env("LEDGER_MAX_LIMIT", 500)
