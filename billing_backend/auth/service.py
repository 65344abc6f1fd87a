from typing import Dict, Any
from billing_backend import config
from .repository import get_user_from_access_token as _repo_get_user_from_token

def determine_role(email: str | None, app_metadata: Dict[str, Any] | None) -> str:
    """
    Rôle applicatif:
    - admin si app_metadata.role == "admin" (posé côté serveur, non modifiable par l'utilisateur)
    - admin si l'email figure dans ADMIN_EMAILS
    - sinon "user"
    """
    if str((app_metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    if (email or "").strip().lower() in config.ADMIN_EMAILS:
        return "admin"
    return "user"

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, role, token}
    - L'email vérifié fait autorité pour le contrôle de propriété des sessions Stripe
    """
    raw = _repo_get_user_from_token(access_token)
    email = (raw.get("email") or "").strip()
    role = determine_role(email, raw.get("app_metadata"))
    return {"id": raw.get("id"), "email": email, "role": role, "token": access_token}
