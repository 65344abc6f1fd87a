import logging
from fastapi import Request, HTTPException, Depends
from typing import Dict, Any

from billing_backend.errors import ConfigurationError

logger = logging.getLogger(__name__)

def bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return ""

def get_current_user(request: Request) -> Dict[str, Any]:
    # Jeton d'identité Bearer obligatoire sur tous les appels mutatifs
    token = bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="unauthorized")

    try:
        # Délégué au service Auth
        from billing_backend.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
    except ConfigurationError:
        raise
    except Exception:
        logger.info("security.get_current_user: token rejected")
        raise HTTPException(status_code=401, detail="unauthorized")

    if not user.get("id") or not user.get("email"):
        raise HTTPException(status_code=401, detail="unauthorized")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="forbidden")
    return user

def is_doctor_owner(doctor: Dict[str, Any], user: Dict[str, Any]) -> bool:
    """Le médecin appartient à l'appelant si user_uid correspond à son id, ou si les emails concordent."""
    uid = str(doctor.get("user_uid") or "")
    if uid and uid == str(user.get("id") or ""):
        return True
    doctor_email = (doctor.get("email") or "").strip().lower()
    return bool(doctor_email) and doctor_email == (user.get("email") or "").strip().lower()
