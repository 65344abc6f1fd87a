from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from billing_backend.utils.security import require_user
from billing_backend.utils.rate_limit import optional_rate_limit
from billing_backend.ledger import service as ledger_service

router = APIRouter(prefix="/api/v1/ledger", tags=["Ledger API"])

# module billing_backend.ledger.views
@router.get("/doctors/{doctor_id}", dependencies=[Depends(optional_rate_limit(times=60, seconds=60))])
def get_doctor_ledger(
    doctor_id: str,
    email: Optional[str] = None,
    limit: Optional[int] = Query(default=None, ge=1),
    user: Dict[str, Any] = Depends(require_user),
) -> Dict[str, Any]:
    """
    Historique fusionné des paiements d'un médecin (portefeuille + journal Stripe).
    - Accès: propriétaire du médecin ou admin
    - limit: 200 par défaut, plafonné à LEDGER_MAX_LIMIT
    - Réponse: {"success": true, "records": [...]}
    """
    return ledger_service.get_doctor_ledger(doctor_id, user, email=email, limit=limit)
