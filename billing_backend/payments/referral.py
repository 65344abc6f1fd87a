"""
Bonus de parrainage: un mois offert au parrain, au plus une fois par médecin parrainé.

Le loquet referral_bonus_applied est basculé par UPDATE conditionnel avant tout
crédit; seul l'appelant qui l'a basculé crédite le parrain.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from billing_backend import config
from billing_backend.utils.dates import add_months, parse_timestamp, to_iso, utcnow
from . import repository

logger = logging.getLogger(__name__)

REFERRAL_MONTHS = 1

# module billing_backend.payments.referral
def referral_record_id(referred_id: str) -> str:
    return f"referral_reward_{referred_id}"

def resolve_referrer(ref_key: str) -> Optional[Dict[str, Any]]:
    """Le parrain est désigné par son id ou par son code court (doctor_id_short)."""
    return repository.get_doctor(ref_key) or repository.find_doctor_by_short_id(ref_key)

def is_eligible_now(referred: Dict[str, Any], now: datetime) -> bool:
    eligible_at = parse_timestamp(referred.get("referral_eligible_at"))
    return eligible_at is not None and eligible_at <= now

def check_referral(referred: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Pré-conditions du bonus (aucune écriture):
    - loquet non basculé, médecin parrainé, approuvé et actif
    - referral_eligible_at renseigné et atteint
    - parrain trouvé et différent du filleul
    Retour: {"ok": bool, "reason": str|None, "referrer": dict|None}
    """
    if referred.get("referral_bonus_applied"):
        return {"ok": False, "reason": "already_applied", "referrer": None}
    ref_key = str(referred.get("referred_by_doctor_id") or "").strip()
    if not ref_key:
        return {"ok": False, "reason": "not_referred", "referrer": None}
    # Seul un refus explicite (is_approved = false) bloque; une valeur absente ne bloque pas
    if referred.get("is_approved") is False or referred.get("is_disabled"):
        return {"ok": False, "reason": "referred_not_eligible", "referrer": None}
    if not is_eligible_now(referred, now or utcnow()):
        return {"ok": False, "reason": "not_eligible", "referrer": None}
    referrer = resolve_referrer(ref_key)
    if not referrer:
        return {"ok": False, "reason": "referrer_not_found", "referrer": None}
    if str(referrer.get("id")) == str(referred.get("id")):
        return {"ok": False, "reason": "self_referral", "referrer": None}
    return {"ok": True, "reason": None, "referrer": referrer}

def _credit_referrer(referrer_id: str, now: datetime) -> Dict[str, Any]:
    def _build(row: Dict[str, Any]) -> Dict[str, Any]:
        current = parse_timestamp(row.get("access_expires_at"))
        start = current if current and current > now else now
        return {
            "wallet_months": int(row.get("wallet_months") or 0) + REFERRAL_MONTHS,
            "access_expires_at": to_iso(add_months(start, REFERRAL_MONTHS)),
        }
    return repository.apply_wallet_update(referrer_id, _build)

def apply_referral_bonus(referred: Dict[str, Any], *, now: Optional[datetime] = None, dry_run: bool = False) -> Dict[str, Any]:
    """
    Applique le bonus de parrainage pour le médecin parrainé.
    - skipped: pré-condition non remplie ou loquet déjà basculé par un autre processus
    - planned: dry_run, rien n'est écrit
    - applied: loquet basculé, parrain crédité (+1 mois, accès prolongé d'un mois), entrée referral_reward
    Les erreurs du store après bascule du loquet sont propagées (à réconcilier hors bande).
    """
    now = now or utcnow()
    referred_id = str(referred.get("id"))
    check = check_referral(referred, now)
    if not check["ok"]:
        return {"status": "skipped", "reason": check["reason"], "doctorId": referred_id, "referrerId": None}

    referrer_id = str(check["referrer"].get("id"))
    if dry_run:
        return {"status": "planned", "reason": None, "doctorId": referred_id, "referrerId": referrer_id}

    if not repository.flip_referral_latch(referred_id):
        return {"status": "skipped", "reason": "already_applied", "doctorId": referred_id, "referrerId": referrer_id}

    try:
        _credit_referrer(referrer_id, now)
        repository.insert_payment_record({
            "id": referral_record_id(referred_id),
            "doctor_id": referrer_id,
            "type": "referral_reward",
            "source": "referral",
            "status": "credited",
            "months_delta": REFERRAL_MONTHS,
            "amount": 0,
            "currency": config.DEFAULT_CURRENCY,
            "reference_id": referred_id,
            "note": f"Referral reward for doctor {referred_id}",
            "created_at": to_iso(now),
        })
    except Exception:
        logger.error(
            "payments.referral latch flipped but referrer not credited referred_id=%s referrer_id=%s",
            referred_id, referrer_id,
        )
        raise

    logger.info("payments.referral applied referred_id=%s referrer_id=%s", referred_id, referrer_id)
    return {"status": "applied", "reason": None, "doctorId": referred_id, "referrerId": referrer_id}
