"""
Normalisation des sources du journal de paiements vers une forme unique.

Deux variantes en entrée:
- doctor_payment_records: lignes natives du portefeuille (montant en unité majeure)
- stripe_checkout_logs: journal brut Stripe (montant en unité mineure, intervalle)

Forme de sortie (camelCase, exposée telle quelle par l'API):
{id, doctorId, type, source, sourceCollection, status, monthsDelta, amount,
 currency, referenceId, createdAt, note}
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from billing_backend import config
from billing_backend.payments.metadata import months_delta_for_interval
from billing_backend.utils.dates import parse_timestamp, to_iso

WALLET_COLLECTION = "doctor_payment_records"
CHECKOUT_LOG_COLLECTION = "stripe_checkout_logs"

DEFAULT_TYPE = "stripe_payment"
DEFAULT_SOURCE = "stripe"
DEFAULT_WALLET_STATUS = "recorded"
DEFAULT_LOG_STATUS = "created"


def _number(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        n = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return n if n.is_finite() else Decimal(0)


def _amount(value: Decimal) -> float:
    # Jamais négatif, deux décimales
    return float(abs(value).quantize(Decimal("0.01")))


def _currency(value: Any) -> str:
    return (str(value or "").strip().upper()) or config.DEFAULT_CURRENCY


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def normalize_wallet_record(row: Dict[str, Any]) -> Dict[str, Any]:
    created = parse_timestamp(row.get("created_at"))
    months = row.get("months_delta")
    return {
        "id": _text(row.get("id")),
        "doctorId": _text(row.get("doctor_id")),
        "type": _text(row.get("type")) or DEFAULT_TYPE,
        "source": _text(row.get("source")) or DEFAULT_SOURCE,
        "sourceCollection": WALLET_COLLECTION,
        "status": _text(row.get("status")).lower() or DEFAULT_WALLET_STATUS,
        "monthsDelta": int(_number(months)) if months is not None else 0,
        "amount": _amount(_number(row.get("amount"))),
        "currency": _currency(row.get("currency")),
        "referenceId": _text(row.get("reference_id")),
        "createdAt": to_iso(created),
        "note": row.get("note") or "",
    }


def normalize_checkout_log(row: Dict[str, Any], doctor_id: str) -> Dict[str, Any]:
    """
    Ligne brute Stripe => entrée du journal.
    - amount / 100 (unité mineure => majeure), devise en majuscules
    - interval => monthsDelta (month 1, year 12, sinon 0)
    - status absent => 'created'; doctorId absent (trouvé par email) => médecin demandé
    """
    created = parse_timestamp(row.get("created_at"))
    plan = _text(row.get("plan_id"))
    return {
        "id": _text(row.get("id")) or _text(row.get("session_id")),
        "doctorId": _text(row.get("doctor_id")) or str(doctor_id),
        "type": DEFAULT_TYPE,
        "source": DEFAULT_SOURCE,
        "sourceCollection": CHECKOUT_LOG_COLLECTION,
        "status": _text(row.get("status")).lower() or DEFAULT_LOG_STATUS,
        "monthsDelta": months_delta_for_interval(row.get("interval")),
        "amount": _amount(_number(row.get("amount")) / 100),
        "currency": _currency(row.get("currency")),
        "referenceId": _text(row.get("session_id")),
        "createdAt": to_iso(created),
        "note": f"Stripe checkout {plan}".strip(),
    }
