"""
Fusion du journal de paiements: dédoublonnage exact, regroupement heuristique, tri, limite.

Fonctions pures sur des entrées déjà normalisées (voir ledger.normalize). Le
résultat ne dépend pas de l'ordre des entrées.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from billing_backend import config
from billing_backend.utils.dates import parse_timestamp
from .normalize import WALLET_COLLECTION

SUCCESS_STATUSES = frozenset({"confirmed", "paid", "succeeded", "complete", "completed", "credited"})
PENDING_STATUSES = frozenset({"created", "pending", "open", "processing"})

CHECKOUT_REF_PREFIX = "cs_"
INVOICE_REF_PREFIX = "in_"


def status_class(status: str) -> str:
    """success pour tout statut réglé positivement, sinon le statut lui-même."""
    s = (status or "").lower()
    return "success" if s in SUCCESS_STATUSES else s


def _status_rank(status: str) -> int:
    s = (status or "").lower()
    if s in SUCCESS_STATUSES:
        return 0
    if s in PENDING_STATUSES:
        return 2
    return 1


def _ts(entry: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(entry.get("createdAt"))


def _ts_key(entry: Dict[str, Any]) -> float:
    dt = _ts(entry)
    return dt.timestamp() if dt else float("inf")


def _is_wallet(entry: Dict[str, Any]) -> bool:
    return entry.get("sourceCollection") == WALLET_COLLECTION


def _is_checkout_ref(entry: Dict[str, Any]) -> bool:
    return str(entry.get("referenceId") or "").startswith(CHECKOUT_REF_PREFIX)


def _is_invoice_ref(entry: Dict[str, Any]) -> bool:
    return str(entry.get("referenceId") or "").startswith(INVOICE_REF_PREFIX)


def _is_zero(entry: Dict[str, Any]) -> bool:
    return not entry.get("amount")


def canonical_key(entry: Dict[str, Any]) -> str:
    """type|référence; une entrée sans référence n'est identique qu'à elle-même."""
    ref = entry.get("referenceId")
    if ref:
        return f"{entry.get('type')}|{ref}"
    return f"{entry.get('sourceCollection')}:{entry.get('id')}"


def preference_key(entry: Dict[str, Any]) -> tuple:
    """
    Ordre de préférence entre représentations d'une même transaction (plus petit = préféré):
    portefeuille natif, statut réglé plutôt qu'en attente, montant non nul,
    vraie référence de session Checkout, createdAt le plus ancien, puis id.
    """
    return (
        not _is_wallet(entry),
        _status_rank(entry.get("status")),
        _is_zero(entry),
        not _is_checkout_ref(entry),
        _ts_key(entry),
        str(entry.get("id") or ""),
    )


def dedupe_exact(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    best: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        key = canonical_key(entry)
        current = best.get(key)
        if current is None or preference_key(entry) < preference_key(current):
            best[key] = entry
    return list(best.values())


def _dominates(kept: Dict[str, Any], other: Dict[str, Any], klass: str) -> bool:
    """kept rend other redondant (mêmes médecin, type et classe de statut déjà vérifiés)."""
    if _is_zero(other) and not _is_zero(kept):
        return True
    if _is_invoice_ref(other) and _is_checkout_ref(kept):
        return True
    # Montant identique: uniquement entre paiements réglés
    return (
        klass == "success"
        and kept.get("amount") == other.get("amount")
        and kept.get("currency") == other.get("currency")
    )


def collapse_near_duplicates(entries: List[Dict[str, Any]], window_seconds: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Regroupe les quasi-doublons stripe_payment d'un même médecin et d'une même classe
    de statut dont les createdAt sont à moins de window_seconds:
    - montant nul face à un montant non nul
    - référence de facture (in_) face à une référence de session (cs_)
    - montant identique (classe success uniquement)
    Les autres types et les entrées sans date passent inchangés.
    """
    window = config.LEDGER_DUPLICATE_WINDOW_SECONDS if window_seconds is None else window_seconds
    passthrough: List[Dict[str, Any]] = []
    groups: Dict[tuple, List[Dict[str, Any]]] = {}
    for entry in entries:
        if entry.get("type") != "stripe_payment" or _ts(entry) is None:
            passthrough.append(entry)
            continue
        key = (entry.get("doctorId"), status_class(entry.get("status")))
        groups.setdefault(key, []).append(entry)

    kept_all: List[Dict[str, Any]] = []
    for (_doctor, klass), group in groups.items():
        group.sort(key=lambda e: (
            _is_zero(e),
            not _is_checkout_ref(e),
            not _is_wallet(e),
            _ts_key(e),
            str(e.get("sourceCollection") or ""),
            str(e.get("id") or ""),
        ))
        kept: List[Dict[str, Any]] = []
        for entry in group:
            t = _ts_key(entry)
            if any(abs(t - _ts_key(k)) <= window and _dominates(k, entry, klass) for k in kept):
                continue
            kept.append(entry)
        kept_all.extend(kept)
    return passthrough + kept_all


def sort_entries(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """createdAt décroissant (entrées sans date en dernier), id en départage."""
    ordered = sorted(entries, key=lambda e: str(e.get("id") or ""))
    return sorted(ordered, key=lambda e: -_ts_key(e) if _ts(e) else float("inf"))


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None or limit <= 0:
        return config.LEDGER_DEFAULT_LIMIT
    return min(int(limit), config.LEDGER_MAX_LIMIT)


def merge_ledger(entries: Iterable[Dict[str, Any]], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    unique = dedupe_exact(entries)
    collapsed = collapse_near_duplicates(unique)
    return sort_entries(collapsed)[:clamp_limit(limit)]
