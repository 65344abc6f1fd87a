"""
Module 'ledger' (feature-first): historique des paiements normalisé et dédoublonné.
"""

from .normalize import normalize_wallet_record, normalize_checkout_log
from .merge import canonical_key, dedupe_exact, collapse_near_duplicates, sort_entries, merge_ledger
from .service import build_doctor_ledger, get_doctor_ledger

__all__ = [
    "normalize_wallet_record",
    "normalize_checkout_log",
    "canonical_key",
    "dedupe_exact",
    "collapse_near_duplicates",
    "sort_entries",
    "merge_ledger",
    "build_doctor_ledger",
    "get_doctor_ledger",
]
