"""
Module 'reconciliation': jobs hors bande (bonus de parrainage, verrous orphelins).
"""

from .referral_rewards import is_referral_eligible, reconcile_referral_rewards
from .orphaned_locks import find_orphaned_locks

__all__ = ["is_referral_eligible", "reconcile_referral_rewards", "find_orphaned_locks"]
