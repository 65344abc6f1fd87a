"""
Jobs de réconciliation hors bande.

Usage:
    python -m billing_backend.reconciliation referral-rewards [--dry-run] [--max=N]
    python -m billing_backend.reconciliation orphaned-locks [--max=N]

Le résultat est imprimé en JSON sur stdout; code de sortie 1 si des erreurs
(referral-rewards) ou des verrous orphelins (orphaned-locks) sont trouvés.
"""
import argparse
import json
import logging
import os
import sys

from billing_backend.reconciliation.referral_rewards import reconcile_referral_rewards
from billing_backend.reconciliation.orphaned_locks import find_orphaned_locks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="billing_backend.reconciliation", description="Billing reconciliation jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    rewards = sub.add_parser("referral-rewards", help="Apply missing referral rewards.")
    rewards.add_argument("--dry-run", action="store_true", help="Plan only, write nothing.")
    rewards.add_argument("--max", type=int, default=None, help="Doctors to scan (default 1000, max 5000).")

    locks = sub.add_parser("orphaned-locks", help="Report payment locks without a wallet credit.")
    locks.add_argument("--max", type=int, default=None, help="Locks to scan (default 1000, max 5000).")
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper(), stream=sys.stderr)
    args = build_parser().parse_args(argv)

    if args.command == "referral-rewards":
        summary = reconcile_referral_rewards(dry_run=args.dry_run, max_doctors=args.max)
        print(json.dumps(summary, indent=2))
        return 1 if summary["errors"] > 0 else 0

    report = find_orphaned_locks(max_locks=args.max)
    print(json.dumps(report, indent=2))
    return 1 if report["orphaned"] > 0 else 0


if __name__ == "__main__":
    sys.exit(main())
