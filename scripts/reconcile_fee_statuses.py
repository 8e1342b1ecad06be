#!/usr/bin/env python3
"""
Recompute paid/balance/status of fees from their installments.

Why:
Payments recorded before distribution was centralised could leave a fee's
paid/status out of step with its installments (e.g. a fee marked "paid"
while an installment is still partial).

Strategy (safe + idempotent):
- For each fee of the school, recompute every installment's balance/status,
  take the fee's paid from the installments and recompute its balance/status.
- Report plans whose installment sum differs from the fee's net amount.
  Those amounts are not changed.

Usage:
  python3 scripts/reconcile_fee_statuses.py --dry-run --school-id 3
  python3 scripts/reconcile_fee_statuses.py --confirm --school-id 3
"""

import asyncio
import sys
from pathlib import Path

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from src.core.config import settings
from src.core.database.session import async_session
from src.core.logging_config import configure_logging
from src.core.school_settings.models import School
from src.modules.fees.service import FeeService


async def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Reconcile fee totals with installments")
    parser.add_argument("--dry-run", action="store_true", help="Preview changes, rollback at end")
    parser.add_argument("--confirm", action="store_true", help="Apply changes (COMMIT)")
    parser.add_argument(
        "--school-id", type=int, default=None, help="Limit to a single school id (default: all)"
    )
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        print("❌ ERROR: specify --dry-run or --confirm")
        sys.exit(1)
    if args.dry_run and args.confirm:
        print("❌ ERROR: choose only one of --dry-run / --confirm")
        sys.exit(1)

    configure_logging()

    print("\n" + "=" * 70)
    print("RECONCILE FEE STATUSES")
    print("=" * 70)
    print(f"\n🌍 Environment: {settings.app_env}")
    print(f"🔧 Mode: {'DRY-RUN' if args.dry_run else 'APPLY (COMMIT)'}")

    async with async_session() as session:
        if args.school_id is not None:
            school_ids = [args.school_id]
        else:
            school_ids = list((await session.execute(select(School.id).order_by(School.id))).scalars())

    total_updated = 0
    for school_id in school_ids:
        async with async_session() as session:
            service = FeeService(session)
            result = await service.reconcile_school(
                school_id, dry_run=args.dry_run, actor="reconcile-script"
            )
        total_updated += result.fees_updated
        print(f"\n🏫 School {school_id}: {result.fees_updated}/{result.fees_checked} fees changed")
        for entry in result.entries:
            print(
                f"- Fee {entry.fee_id}: paid {entry.old_paid} -> {entry.new_paid}, "
                f"status {entry.old_status} -> {entry.new_status}"
            )
        for fee_id in result.plan_mismatches:
            print(f"⚠️  Fee {fee_id}: installments do not add up to the net amount")

    if args.dry_run:
        print(f"\n🧪 DRY-RUN: would change {total_updated} fees.")
    else:
        print(f"\n✅ Applied: changed {total_updated} fees.")


if __name__ == "__main__":
    asyncio.run(main())
