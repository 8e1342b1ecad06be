#!/usr/bin/env python3
"""
Move legacy receipt numbers out of payment notes into receipt_number.

Why:
Before the receipt_number columns existed, receipt numbers were appended to
fees.payment_note / installments.payment_note as "[RN:<number>]". Reading
them back meant parsing free text, and nothing stopped two writers from
tagging the same record.

Strategy (safe + idempotent):
- Find fees and installments whose payment_note carries an [RN:...] tag.
- Write the number with the conditional "WHERE receipt_number IS NULL"
  update; records that already have a number are never overwritten.
- Strip the tag from the note.
- Raise school counters to the highest migrated sequence of their year.

Usage:
  python3 scripts/backfill_receipt_numbers_from_notes.py --dry-run
  python3 scripts/backfill_receipt_numbers_from_notes.py --confirm --school-id 3

Run after `alembic upgrade head` (migration 002_receipt_numbers).
"""

import asyncio
import sys
from pathlib import Path

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import settings
from src.core.database.session import async_session
from src.core.logging_config import configure_logging
from src.modules.fees.legacy import backfill_legacy_receipt_numbers


async def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Backfill receipt_number from [RN:...] tags in payment notes"
    )
    parser.add_argument("--dry-run", action="store_true", help="Preview changes, rollback at end")
    parser.add_argument("--confirm", action="store_true", help="Apply changes (COMMIT)")
    parser.add_argument("--school-id", type=int, default=None, help="Limit to a single school id")
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        print("❌ ERROR: specify --dry-run or --confirm")
        sys.exit(1)
    if args.dry_run and args.confirm:
        print("❌ ERROR: choose only one of --dry-run / --confirm")
        sys.exit(1)

    configure_logging()

    print("\n" + "=" * 70)
    print("BACKFILL RECEIPT NUMBERS FROM PAYMENT NOTES")
    print("=" * 70)
    print(f"\n🌍 Environment: {settings.app_env}")
    print(
        f"🗄️  DB: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'unknown'}"
    )
    print(f"🔧 Mode: {'DRY-RUN' if args.dry_run else 'APPLY (COMMIT)'}")
    if args.school_id is not None:
        print(f"🎯 Filter: school_id={args.school_id}")

    if args.confirm:
        print("\n⚠️  This will UPDATE receipt numbers, payment notes and school counters.")
        print("💡 Make a DB backup before running on production.")
        response = input("\n❓ Type 'APPLY RECEIPT BACKFILL' to continue: ")
        if response != "APPLY RECEIPT BACKFILL":
            print("\n❌ Cancelled by user")
            sys.exit(0)

    async with async_session() as session:
        report = await backfill_legacy_receipt_numbers(session, school_id=args.school_id)

        for conflict in report.conflicts:
            print(f"⚠️  {conflict}")
        for key, value in sorted(report.counters_raised.items()):
            print(f"- Counter {key} raised to {value}")

        summary = (
            f"{report.assigned} assigned, {report.already_numbered} already numbered, "
            f"{len(report.conflicts)} conflicts (of {report.scanned} tagged records)"
        )
        if args.dry_run:
            await session.rollback()
            print(f"\n🧪 DRY-RUN: would apply {summary}.")
            return

        await session.commit()
        print(f"\n✅ Applied: {summary}.")


if __name__ == "__main__":
    asyncio.run(main())
