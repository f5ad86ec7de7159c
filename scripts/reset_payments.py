#!/usr/bin/env python3
"""
Clear every student's payment history.

All payment records are deleted, every student goes back to
enrollment_pending and every custom fee back to due. Courses, students and
custom fees themselves are kept; the audit log keeps one entry for the reset.

WARNING: this deletes data. Take a database backup first.

Usage:
    python scripts/reset_payments.py --dry-run  # show what would change
    python scripts/reset_payments.py --confirm  # actually clear
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.core.config import settings
from src.core.database.session import async_session
from src.modules.billing.service import BillingService

CONFIRMATION_PHRASE = "CLEAR ALL PAYMENTS"


async def reset_payments(dry_run: bool) -> None:
    async with async_session() as session:
        service = BillingService(session)
        result = await service.clear_all_payment_histories(dry_run=dry_run)

    print("\n" + "=" * 70)
    print("DRY-RUN: nothing was changed" if dry_run else "PAYMENT HISTORIES CLEARED")
    print("=" * 70)
    print(f"  payments deleted:         {result.payments_deleted}")
    print(f"  students reset:           {result.students_reset}")
    print(f"  paid custom fees reset:   {result.custom_fees_reset}")
    if dry_run:
        print("\nRun with --confirm to apply.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Clear all student payment histories")
    parser.add_argument("--dry-run", action="store_true", help="Show counts without changing anything")
    parser.add_argument("--confirm", action="store_true", help="Actually delete (no dry-run)")
    args = parser.parse_args()

    if not args.dry_run and not args.confirm:
        print("ERROR: pass --dry-run or --confirm")
        sys.exit(1)

    dry_run = args.dry_run
    db_host = settings.database_url.split("@")[1] if "@" in settings.database_url else "unknown"
    print(f"\nEnvironment: {settings.app_env}")
    print(f"Database:    {db_host}")
    print(f"Mode:        {'DRY-RUN' if dry_run else 'EXECUTE'}")

    if not dry_run:
        print("\nYou are about to DELETE ALL PAYMENTS. This cannot be undone.")
        response = input(f"Type '{CONFIRMATION_PHRASE}' to continue: ")
        if response != CONFIRMATION_PHRASE:
            print("Cancelled")
            sys.exit(0)

    try:
        asyncio.run(reset_payments(dry_run))
    except Exception as e:
        print(f"\nScript failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
