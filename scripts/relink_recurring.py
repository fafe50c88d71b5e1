#!/usr/bin/env python3
"""Link a month's unlinked recurring charges to bills.

Usage:
    python -m scripts.relink_recurring [--month YYYY-MM] [--dry-run]

Recurring outflows saved without a bill (for example because bill creation
failed during import) are run through the same matching as an import: an
existing active bill whose name overlaps the merchant is reused, otherwise a
new bill is created. Bills created here are reused for later charges from
the same merchant.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from src.backend.client import BackendClient
from src.backend.repository import Repository
from src.backend.session import load_session
from src.categorize.bill_match import BillLedger, find_matching_bill, resolve_bill
from src.categorize.pipeline import ClassifiedTransaction
from src.parsers.base import ParsedTransaction
from src.reports.summary import current_month


def _as_classified(txn) -> ClassifiedTransaction:
    return ClassifiedTransaction(
        parsed=ParsedTransaction(
            bank_account_id="",
            bank_transaction_id="",
            date=txn.date,
            description=txn.description,
            amount=txn.amount,
            balance=0.0,
            bank_category="",
        ),
        transaction_type=txn.transaction_type,
        merchant=txn.merchant,
    )


def relink(repo: Repository, month: str, dry_run: bool = False) -> int:
    """Link the month's unlinked recurring outflows. Returns the linked count."""
    unlinked = [
        t for t in repo.list_transactions(month=month, transaction_type="recurring")
        if not t.bill_id and t.amount < 0
    ]
    if not unlinked:
        print(f"No unlinked recurring charges in {month}.")
        return 0

    print(f"Found {len(unlinked)} unlinked recurring charges in {month}")

    ledger = BillLedger(active_bills=repo.list_active_bills())
    linked = 0
    would_create = set()

    for txn in unlinked:
        if dry_run:
            match = find_matching_bill(txn.merchant, ledger.active_bills)
            target = f"bill {match.id} ({match.name})" if match else "new bill"
            if match is None:
                would_create.add(txn.merchant.lower())
            print(f"  {txn.date} {txn.amount:>10.2f}  {txn.merchant[:40]:<40} -> {target}")
            continue

        bill_id = resolve_bill(_as_classified(txn), ledger, repo.insert_bill, repo.user_id)
        if bill_id is None:
            print(f"  Could not link {txn.id} ({txn.merchant})")
            continue
        repo.mark_transaction_recurring(txn.id, bill_id, True)
        linked += 1

    print("\nResults:")
    if dry_run:
        print(f"  New bills needed: {len(would_create)}")
        print("\n(dry run, no changes written)")
    else:
        print(f"  Linked:        {linked}")
        print(f"  Bills created: {ledger.created_count}")
    return linked


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Link unlinked recurring charges to bills")
    parser.add_argument("--month", help="Month to scan (YYYY-MM), default current")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    args = parser.parse_args(argv)

    session = load_session(Path(os.environ.get("FINANCE_SESSION_FILE", ".billfold-session.json")))
    if session is None:
        print("Not signed in. Run 'billfold login' first.")
        sys.exit(1)

    client = BackendClient(
        base_url=os.environ.get("FINANCE_API_BASE_URL", ""),
        api_key=os.environ.get("FINANCE_API_KEY"),
        session=session,
    )
    try:
        relink(Repository(client), args.month or current_month(), dry_run=args.dry_run)
    finally:
        client.close()


if __name__ == "__main__":
    main()
