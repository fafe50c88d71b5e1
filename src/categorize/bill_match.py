"""Bill matching: links recurring charges to bills, creating bills as needed.

For each recurring outflow in an import batch, in order:
1. A bill already created earlier in this batch for the same merchant
   (case-insensitive) is reused.
2. Otherwise the first active bill whose name contains the merchant, or is
   contained in it (case-insensitive), is used. No scoring: first hit wins.
3. Otherwise a new bill is created from the charge and recorded in the
   ledger, so later rows in the batch match it.

The BillLedger is the only state carried between rows and lives for exactly
one import. A bill-creation failure leaves that row unlinked and is logged;
it never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from src.backend.models import Bill
from src.categorize.pipeline import ClassifiedTransaction

logger = logging.getLogger(__name__)


@dataclass
class BillLedger:
    """Accumulator threaded through one batch.

    Attributes:
        active_bills: Active bills, in backend order, plus bills created
            during this batch (appended).
        created: lower-cased merchant → bill created in this batch.
    """
    active_bills: list[Bill]
    created: dict[str, Bill] = field(default_factory=dict)

    @property
    def created_count(self) -> int:
        return len(self.created)

    def created_for(self, merchant: str) -> Bill | None:
        return self.created.get(merchant.lower())

    def record(self, merchant: str, bill: Bill) -> None:
        self.created[merchant.lower()] = bill
        self.active_bills.append(bill)


def find_matching_bill(merchant: str, bills: list[Bill]) -> Bill | None:
    """Return the first bill whose name contains, or is contained in, merchant."""
    merchant_lower = merchant.lower()
    for bill in bills:
        name_lower = (bill.name or "").lower()
        if merchant_lower in name_lower or name_lower in merchant_lower:
            return bill
    return None


def day_of_month(iso_date: str) -> int | None:
    """'2024-03-05' → 5. None if the date isn't YYYY-MM-DD."""
    try:
        return datetime.strptime(iso_date, "%Y-%m-%d").day
    except ValueError:
        return None


def new_bill_for(row: ClassifiedTransaction, user_id: str | int) -> Bill:
    """Bill draft inferred from a recurring charge."""
    return Bill(
        user_id=user_id,
        name=row.merchant,
        due_day=day_of_month(row.parsed.date),
        amount_expected=abs(row.parsed.amount),
        is_variable=False,
        autopay=False,
        active=True,
    )


def resolve_bill(
    row: ClassifiedTransaction,
    ledger: BillLedger,
    create_bill: Callable[[Bill], Bill],
    user_id: str | int,
    on_create: Callable[[str], None] | None = None,
) -> int | None:
    """Return the bill id for one row, creating a bill if nothing matches."""
    if not row.is_recurring_outflow:
        return None

    existing = ledger.created_for(row.merchant)
    if existing is not None:
        return existing.id

    matched = find_matching_bill(row.merchant, ledger.active_bills)
    if matched is not None:
        return matched.id

    if on_create is not None:
        on_create(row.merchant)
    try:
        bill = create_bill(new_bill_for(row, user_id))
    except Exception:
        logger.exception("Failed to create bill for %s", row.merchant)
        return None

    ledger.record(row.merchant, bill)
    logger.info("Created bill %s for %s", bill.id, row.merchant)
    return bill.id


def link_bills(
    rows: list[ClassifiedTransaction],
    ledger: BillLedger,
    create_bill: Callable[[Bill], Bill],
    user_id: str | int,
    on_create: Callable[[str], None] | None = None,
) -> list[ClassifiedTransaction]:
    """Fold the batch through the ledger, returning rows with bill_id set.

    Rows are processed strictly in order; row N+1 sees every bill created
    for rows 1..N.
    """
    linked: list[ClassifiedTransaction] = []
    for row in rows:
        bill_id = resolve_bill(row, ledger, create_bill, user_id, on_create=on_create)
        linked.append(replace(row, bill_id=bill_id))
    return linked
