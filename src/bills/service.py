"""Bill management: CRUD, monthly payment status, and the bills overview.

Deleting a bill is a soft delete (active = False). Payment status is one
upserted BillPayment per (bill, month).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date

from src.backend.models import Bill, BillPayment, Transaction
from src.backend.repository import Repository
from src.categorize.bill_match import day_of_month

logger = logging.getLogger(__name__)


@dataclass
class BillInput:
    """Validated form input for adding or editing a bill."""
    name: str
    due_day: int | None
    amount_expected: float | None
    is_variable: bool = False
    autopay: bool = False


def validate_bill_input(
    name: str,
    due_day: float | None = None,
    amount_expected: float | None = None,
    is_variable: bool = False,
    autopay: bool = False,
) -> BillInput:
    """Normalize bill form input.

    - name is stripped and required
    - due_day outside 1..31 (or not a number) becomes None; fractions floor
    - amount_expected is dropped for variable bills

    Raises:
        ValueError: If name is blank.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValueError("Bill name is required")

    day: int | None = None
    if due_day is not None:
        try:
            n = float(due_day)
        except (TypeError, ValueError):
            n = math.nan
        if math.isfinite(n) and 1 <= n <= 31:
            day = math.floor(n)

    amount: float | None = None
    if not is_variable and amount_expected is not None:
        try:
            amount = float(amount_expected)
        except (TypeError, ValueError):
            amount = None
        if amount is not None and not math.isfinite(amount):
            amount = None

    return BillInput(
        name=trimmed,
        due_day=day,
        amount_expected=amount,
        is_variable=is_variable,
        autopay=autopay,
    )


# ── Overview ──────────────────────────────────────────────


@dataclass
class BillRow:
    bill: Bill
    payment: BillPayment | None
    linked_transactions: list[Transaction] = field(default_factory=list)

    @property
    def paid(self) -> bool:
        return bool(self.payment and self.payment.paid)

    @property
    def actual_from_transactions(self) -> float:
        return sum(abs(t.amount) for t in self.linked_transactions)


@dataclass
class BillsSummary:
    total_expected: float
    total_paid: float
    total_from_transactions: float
    remaining: float
    linked_transaction_count: int


def _transactions_by_bill(transactions: list[Transaction]) -> dict[int, list[Transaction]]:
    grouped: dict[int, list[Transaction]] = {}
    for t in transactions:
        if t.bill_id:
            grouped.setdefault(t.bill_id, []).append(t)
    return grouped


def build_bill_rows(
    bills: list[Bill],
    payments: list[BillPayment],
    transactions: list[Transaction],
) -> list[BillRow]:
    """Join bills with this month's payment and linked transactions.

    Sorted by due day; bills without one go last.
    """
    payment_by_bill = {p.bill_id: p for p in payments}
    txns_by_bill = _transactions_by_bill(transactions)
    ordered = sorted(bills, key=lambda b: b.due_day if b.due_day is not None else 99)
    return [
        BillRow(
            bill=b,
            payment=payment_by_bill.get(b.id),
            linked_transactions=txns_by_bill.get(b.id, []),
        )
        for b in ordered
    ]


def summarize_bills(rows: list[BillRow]) -> BillsSummary:
    """Totals for the month.

    Paid counts a paid bill's expected amount; remaining never goes below 0.
    """
    total_expected = sum(r.bill.amount_expected or 0 for r in rows)
    total_paid = sum(r.bill.amount_expected or 0 for r in rows if r.paid)
    return BillsSummary(
        total_expected=total_expected,
        total_paid=total_paid,
        total_from_transactions=sum(r.actual_from_transactions for r in rows),
        remaining=max(0.0, total_expected - total_paid),
        linked_transaction_count=sum(len(r.linked_transactions) for r in rows),
    )


# ── Service ───────────────────────────────────────────────


class BillService:
    """Bill and payment operations for the signed-in user."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def overview(self, month: str) -> tuple[list[BillRow], BillsSummary]:
        bills = self.repo.list_active_bills()
        payments = self.repo.list_bill_payments(month)
        transactions = self.repo.list_transactions(month=month)
        rows = build_bill_rows(bills, payments, transactions)
        return rows, summarize_bills(rows)

    def add_bill(self, data: BillInput) -> Bill:
        bill = self.repo.insert_bill(Bill(
            user_id=self.repo.user_id,
            name=data.name,
            due_day=data.due_day,
            amount_expected=data.amount_expected,
            is_variable=data.is_variable,
            autopay=data.autopay,
            active=True,
        ))
        logger.info("Added bill %s (%s)", bill.id, bill.name)
        return bill

    def edit_bill(self, bill_id: int, data: BillInput) -> Bill:
        return self.repo.update_bill(
            bill_id,
            name=data.name,
            due_day=data.due_day,
            amount_expected=data.amount_expected,
            is_variable=data.is_variable,
            autopay=data.autopay,
        )

    def delete_bill(self, bill_id: int) -> Bill:
        """Soft delete."""
        logger.info("Deactivating bill %s", bill_id)
        return self.repo.update_bill(bill_id, active=False)

    def _existing_payment(self, bill_id: int, month: str) -> BillPayment | None:
        payments = self.repo.list_bill_payments(month)
        return next((p for p in payments if p.bill_id == bill_id), None)

    def toggle_paid(
        self, bill_id: int, month: str, paid: bool, today: date | None = None,
    ) -> BillPayment | None:
        """Mark a bill paid or unpaid for a month.

        When marking paid, amount_paid is the existing payment's amount, else
        the month's linked transaction total, else the bill's expected
        amount, else 0. A zero amount or blank date left by an earlier unmark
        counts as unset. Unmarking zeroes the amount and clears the date.
        """
        existing = self._existing_payment(bill_id, month)

        if paid:
            bill = next((b for b in self.repo.list_bills() if b.id == bill_id), None)
            linked = [
                t for t in self.repo.list_transactions(month=month) if t.bill_id == bill_id
            ]
            actual = sum(abs(t.amount) for t in linked) if linked else None

            amount_paid = _first_not_none(
                (existing.amount_paid or None) if existing else None,
                actual,
                bill.amount_expected if bill else None,
                0,
            )
            paid_date = _first_not_none(
                (existing.paid_date or None) if existing else None,
                (today or date.today()).isoformat(),
            )
        else:
            amount_paid = 0
            paid_date = ""

        return self.repo.upsert_bill_payment(BillPayment(
            user_id=self.repo.user_id,
            bill_id=bill_id,
            month=month,
            paid=paid,
            paid_date=paid_date,
            amount_paid=amount_paid,
            notes=(existing.notes if existing else None) or "",
        ))

    def update_payment(
        self,
        bill_id: int,
        month: str,
        paid_date: str | None = None,
        amount_paid: float | None = None,
        notes: str | None = None,
    ) -> BillPayment | None:
        """Edit payment details, keeping the paid flag and unspecified fields."""
        existing = self._existing_payment(bill_id, month)
        return self.repo.upsert_bill_payment(BillPayment(
            user_id=self.repo.user_id,
            bill_id=bill_id,
            month=month,
            paid=existing.paid if existing else False,
            paid_date=_first_not_none(paid_date, existing.paid_date if existing else None, ""),
            amount_paid=_first_not_none(amount_paid, existing.amount_paid if existing else None, 0),
            notes=_first_not_none(notes, existing.notes if existing else None, ""),
        ))

    def create_bill_from_transaction(self, txn: Transaction) -> Bill:
        """New bill from a transaction, then link the transaction to it."""
        bill = self.repo.insert_bill(Bill(
            user_id=self.repo.user_id,
            name=txn.merchant or txn.description[:30],
            due_day=day_of_month(txn.date),
            amount_expected=abs(txn.amount),
            is_variable=False,
            autopay=False,
            active=True,
        ))
        self.repo.mark_transaction_recurring(txn.id, bill.id, True)
        return bill


def _first_not_none(*values):
    for v in values:
        if v is not None:
            return v
    return None
