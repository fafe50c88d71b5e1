"""Monthly reporting over transactions already loaded from the backend.

Income is summed with its sign; recurring and misc spending are summed as
absolute values; transfers are excluded from every total.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from src.backend.models import Transaction

VIEWS = ("all", "recurring", "misc", "income")
SORT_KEYS = ("date", "amount", "type")

_TYPE_ORDER = {"recurring": 0, "misc": 1, "income": 2, "transfer": 3}


@dataclass
class MonthlySummary:
    income: float
    recurring: float
    misc: float
    remaining: float


def summarize_month(transactions: list[Transaction]) -> MonthlySummary:
    income = sum(t.amount for t in transactions if t.transaction_type == "income")
    recurring = sum(abs(t.amount) for t in transactions if t.transaction_type == "recurring")
    misc = sum(abs(t.amount) for t in transactions if t.transaction_type == "misc")
    return MonthlySummary(
        income=income,
        recurring=recurring,
        misc=misc,
        remaining=income - recurring - misc,
    )


def filter_transactions(transactions: list[Transaction], view: str = "all") -> list[Transaction]:
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view}")
    if view == "all":
        return list(transactions)
    return [t for t in transactions if t.transaction_type == view]


def sort_transactions(transactions: list[Transaction], by: str = "date") -> list[Transaction]:
    """date: newest first. amount: largest absolute first. type: recurring,
    misc, income, transfer, then anything else. Ties keep input order."""
    if by == "date":
        return sorted(transactions, key=lambda t: t.date, reverse=True)
    if by == "amount":
        return sorted(transactions, key=lambda t: abs(t.amount), reverse=True)
    if by == "type":
        return sorted(transactions, key=lambda t: _TYPE_ORDER.get(t.transaction_type, 4))
    raise ValueError(f"Unknown sort key: {by}")


# ── Month helpers ─────────────────────────────────────────


def current_month(today: date | None = None) -> str:
    today = today or date.today()
    return f"{today.year:04d}-{today.month:02d}"


def parse_month(month: str) -> date:
    """'2026-01' → date(2026, 1, 1).

    Raises:
        ValueError: If month isn't YYYY-MM.
    """
    try:
        year, mm = month.split("-")
        return date(int(year), int(mm), 1)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid month (expected YYYY-MM): {month!r}") from e


def shift_month(month: str, delta: int) -> str:
    d = parse_month(month)
    index = d.year * 12 + (d.month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_label(month: str) -> str:
    """'2026-01' → 'January 2026'."""
    return parse_month(month).strftime("%B %Y")
