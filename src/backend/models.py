"""Dataclass models matching the backend's JSON records.

Each dataclass corresponds to one backend table. Field names match the JSON
keys exactly. `id` is None until the backend assigns one.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields

from src.parsers.base import ParsedTransaction


def _known_fields(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


class _Record:
    """Shared JSON conversion for backend records."""

    @classmethod
    def from_dict(cls, data: dict):
        """Build from backend JSON, ignoring keys this model doesn't know."""
        return cls(**_known_fields(cls, data))

    def to_payload(self) -> dict:
        """JSON body for create calls: drops server-assigned fields."""
        payload = asdict(self)
        payload.pop("id", None)
        payload.pop("created_at", None)
        payload.pop("updated_at", None)
        return payload


@dataclass
class Bill(_Record):
    user_id: str | int
    name: str
    due_day: int | None = None
    amount_expected: float | None = None
    is_variable: bool = False
    autopay: bool = False
    active: bool = True
    id: int | None = None
    created_at: str | None = None


@dataclass
class BillPayment(_Record):
    user_id: str | int
    bill_id: int
    month: str             # YYYY-MM
    paid: bool = False
    paid_date: str | None = None
    amount_paid: float | None = None
    notes: str | None = None
    id: int | None = None
    updated_at: str | None = None


@dataclass
class Import(_Record):
    user_id: str | int
    filename: str
    account_type: str      # checking, savings, high_yield
    status: str = "pending"
    record_count: int = 0
    id: int | None = None
    created_at: str | None = None


@dataclass
class RawTransactionRecord(_Record):
    """Verbatim audit copy of a parsed CSV row."""
    import_id: int
    user_id: str | int
    date: str
    description: str
    amount: float
    raw_text_line: str
    currency: str = "USD"
    confidence: float = 1
    bank_account_id: str | None = None
    bank_transaction_id: str | None = None
    bank_category: str | None = None
    balance: float | None = None
    id: int | None = None
    created_at: str | None = None

    @classmethod
    def from_parsed(
        cls, parsed: ParsedTransaction, import_id: int, user_id: str | int
    ) -> RawTransactionRecord:
        return cls(
            import_id=import_id,
            user_id=user_id,
            date=parsed.date,
            description=parsed.description,
            amount=parsed.amount,
            raw_text_line=json.dumps(parsed.to_dict()),
            bank_account_id=parsed.bank_account_id,
            bank_transaction_id=parsed.bank_transaction_id,
            bank_category=parsed.bank_category,
            balance=parsed.balance,
        )


@dataclass
class Transaction(_Record):
    user_id: str | int
    date: str
    merchant: str
    description: str
    amount: float
    transaction_type: str  # recurring, misc, income, transfer
    import_id: int | None = None
    bill_id: int | None = None
    is_recurring: bool = False
    category_id: int = 0
    account_id: int = 0
    is_split: bool = False
    notes: str = ""
    id: int | None = None
    created_at: str | None = None

    def __post_init__(self):
        self.is_recurring = self.transaction_type == "recurring"
