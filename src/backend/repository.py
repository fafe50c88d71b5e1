"""Repository: typed CRUD operations against the REST backend.

All methods take/return dataclass instances from models.py. The signed-in
user's id comes from the AuthSession held by the client and is sent with
every list query and create body the backend scopes by user.
"""

from __future__ import annotations

import logging

from src.backend.client import BackendClient
from src.backend.models import (
    Bill,
    BillPayment,
    Import,
    RawTransactionRecord,
    Transaction,
)
from src.backend.session import AuthError

logger = logging.getLogger(__name__)

_BILL_PATCH_FIELDS = ("name", "due_day", "amount_expected", "is_variable", "autopay", "active")


class Repository:
    def __init__(self, client: BackendClient):
        self.client = client

    @property
    def user_id(self) -> str:
        session = self.client.session
        if session is None:
            raise AuthError("Not signed in. Run 'billfold login' first.")
        return session.user_id

    # ── Auth ────────────────────────────────────────────────

    def login(self, email: str, password: str):
        return self.client.post("/auth/login", {"email": email, "password": password})

    def register(self, email: str, password: str):
        return self.client.post("/auth/register", {"email": email, "password": password})

    # ── Bills ───────────────────────────────────────────────

    def list_bills(self) -> list[Bill]:
        rows = self.client.get("/bills", params={"user_id": self.user_id}) or []
        return [Bill.from_dict(r) for r in rows]

    def list_active_bills(self) -> list[Bill]:
        """Bills not soft-deleted. A missing active flag counts as active."""
        return [b for b in self.list_bills() if b.active is not False]

    def insert_bill(self, bill: Bill) -> Bill:
        data = self.client.post("/bills", bill.to_payload())
        return Bill.from_dict(data)

    def update_bill(self, bill_id: int, **changes) -> Bill:
        """Patch a bill. Fields not given are sent as null.

        Raises:
            ValueError: For unknown field names.
        """
        unknown = set(changes) - set(_BILL_PATCH_FIELDS)
        if unknown:
            raise ValueError(f"Unknown columns for update_bill: {unknown}")
        body = {f: changes.get(f) for f in _BILL_PATCH_FIELDS}
        data = self.client.patch(f"/bills/{bill_id}", body)
        return Bill.from_dict(data)

    # ── Bill payments ───────────────────────────────────────

    def list_bill_payments(self, month: str) -> list[BillPayment]:
        rows = self.client.get(
            "/bill-payments", params={"user_id": self.user_id, "month": month},
        ) or []
        return [BillPayment.from_dict(r) for r in rows]

    def upsert_bill_payment(self, payment: BillPayment) -> BillPayment | None:
        data = self.client.post("/bill-payments/upsert", payment.to_payload())
        return BillPayment.from_dict(data) if data else None

    # ── Imports ─────────────────────────────────────────────

    def insert_import(self, imp: Import) -> Import:
        data = self.client.post("/imports", imp.to_payload())
        return Import.from_dict(data)

    def list_imports(self) -> list[Import]:
        rows = self.client.get("/imports", params={"user_id": self.user_id}) or []
        return [Import.from_dict(r) for r in rows]

    _IMPORT_UPDATE_COLS = frozenset({"record_count", "filename", "account_type"})

    def update_import_status(self, import_id: int, status: str, **kwargs) -> None:
        unknown = set(kwargs.keys()) - self._IMPORT_UPDATE_COLS
        if unknown:
            raise ValueError(f"Unknown columns for update_import_status: {unknown}")
        body = {"status": status, **kwargs}
        self.client.put(f"/imports/{import_id}", body)

    # ── Raw transactions ────────────────────────────────────

    def insert_raw_transactions(self, rows: list[RawTransactionRecord]) -> int:
        """Bulk-insert audit rows. Returns the backend's inserted count."""
        data = self.client.post(
            "/transactions-raw", {"transactions": [r.to_payload() for r in rows]},
        )
        if isinstance(data, dict):
            return int(data.get("inserted", len(rows)))
        return len(rows)

    # ── Transactions ────────────────────────────────────────

    def list_transactions(
        self,
        month: str | None = None,
        transaction_type: str | None = None,
    ) -> list[Transaction]:
        params = {"user_id": self.user_id}
        if month:
            params["month"] = month
        if transaction_type:
            params["transaction_type"] = transaction_type
        rows = self.client.get("/transactions", params=params) or []
        return [Transaction.from_dict(r) for r in rows]

    def insert_transactions_batch(self, txns: list[Transaction]) -> int:
        """Insert processed transactions in one bulk call."""
        data = self.client.post("/transactions/bulk", {
            "user_id": numeric_user_id(self.user_id),
            "transactions": [t.to_payload() for t in txns],
        })
        if isinstance(data, dict):
            return int(data.get("count", len(txns)))
        return len(txns)

    def update_transaction(self, txn_id: int, **changes) -> Transaction | None:
        data = self.client.put(f"/transactions/{txn_id}", changes)
        return Transaction.from_dict(data) if data else None

    def mark_transaction_recurring(
        self, txn_id: int, bill_id: int | None, is_recurring: bool,
    ) -> Transaction | None:
        """Set or clear the recurring flag and bill link together."""
        return self.update_transaction(
            txn_id,
            is_recurring=is_recurring,
            bill_id=bill_id,
            transaction_type="recurring" if is_recurring else "misc",
        )


def numeric_user_id(user_id: str) -> int | str:
    """The bulk endpoint takes a numeric user id when one is available."""
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return user_id
