"""Bank statement CSV parser.

Fixed-position layout, one header row, at least 9 fields per data row:

    0 account id, 1 transaction id, 2 date, 3 description, 4 (unused),
    5 category, 6 (unused), 7 amount, 8 balance

Rows with fewer than 9 fields are dropped. Dates are normalized to
YYYY-MM-DD, amounts and balances stripped of currency formatting.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .base import (
    BaseParser,
    ParsedTransaction,
    parse_bank_amount,
    parse_bank_date,
    parse_csv_line,
)

logger = logging.getLogger(__name__)

MIN_FIELDS = 9


class BankCsvParser(BaseParser):
    """Parse bank-statement CSV exports with the fixed column layout."""

    def detect(self, file_path: Path) -> bool:
        """A bank CSV has a header with at least 9 comma-separated columns."""
        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                header = f.readline()
        except (OSError, UnicodeDecodeError):
            return False
        return len(parse_csv_line(header.lstrip("\ufeff"))) >= MIN_FIELDS

    def parse(self, file_path: Path) -> list[ParsedTransaction]:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            return self.parse_text(f.read())

    def parse_text(self, text: str) -> list[ParsedTransaction]:
        """Parse a whole CSV blob. Empty or header-only input yields []."""
        self.skipped_count = 0  # Reset for each parse

        lines = [line for line in text.lstrip("\ufeff").split("\n") if line.strip()]
        if len(lines) < 2:
            return []

        transactions: list[ParsedTransaction] = []
        for line in lines[1:]:
            txn = self._parse_row(parse_csv_line(line))
            if txn is None:
                self.skipped_count += 1
                continue
            transactions.append(txn)

        if self.skipped_count:
            logger.debug("Dropped %d short row(s)", self.skipped_count)
        return transactions

    @staticmethod
    def _parse_row(fields: list[str]) -> ParsedTransaction | None:
        if len(fields) < MIN_FIELDS:
            return None

        account_id, transaction_id, date, description, _, category, _, amount, balance = (
            fields[:MIN_FIELDS]
        )
        return ParsedTransaction(
            bank_account_id=account_id,
            bank_transaction_id=transaction_id,
            date=parse_bank_date(date),
            description=description,
            amount=parse_bank_amount(amount),
            balance=parse_bank_amount(balance),
            bank_category=category,
        )
