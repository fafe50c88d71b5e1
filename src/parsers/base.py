"""Base parser: shared interface, data structures, and field normalizers."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path


@dataclass
class ParsedTransaction:
    """One CSV row after normalization, before classification."""
    bank_account_id: str
    bank_transaction_id: str
    date: str              # YYYY-MM-DD when the bank date was M/D/Y
    description: str
    amount: float          # signed: negative=outflow, positive=inflow
    balance: float
    bank_category: str

    def to_dict(self) -> dict:
        return asdict(self)


class BaseParser(ABC):
    """Abstract base for bank statement parsers.

    Attributes:
        skipped_count: Number of rows dropped during the last parse (too few
            fields). Logged by the import pipeline, never surfaced.
    """

    def __init__(self):
        self.skipped_count: int = 0

    @abstractmethod
    def parse(self, file_path: Path) -> list[ParsedTransaction]:
        """Parse a bank file and return normalized transactions."""

    @abstractmethod
    def detect(self, file_path: Path) -> bool:
        """Return True if this parser can handle the given file."""


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line on commas, honoring double-quoted spans.

    A double quote always toggles quote mode and is dropped; there is no
    escaped-quote syntax. An unbalanced quote swallows the rest of the line.
    Every field is stripped of surrounding whitespace.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def parse_bank_amount(amount_str: str) -> float:
    """'"$1,234.56"' → 1234.56. Anything unparseable is 0.0."""
    cleaned = amount_str.replace("$", "").replace('"', "").replace(",", "").strip()
    try:
        amount = float(cleaned)
    except (ValueError, TypeError):
        return 0.0
    if not math.isfinite(amount):
        return 0.0
    return amount


def parse_bank_date(date_str: str) -> str:
    """M/D/YYYY or M/D/YY → YYYY-MM-DD. Other shapes pass through unchanged.

    Two-digit years above 50 are 19xx, the rest 20xx.
    """
    parts = date_str.split("/")
    if len(parts) != 3:
        return date_str

    month = parts[0].zfill(2)
    day = parts[1].zfill(2)
    year = parts[2]
    if len(year) == 2:
        try:
            year = f"19{year}" if int(year) > 50 else f"20{year}"
        except ValueError:
            year = f"20{year}"
    return f"{year}-{month}-{day}"
