"""Row categorization: transaction type + merchant label for each parsed row.

Steps per row:
1. Classify: income / transfer / recurring / misc (classifier rules)
2. Extract merchant: short counterparty label from the description

Bill linking for recurring outflows happens afterwards in bill_match,
which needs the whole batch.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from src.categorize.classifier import (
    DEFAULT_RULES,
    MISC,
    RECURRING,
    ClassificationRule,
    classify_transaction,
    fallback_from_config,
    rules_from_config,
)
from src.categorize.merchant_extract import DEFAULT_PATTERNS, extract_merchant, patterns_from_config
from src.config import Config
from src.parsers.base import ParsedTransaction

logger = logging.getLogger(__name__)


@dataclass
class ClassifiedTransaction:
    """A parsed row with its type, merchant, and (later) bill link."""
    parsed: ParsedTransaction
    transaction_type: str
    merchant: str
    bill_id: int | None = None

    @property
    def is_recurring(self) -> bool:
        return self.transaction_type == RECURRING

    @property
    def is_recurring_outflow(self) -> bool:
        """Only recurring charges (negative amounts) are matched to bills."""
        return self.is_recurring and self.parsed.amount < 0


class Categorizer:
    """Holds the rule and pattern lists for one import.

    Args:
        rules: Ordered classification rules (defaults to the built-ins).
        patterns: Ordered merchant patterns (defaults to the built-ins).
        fallback: Type assigned when no rule matches.
    """

    def __init__(
        self,
        rules: tuple[ClassificationRule, ...] | list[ClassificationRule] = DEFAULT_RULES,
        patterns: list[re.Pattern] | None = None,
        fallback: str = MISC,
    ):
        self.rules = rules
        self.patterns = patterns if patterns is not None else DEFAULT_PATTERNS
        self.fallback = fallback

    @classmethod
    def from_config(cls, config: Config | None) -> Categorizer:
        if config is None:
            return cls()
        return cls(
            rules=rules_from_config(config),
            patterns=patterns_from_config(config),
            fallback=fallback_from_config(config),
        )

    def categorize(self, parsed: ParsedTransaction) -> ClassifiedTransaction:
        txn_type = classify_transaction(
            parsed.description, parsed.amount, parsed.bank_category,
            rules=self.rules, fallback=self.fallback,
        )
        merchant = extract_merchant(parsed.description, self.patterns)
        return ClassifiedTransaction(
            parsed=parsed,
            transaction_type=txn_type,
            merchant=merchant,
        )

    def categorize_all(self, rows: list[ParsedTransaction]) -> list[ClassifiedTransaction]:
        results = [self.categorize(p) for p in rows]
        counts: dict[str, int] = {}
        for r in results:
            counts[r.transaction_type] = counts.get(r.transaction_type, 0) + 1
        logger.debug("Categorized %d row(s): %s", len(results), counts)
        return results
