"""Transaction type classification: income, transfer, recurring, or misc.

Rules are evaluated in order, first match wins:
1. income:    payroll/ACH deposit/dividend wording or paycheck/investment categories
2. transfer:  "transfer" wording or the Transfers category
3. recurring: known subscription/loan merchants or insurance/loan categories
4. misc:      fallback

The rule list is data (see config/classification.yaml), so new bank
category mappings need no code change. The amount sign is not consulted:
a negative payroll reversal still classifies as income.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.config import Config

logger = logging.getLogger(__name__)

INCOME = "income"
TRANSFER = "transfer"
RECURRING = "recurring"
MISC = "misc"

TRANSACTION_TYPES = (RECURRING, MISC, INCOME, TRANSFER)


@dataclass(frozen=True)
class ClassificationRule:
    """A (predicate, label) pair.

    Matches when the lower-cased description contains any keyword, or the
    bank category equals any listed category exactly.
    """
    label: str
    description_keywords: tuple[str, ...] = ()
    bank_categories: frozenset[str] = field(default_factory=frozenset)

    def matches(self, description: str, bank_category: str) -> bool:
        desc = description.lower()
        if any(kw in desc for kw in self.description_keywords):
            return True
        return bank_category in self.bank_categories


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        label=INCOME,
        description_keywords=("payroll", "deposit ach", "dividend"),
        bank_categories=frozenset({"Paychecks/Salary", "Investment Income"}),
    ),
    ClassificationRule(
        label=TRANSFER,
        description_keywords=("transfer",),
        bank_categories=frozenset({"Transfers"}),
    ),
    ClassificationRule(
        label=RECURRING,
        description_keywords=(
            "apple.com/bill",
            "godaddy",
            "guardian life",
            "firstmark",
            "mr.cooper",
            "nsm dbamr",
            "ez pass",
        ),
        bank_categories=frozenset({"Insurance", "Mortgages", "Loans", "Online Services"}),
    ),
)


def rule_from_dict(entry: dict) -> ClassificationRule:
    """Build a rule from a classification.yaml entry.

    Raises:
        ValueError: If the entry has no label or an unknown label.
    """
    label = entry.get("label")
    if label not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type in classification rule: {label!r}")
    keywords = tuple(
        str(kw).lower() for kw in entry.get("description_keywords", []) if kw
    )
    categories = frozenset(
        str(c) for c in entry.get("bank_categories", []) if c
    )
    if not keywords and not categories:
        logger.warning("Classification rule for '%s' has no keywords or categories", label)
    return ClassificationRule(
        label=label,
        description_keywords=keywords,
        bank_categories=categories,
    )


def rules_from_config(config: Config) -> tuple[ClassificationRule, ...]:
    """Load the ordered rule list, falling back to the built-in rules."""
    entries = config.classification_rules
    if not entries:
        return DEFAULT_RULES
    return tuple(rule_from_dict(e) for e in entries)


def fallback_from_config(config: Config) -> str:
    """The configured fallback type.

    Raises:
        ValueError: If fallback_type is not a known transaction type.
    """
    fallback = config.fallback_type
    if fallback not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type for fallback_type: {fallback!r}")
    return fallback


def classify_transaction(
    description: str,
    amount: float,
    bank_category: str,
    rules: tuple[ClassificationRule, ...] | list[ClassificationRule] = DEFAULT_RULES,
    fallback: str = MISC,
) -> str:
    """Return the transaction type for one row.

    `amount` is accepted for interface symmetry with the row data but does
    not influence the result.
    """
    for rule in rules:
        if rule.matches(description, bank_category):
            return rule.label
    return fallback
