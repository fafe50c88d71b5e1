"""Merchant extraction: derives a short counterparty label from a bank description.

Patterns are tried in order (case-insensitive). The first one that matches
and captures a non-blank group 1 wins. Otherwise the raw description is used.
Labels are capped at 50 characters. Best effort only: unseen description
formats fall through to the raw text.
"""

from __future__ import annotations

import logging
import re

from src.config import Config

logger = logging.getLogger(__name__)

MAX_MERCHANT_LENGTH = 50

# "Withdrawal Debit Card NETFLIX.COM 866-579-7172 ..." → NETFLIX.COM
CARD_PREFIX_PATTERN = (
    r"^(?:Withdrawal|Deposit|Recurring Withdrawal)?\s*"
    r"(?:Debit Card|POS|ACH)?\s*"
    r"(?:Debit Gold|#\d+)?\s*"
    r"(.+?)\s+(?:\d{3,}|Date|Card|Entry)"
)

# "Withdrawal Online Banking Transfer To ..." → To
TRANSFER_PATTERN = (
    r"^(?:Withdrawal|Deposit)\s+(?:Online Banking )?Transfer\s+(To|From)\s+"
)

DEFAULT_CITY_SUFFIXES = (
    "SEATTLE",
    "PENNSVILLE",
    "CUPERTINO",
    "NEWARK",
    "MARLTON",
    "WOODSTOWN",
    "HARRISBURG",
)


def city_suffix_pattern(cities) -> str:
    """Merchant text ending where a known city name begins."""
    alternatives = "|".join(re.escape(c) for c in cities)
    return rf"^(.+?)\s+(?:{alternatives})"


def compile_patterns(sources: list[str]) -> list[re.Pattern]:
    """Compile regex sources case-insensitively.

    Raises:
        ValueError: If a pattern is not a valid regular expression.
    """
    compiled = []
    for source in sources:
        try:
            compiled.append(re.compile(source, re.IGNORECASE))
        except re.error as e:
            raise ValueError(f"Invalid merchant pattern {source!r}: {e}") from e
    return compiled


DEFAULT_PATTERNS: list[re.Pattern] = compile_patterns([
    CARD_PREFIX_PATTERN,
    TRANSFER_PATTERN,
    city_suffix_pattern(DEFAULT_CITY_SUFFIXES),
])


def patterns_from_config(config: Config) -> list[re.Pattern]:
    """Build the pattern list from merchants.yaml.

    extraction_patterns replaces the built-in prefix/transfer patterns;
    city_suffixes replaces the built-in city list. The city pattern is
    always tried last.
    """
    sources = list(config.extraction_patterns) or [CARD_PREFIX_PATTERN, TRANSFER_PATTERN]
    cities = list(config.city_suffixes) or list(DEFAULT_CITY_SUFFIXES)
    return compile_patterns(sources + [city_suffix_pattern(cities)])


def extract_merchant(
    description: str,
    patterns: list[re.Pattern] | None = None,
) -> str:
    """Return a merchant label (≤50 chars) for a bank description."""
    for pattern in patterns if patterns is not None else DEFAULT_PATTERNS:
        m = pattern.search(description)
        if m is None or m.lastindex is None:
            continue
        label = (m.group(1) or "").strip()
        if label:
            return label[:MAX_MERCHANT_LENGTH]

    return description[:MAX_MERCHANT_LENGTH]
