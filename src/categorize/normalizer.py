"""Merchant normalization: reduces a raw bank description to a merchant token.

Steps, applied in order:
  1. Trim; an empty description has no merchant.
  2. Strip noise: store numbers, trailing store codes, trailing state
     abbreviations, POS/processor prefixes, trailing reference codes, dates.
  3. Ordered merchant mapping table (first case-insensitive match wins).
  4. Fallback: collapse whitespace, keep the first segment, cap at 40 chars.

The result is both the similarity key and the stored Pattern.merchant_name.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

MAX_MERCHANT_LENGTH = 40

_STATE_CODES = (
    "AL|AK|AZ|AR|CA|CO|CT|DE|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MA|MI|MN|MS|"
    "MO|MT|NE|NV|NH|NJ|NM|NY|NC|ND|OH|OK|OR|PA|RI|SC|SD|TN|TX|UT|VT|VA|WA|WV|"
    "WI|WY"
)

# Order matters: each pattern sees the output of the previous one.
_CLEANUP_PATTERNS = [
    # Store/location numbers
    re.compile(r"#\d+"),
    re.compile(r"\s+\d{3,5}\s*$"),
    # Trailing state code
    re.compile(rf"\s+({_STATE_CODES})\s*$", re.IGNORECASE),
    # Point-of-sale and payment-processor prefixes
    re.compile(r"^TST\*\s*", re.IGNORECASE),
    re.compile(r"^SQ\s*\*\s*", re.IGNORECASE),
    re.compile(r"^AMZN\s+MKTP\s+US\*", re.IGNORECASE),
    re.compile(r"^POS\s+", re.IGNORECASE),
    re.compile(r"^DEBIT\s+", re.IGNORECASE),
    re.compile(r"^CREDIT\s+", re.IGNORECASE),
    # Trailing reference numbers
    re.compile(r"\s+[A-Z0-9]{8,}\s*$"),
    # Embedded dates
    re.compile(r"\s+\d{1,2}/\d{1,2}/\d{2,4}"),
    re.compile(r"\s+\d{1,2}-\d{1,2}-\d{2,4}"),
]

DEFAULT_MERCHANT_MAPPINGS: list[tuple[str, str]] = [
    (r"walmart", "Walmart"),
    (r"target", "Target"),
    (r"starbucks", "Starbucks"),
    (r"amazon", "Amazon"),
    (r"netflix", "Netflix"),
    (r"spotify", "Spotify"),
    (r"shell", "Shell"),
    (r"chevron", "Chevron"),
    (r"costco", "Costco"),
    (r"safeway", "Safeway"),
    (r"kroger", "Kroger"),
    (r"whole\s*foods", "Whole Foods"),
    (r"trader\s*joe", "Trader Joes"),
    (r"home\s*depot", "Home Depot"),
    (r"lowes", "Lowes"),
    (r"best\s*buy", "Best Buy"),
]


class MerchantNormalizer:
    """Normalize descriptions against an ordered merchant mapping table."""

    def __init__(self, mappings: list[tuple[str, str]] | None = None):
        if mappings is None:
            mappings = DEFAULT_MERCHANT_MAPPINGS
        self.mappings = [
            (re.compile(pattern, re.IGNORECASE), name)
            for pattern, name in mappings
        ]

    def normalize(self, description: str | None) -> str:
        """Return the canonical merchant token, or "" if there is none."""
        if not description:
            return ""
        normalized = description.strip()
        if not normalized:
            return ""

        for pattern in _CLEANUP_PATTERNS:
            normalized = pattern.sub("", normalized)

        for pattern, name in self.mappings:
            if pattern.search(normalized):
                return name

        normalized = re.sub(r"\s+", " ", normalized).strip()
        # Keep the first significant segment
        normalized = re.split(r"\s{2,}|\t", normalized)[0]
        if len(normalized) > MAX_MERCHANT_LENGTH:
            normalized = normalized[:MAX_MERCHANT_LENGTH].strip()

        logger.debug("Unmapped merchant: %r -> %r", description, normalized)
        return normalized


_default_normalizer = MerchantNormalizer()


def normalize_merchant(description: str | None) -> str:
    """Normalize with the built-in mapping table."""
    return _default_normalizer.normalize(description)
