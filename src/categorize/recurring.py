"""Recurring charge detection for a cluster of similar transactions.

A transaction is recurring when at least MIN_OCCURRENCES other transactions
share its merchant (similarity > MERCHANT_SIMILARITY_MIN) and its absolute
amount (within AMOUNT_TOLERANCE_PCT), and all of their days-of-month fall
within MONTHLY_DAY_WINDOW of the mean day. Only monthly recurrence exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from src.categorize.normalizer import MerchantNormalizer, normalize_merchant
from src.categorize.similarity import similarity
from src.database.models import RECURRENCE_MONTHLY, Transaction

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE_PCT = 0.10
MERCHANT_SIMILARITY_MIN = 70.0
MIN_OCCURRENCES = 2
MONTHLY_DAY_WINDOW = 3


@dataclass
class RecurrenceResult:
    """Outcome of recurrence detection."""
    is_recurring: bool
    pattern: str | None = None  # "monthly" or None


def _day_of_month(txn: Transaction) -> int:
    return date.fromisoformat(txn.date[:10]).day


def detect_recurring(
    txn: Transaction,
    history: list[Transaction],
    normalizer: MerchantNormalizer | None = None,
) -> RecurrenceResult:
    """Decide whether txn is part of a monthly recurring cluster in history."""
    normalize = normalizer.normalize if normalizer else normalize_merchant
    amount = abs(txn.amount)
    merchant = normalize(txn.description)

    similar = [
        t for t in history
        if t.id != txn.id
        and abs(abs(t.amount) - amount) <= amount * AMOUNT_TOLERANCE_PCT
        and similarity(merchant, normalize(t.description)) > MERCHANT_SIMILARITY_MIN
    ]

    if len(similar) < MIN_OCCURRENCES:
        return RecurrenceResult(is_recurring=False)

    days = [_day_of_month(t) for t in similar]
    avg_day = sum(days) / len(days)
    if all(abs(day - avg_day) <= MONTHLY_DAY_WINDOW for day in days):
        logger.debug(
            "Monthly recurrence for %s: %d occurrences around day %.1f",
            merchant, len(similar), avg_day,
        )
        return RecurrenceResult(is_recurring=True, pattern=RECURRENCE_MONTHLY)

    return RecurrenceResult(is_recurring=False)
