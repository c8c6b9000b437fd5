"""Confidence scoring of a transaction against one candidate pattern.

Five independently bounded factors are summed, then clamped to [0, 100]:

  volume       min(40, match_count * 5)
  similarity   merchant similarity scaled to 0-30
  amount       +20 exact (amount_min), +15 in range, +10 within 10% of range
  recurrence   +10 when the pattern is recurring
  feedback     +10 if >= 90% accepted, -20 if < 50% accepted
"""

from __future__ import annotations

from src.categorize.normalizer import MerchantNormalizer, normalize_merchant
from src.categorize.similarity import similarity
from src.database.models import Pattern, Transaction

VOLUME_PER_MATCH = 5
VOLUME_MAX = 40
SIMILARITY_WEIGHT = 30
AMOUNT_EXACT_SCORE = 20
AMOUNT_IN_RANGE_SCORE = 15
AMOUNT_NEAR_RANGE_SCORE = 10
AMOUNT_NEAR_RANGE_PCT = 0.10
AMOUNT_TOLERANCE = 0.01
RECURRING_BONUS = 10
FEEDBACK_HIGH_RATIO = 0.9
FEEDBACK_LOW_RATIO = 0.5
FEEDBACK_BONUS = 10
FEEDBACK_PENALTY = -20


def is_exact_amount(amount: float, pattern: Pattern) -> bool:
    """True if |amount| equals the pattern's amount_min within a cent."""
    if pattern.amount_min is None:
        return False
    return abs(abs(amount) - pattern.amount_min) < AMOUNT_TOLERANCE


def _amount_score(amount: float, pattern: Pattern) -> float:
    if not pattern.has_amount_range:
        return 0
    amount = abs(amount)
    if is_exact_amount(amount, pattern):
        return AMOUNT_EXACT_SCORE
    if pattern.amount_min <= amount <= pattern.amount_max:
        return AMOUNT_IN_RANGE_SCORE
    low = pattern.amount_min * (1 - AMOUNT_NEAR_RANGE_PCT)
    high = pattern.amount_max * (1 + AMOUNT_NEAR_RANGE_PCT)
    if low <= amount <= high:
        return AMOUNT_NEAR_RANGE_SCORE
    return 0


def _feedback_score(pattern: Pattern) -> float:
    total = pattern.accept_count + pattern.deny_count
    if total <= 0:
        return 0
    ratio = pattern.accept_count / total
    if ratio >= FEEDBACK_HIGH_RATIO:
        return FEEDBACK_BONUS
    if ratio < FEEDBACK_LOW_RATIO:
        return FEEDBACK_PENALTY
    return 0


def calculate_confidence(
    txn: Transaction,
    pattern: Pattern,
    normalizer: MerchantNormalizer | None = None,
) -> float:
    """Score how likely pattern.category_id is right for txn (0-100)."""
    normalize = normalizer.normalize if normalizer else normalize_merchant

    confidence = min(VOLUME_MAX, pattern.match_count * VOLUME_PER_MATCH)
    merchant = normalize(txn.description)
    confidence += similarity(merchant, pattern.merchant_name) / 100 * SIMILARITY_WEIGHT
    confidence += _amount_score(txn.amount, pattern)
    if pattern.is_recurring:
        confidence += RECURRING_BONUS
    confidence += _feedback_score(pattern)

    return max(0.0, min(100.0, float(confidence)))
