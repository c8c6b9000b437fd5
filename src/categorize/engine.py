"""Suggestion engine: proposes categories from learned patterns and learns from feedback.

Suggestion lifecycle per transaction:

    Uncategorized -> Suggested (pending review)
                  -> Accepted (suggestion cleared, category kept)
                  -> Rejected (suggestion cleared, category cleared)

Transactions that already have a category, or are split, never get a
suggestion. Feedback updates the referenced pattern's accept/deny tallies,
which feed back into confidence scoring.

The engine keeps the loaded patterns in memory. Call load() after anything
else changes the pattern store; mine() reloads on its own. Feedback mutates
the in-memory patterns in place (read-modify-write, single session only).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.categorize.confidence import calculate_confidence, is_exact_amount
from src.categorize.miner import mine_patterns
from src.categorize.normalizer import MerchantNormalizer
from src.categorize.similarity import similarity
from src.config import DEFAULT_CONFIDENCE_THRESHOLD, clamp_threshold
from src.database.models import Pattern, Suggestion, Transaction, _now
from src.database.repository import Repository

logger = logging.getLogger(__name__)

EXACT_MATCH_SIMILARITY = 95
SIMILAR_MATCH_SIMILARITY = 70


@dataclass
class SuggestionMatch:
    """Best-scoring pattern for a transaction."""
    pattern: Pattern
    confidence: float
    reasoning: str


@dataclass
class AutoCategorizeResult:
    """Summary of an auto-categorize run."""
    total: int
    suggested: int = 0
    no_match: int = 0
    suggestions: list[tuple[Transaction, SuggestionMatch]] = field(default_factory=list)


class SuggestionEngine:
    """Score transactions against learned patterns and manage suggestions."""

    def __init__(
        self,
        repo: Repository,
        normalizer: MerchantNormalizer | None = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self.repo = repo
        self.normalizer = normalizer or MerchantNormalizer()
        self.confidence_threshold = clamp_threshold(confidence_threshold)
        self.patterns: list[Pattern] = []

    def load(self) -> list[Pattern]:
        """Replace the in-memory patterns with the store's current contents."""
        self.patterns = self.repo.get_patterns()
        logger.debug("Loaded %d patterns", len(self.patterns))
        return self.patterns

    # ── Configuration ───────────────────────────────────────

    def set_confidence_threshold(self, threshold: float) -> None:
        self.confidence_threshold = clamp_threshold(threshold)

    def get_confidence_threshold(self) -> float:
        return self.confidence_threshold

    # ── Mining ──────────────────────────────────────────────

    def mine(self, transactions: list[Transaction]) -> list[Pattern]:
        """Mine history into the store, then reload patterns."""
        mined = mine_patterns(transactions, self.repo, self.normalizer)
        self.load()
        return mined

    # ── Scoring ─────────────────────────────────────────────

    def confidence(self, txn: Transaction, pattern: Pattern) -> float:
        return calculate_confidence(txn, pattern, self.normalizer)

    def find_best_match(self, txn: Transaction) -> SuggestionMatch | None:
        """Return the highest-confidence pattern if it clears the threshold.

        Every loaded pattern is scored; on ties the first one wins. A pattern
        scoring 0 is never a match.
        """
        merchant = self.normalizer.normalize(txn.description)
        if not merchant:
            return None

        best: Pattern | None = None
        best_confidence = 0.0
        for pattern in self.patterns:
            confidence = self.confidence(txn, pattern)
            if confidence > best_confidence:
                best = pattern
                best_confidence = confidence

        if best is None or best_confidence < self.confidence_threshold:
            logger.debug(
                "No match for %r (best %.1f, threshold %.1f)",
                txn.description, best_confidence, self.confidence_threshold,
            )
            return None

        return SuggestionMatch(
            pattern=best,
            confidence=best_confidence,
            reasoning=self.generate_reasoning(txn, best),
        )

    def generate_reasoning(self, txn: Transaction, pattern: Pattern) -> str:
        """Human-readable justification for suggesting pattern for txn."""
        parts: list[str] = []
        merchant = self.normalizer.normalize(txn.description)

        score = similarity(merchant, pattern.merchant_name)
        if score > EXACT_MATCH_SIMILARITY:
            parts.append(f'Exact match with "{pattern.merchant_name}"')
        elif score > SIMILAR_MATCH_SIMILARITY:
            parts.append(f'Similar to "{pattern.merchant_name}"')

        if pattern.match_count == 1:
            parts.append("1 similar transaction")
        elif pattern.match_count > 1:
            parts.append(f"{pattern.match_count} similar transactions")

        if pattern.is_recurring:
            parts.append("recurring transaction")

        if is_exact_amount(txn.amount, pattern):
            parts.append("exact amount match")

        return ", ".join(parts)

    # ── Suggestions ─────────────────────────────────────────

    def auto_categorize(self, transactions: list[Transaction]) -> AutoCategorizeResult:
        """Attach a suggestion to every uncategorized, non-split transaction that matches.

        Each suggested transaction is persisted before the next is scored.
        """
        result = AutoCategorizeResult(total=len(transactions))

        for txn in transactions:
            if txn.category_id or txn.is_split:
                continue

            match = self.find_best_match(txn)
            if match is None:
                result.no_match += 1
                continue

            txn.category_id = match.pattern.category_id
            txn.suggestion = Suggestion(
                confidence=match.confidence,
                reasoning=match.reasoning,
                pattern_id=match.pattern.id,
            )
            self.repo.update_transaction(txn)
            result.suggested += 1
            result.suggestions.append((txn, match))

        logger.info(
            "Auto-categorized %d transactions: %d suggested, %d without match",
            result.total, result.suggested, result.no_match,
        )
        return result

    def get_pending_review(self, transactions: list[Transaction]) -> list[Transaction]:
        return [t for t in transactions if t.pending_review]

    def _find_pattern(self, pattern_id: str) -> Pattern | None:
        for pattern in self.patterns:
            if pattern.id == pattern_id:
                return pattern
        logger.warning("Suggested pattern %s is not loaded; skipping feedback", pattern_id)
        return None

    def accept_suggestion(self, txn: Transaction) -> None:
        """Confirm a suggestion: credit the pattern and keep the category."""
        if txn.suggestion is None:
            return

        pattern = self._find_pattern(txn.suggestion.pattern_id)
        if pattern is not None:
            pattern.accept_count += 1
            pattern.last_seen = _now()
            self.repo.update_pattern(pattern)

        txn.suggestion = None
        self.repo.update_transaction(txn)

    def deny_suggestion(self, txn: Transaction) -> None:
        """Reject a suggestion: debit the pattern and remove the category."""
        if txn.suggestion is None:
            return

        pattern = self._find_pattern(txn.suggestion.pattern_id)
        if pattern is not None:
            pattern.deny_count += 1
            self.repo.update_pattern(pattern)

        # TODO: restore a pre-suggestion category once suggestions record one
        txn.category_id = None
        txn.suggestion = None
        self.repo.update_transaction(txn)

    def accept_all_pending(self, transactions: list[Transaction]) -> int:
        """Accept every pending suggestion in order. Returns how many were accepted."""
        pending = self.get_pending_review(transactions)
        for txn in pending:
            self.accept_suggestion(txn)
        logger.info("Accepted %d pending suggestions", len(pending))
        return len(pending)
