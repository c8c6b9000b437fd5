"""Pattern mining: turns categorization history into merchant -> category patterns.

Categorized, non-split transactions without a pending suggestion are grouped
by (normalized merchant, category_id). Each group becomes one Pattern, which
is merged into the store:

- new pair: inserted with accept_count = match_count (mined history counts
  as implicitly accepted) and deny_count = 0
- existing pair: match_count replaced, amount range widened, recurrence and
  last_seen replaced; accept_count/deny_count kept so feedback survives
  re-mining
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.categorize.normalizer import MerchantNormalizer
from src.categorize.recurring import detect_recurring
from src.database.models import Pattern, Transaction, _now
from src.database.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class _Group:
    merchant_name: str
    category_id: str
    transactions: list[Transaction] = field(default_factory=list)


def is_minable(txn: Transaction) -> bool:
    """True if a transaction counts as confirmed categorization history."""
    return bool(txn.category_id) and not txn.is_split and not txn.pending_review


def build_patterns(
    transactions: list[Transaction],
    normalizer: MerchantNormalizer | None = None,
    now: str | None = None,
) -> list[Pattern]:
    """Group history and compute fresh (unpersisted) patterns, in first-seen order."""
    normalizer = normalizer or MerchantNormalizer()
    now = now or _now()

    groups: dict[tuple[str, str], _Group] = {}
    for txn in transactions:
        if not is_minable(txn):
            continue
        merchant = normalizer.normalize(txn.description)
        if not merchant:
            continue
        key = (merchant, txn.category_id)
        if key not in groups:
            groups[key] = _Group(merchant_name=merchant, category_id=txn.category_id)
        groups[key].transactions.append(txn)

    patterns: list[Pattern] = []
    for group in groups.values():
        txns = group.transactions
        amounts = [abs(t.amount) for t in txns]
        recurrence = detect_recurring(txns[0], txns, normalizer)
        patterns.append(Pattern(
            merchant_name=group.merchant_name,
            category_id=group.category_id,
            match_count=len(txns),
            accept_count=len(txns),
            deny_count=0,
            last_seen=now,
            amount_min=min(amounts),
            amount_max=max(amounts),
            is_recurring=recurrence.is_recurring,
            recurrence_pattern=recurrence.pattern,
        ))
    return patterns


def _merge_into(existing: Pattern, new: Pattern) -> Pattern:
    existing.match_count = new.match_count
    existing.last_seen = new.last_seen
    if existing.amount_min is None:
        existing.amount_min = new.amount_min
    else:
        existing.amount_min = min(existing.amount_min, new.amount_min)
    if existing.amount_max is None:
        existing.amount_max = new.amount_max
    else:
        existing.amount_max = max(existing.amount_max, new.amount_max)
    existing.is_recurring = new.is_recurring
    existing.recurrence_pattern = new.recurrence_pattern
    return existing


def merge_patterns(new_patterns: list[Pattern], repo: Repository) -> list[Pattern]:
    """Insert or update each pattern in the store. Returns the stored records."""
    existing_by_key = {
        (p.merchant_name, p.category_id): p for p in repo.get_patterns()
    }

    stored: list[Pattern] = []
    inserted = 0
    for new in new_patterns:
        existing = existing_by_key.get((new.merchant_name, new.category_id))
        if existing is not None:
            repo.update_pattern(_merge_into(existing, new))
            stored.append(existing)
        else:
            repo.add_pattern(new)
            existing_by_key[(new.merchant_name, new.category_id)] = new
            stored.append(new)
            inserted += 1

    logger.info(
        "Merged %d patterns (%d new, %d updated)",
        len(stored), inserted, len(stored) - inserted,
    )
    return stored


def mine_patterns(
    transactions: list[Transaction],
    repo: Repository,
    normalizer: MerchantNormalizer | None = None,
    now: str | None = None,
) -> list[Pattern]:
    """Mine history into patterns and merge them into the repository."""
    patterns = build_patterns(transactions, normalizer, now=now)
    if not patterns:
        logger.info("No categorized history to mine")
        return []
    return merge_patterns(patterns, repo)
