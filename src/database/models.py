"""Dataclass models matching the SQLite schema.

Each dataclass corresponds to one table, except Suggestion, which is stored
as four columns on the transactions row and is present or absent as a unit.
All primary keys are TEXT (UUID strings generated via uuid4()).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

RECURRENCE_MONTHLY = "monthly"


def _new_id() -> str:
    return str(uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Suggestion:
    """A pending category suggestion awaiting user review."""
    confidence: float
    reasoning: str
    pattern_id: str


@dataclass
class Transaction:
    date: str              # YYYY-MM-DD
    amount: float          # signed: negative=expense, positive=income
    description: str
    id: str = field(default_factory=_new_id)
    category_id: str | None = None
    is_split: bool = False
    suggestion: Suggestion | None = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    @property
    def pending_review(self) -> bool:
        return self.suggestion is not None


@dataclass
class Pattern:
    merchant_name: str
    category_id: str
    id: str = field(default_factory=_new_id)
    match_count: int = 0
    accept_count: int = 0
    deny_count: int = 0
    last_seen: str = field(default_factory=_now)
    amount_min: float | None = None
    amount_max: float | None = None
    is_recurring: bool = False
    recurrence_pattern: str | None = None  # "monthly" or None

    @property
    def has_amount_range(self) -> bool:
        return self.amount_min is not None and self.amount_max is not None
