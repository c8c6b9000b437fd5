"""Tests for Repository CRUD operations."""

import sqlite3
from pathlib import Path

import pytest

from src.database.models import Pattern, Suggestion, Transaction
from src.database.repository import DuplicatePatternError, Repository

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "src" / "database" / "migrations"


@pytest.fixture
def repo():
    r = Repository(":memory:")
    r.apply_migrations(MIGRATIONS_DIR)
    yield r
    r.close()


@pytest.fixture
def pattern(repo):
    p = Pattern(
        merchant_name="Walmart", category_id="Groceries",
        match_count=5, accept_count=5, amount_min=40.0, amount_max=60.0,
    )
    repo.add_pattern(p)
    return p


def _make_txn(**overrides) -> Transaction:
    defaults = dict(
        date="2024-01-15",
        amount=-50.00,
        description="WALMART #1234",
    )
    defaults.update(overrides)
    return Transaction(**defaults)


# ── Transaction CRUD ───────────────────────────────────────


class TestTransactionCrud:
    def test_insert_and_get(self, repo):
        txn = repo.insert_transaction(_make_txn())
        found = repo.get_transaction(txn.id)
        assert found is not None
        assert found.description == "WALMART #1234"
        assert found.amount == -50.00
        assert found.category_id is None
        assert found.is_split is False
        assert found.suggestion is None
        assert found.pending_review is False

    def test_get_missing(self, repo):
        assert repo.get_transaction("nope") is None

    def test_batch_insert(self, repo):
        repo.insert_transactions_batch([_make_txn(), _make_txn(), _make_txn()])
        assert len(repo.get_all_transactions()) == 3

    def test_batch_insert_atomic(self, repo):
        dup = _make_txn()
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert_transactions_batch([_make_txn(), dup, dup])
        assert repo.get_all_transactions() == []

    def test_all_ordered_by_date(self, repo):
        repo.insert_transactions_batch([
            _make_txn(date="2024-03-01", description="C"),
            _make_txn(date="2024-01-01", description="A"),
            _make_txn(date="2024-02-01", description="B"),
        ])
        assert [t.description for t in repo.get_all_transactions()] == ["A", "B", "C"]

    def test_round_trips_split_flag(self, repo):
        txn = repo.insert_transaction(_make_txn(is_split=True, category_id="Split"))
        assert repo.get_transaction(txn.id).is_split is True


class TestUncategorized:
    def test_excludes_categorized_and_split(self, repo):
        keep = _make_txn()
        repo.insert_transactions_batch([
            keep,
            _make_txn(category_id="Groceries"),
            _make_txn(is_split=True),
        ])
        assert [t.id for t in repo.get_uncategorized_transactions()] == [keep.id]

    def test_limit(self, repo):
        repo.insert_transactions_batch([
            _make_txn(date=f"2024-01-0{d}") for d in range(1, 6)
        ])
        result = repo.get_uncategorized_transactions(limit=2)
        assert [t.date for t in result] == ["2024-01-01", "2024-01-02"]


class TestSuggestionPersistence:
    def test_update_writes_suggestion(self, repo, pattern):
        txn = repo.insert_transaction(_make_txn())
        txn.category_id = "Groceries"
        txn.suggestion = Suggestion(confidence=80.0, reasoning="because", pattern_id=pattern.id)
        repo.update_transaction(txn)

        found = repo.get_transaction(txn.id)
        assert found.category_id == "Groceries"
        assert found.pending_review is True
        assert found.suggestion == Suggestion(
            confidence=80.0, reasoning="because", pattern_id=pattern.id,
        )

    def test_update_clears_suggestion_group(self, repo, pattern):
        txn = _make_txn(
            category_id="Groceries",
            suggestion=Suggestion(confidence=80.0, reasoning="r", pattern_id=pattern.id),
        )
        repo.insert_transaction(txn)
        txn.suggestion = None
        repo.update_transaction(txn)

        row = repo.conn.execute(
            "SELECT pending_review, suggestion_confidence, suggestion_reasoning,"
            " suggestion_pattern_id FROM transactions WHERE id = ?", (txn.id,)
        ).fetchone()
        assert tuple(row) == (0, None, None, None)

    def test_update_bumps_updated_at(self, repo):
        txn = _make_txn(updated_at="2000-01-01T00:00:00+00:00")
        repo.insert_transaction(txn)
        repo.update_transaction(txn)
        assert repo.get_transaction(txn.id).updated_at > "2000-01-01T00:00:00+00:00"

    def test_pending_review_listing(self, repo, pattern):
        pending = _make_txn(
            category_id="Groceries",
            suggestion=Suggestion(confidence=75.0, reasoning="r", pattern_id=pattern.id),
        )
        repo.insert_transactions_batch([pending, _make_txn(), _make_txn(category_id="X")])
        assert [t.id for t in repo.get_pending_review_transactions()] == [pending.id]

    def test_set_category_discards_suggestion(self, repo, pattern):
        txn = _make_txn(
            category_id="Groceries",
            suggestion=Suggestion(confidence=75.0, reasoning="r", pattern_id=pattern.id),
        )
        repo.insert_transaction(txn)

        repo.set_transaction_category(txn.id, "Household")

        found = repo.get_transaction(txn.id)
        assert found.category_id == "Household"
        assert found.suggestion is None


# ── Pattern CRUD ───────────────────────────────────────────


class TestPatternCrud:
    def test_add_returns_id(self, repo):
        p = Pattern(merchant_name="Netflix", category_id="Streaming")
        assert repo.add_pattern(p) == p.id

    def test_get_pattern(self, repo, pattern):
        found = repo.get_pattern(pattern.id)
        assert found == pattern

    def test_get_missing(self, repo):
        assert repo.get_pattern("nope") is None
        assert repo.get_pattern_by_key("Nope", "Nothing") is None

    def test_get_by_key(self, repo, pattern):
        assert repo.get_pattern_by_key("Walmart", "Groceries").id == pattern.id
        assert repo.get_pattern_by_key("Walmart", "Household") is None

    def test_patterns_in_insertion_order(self, repo):
        for name in ("Netflix", "Costco", "Amazon"):
            repo.add_pattern(Pattern(merchant_name=name, category_id="Misc"))
        assert [p.merchant_name for p in repo.get_patterns()] == ["Netflix", "Costco", "Amazon"]

    def test_duplicate_pair_raises(self, repo, pattern):
        with pytest.raises(DuplicatePatternError) as exc_info:
            repo.add_pattern(Pattern(merchant_name="Walmart", category_id="Groceries"))
        assert exc_info.value.existing_pattern_id == pattern.id
        assert exc_info.value.merchant_name == "Walmart"
        assert len(repo.get_patterns()) == 1

    def test_other_integrity_errors_propagate(self, repo):
        with pytest.raises(sqlite3.IntegrityError):
            repo.add_pattern(Pattern(merchant_name="Walmart", category_id="Groceries",
                                     match_count=-1))

    def test_update_pattern(self, repo, pattern):
        pattern.accept_count = 9
        pattern.deny_count = 2
        pattern.amount_max = 75.0
        pattern.is_recurring = True
        pattern.recurrence_pattern = "monthly"
        repo.update_pattern(pattern)

        found = repo.get_pattern(pattern.id)
        assert found.accept_count == 9
        assert found.deny_count == 2
        assert found.amount_max == 75.0
        assert found.is_recurring is True
        assert found.recurrence_pattern == "monthly"

    def test_null_amount_range_round_trips(self, repo):
        p = Pattern(merchant_name="Netflix", category_id="Streaming")
        repo.add_pattern(p)
        found = repo.get_pattern(p.id)
        assert found.amount_min is None
        assert found.has_amount_range is False
