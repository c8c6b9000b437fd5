"""Tests for schema migration system."""

import sqlite3
from pathlib import Path

import pytest

from src.database.repository import Repository

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "src" / "database" / "migrations"


@pytest.fixture
def repo():
    r = Repository(":memory:")
    yield r
    r.close()


def _insert_pattern(repo, pid="p1", merchant="Walmart", category="Groceries", **cols):
    columns = {"id": pid, "merchant_name": merchant, "category_id": category,
               "last_seen": "2024-01-01T00:00:00+00:00"}
    columns.update(cols)
    names = ", ".join(columns)
    marks = ", ".join("?" for _ in columns)
    repo.conn.execute(
        f"INSERT INTO patterns ({names}) VALUES ({marks})", tuple(columns.values()),
    )


def _insert_txn(repo, tid="t1", **cols):
    columns = {"id": tid, "date": "2024-01-01", "amount": -10.0,
               "description": "TEST", "created_at": "x", "updated_at": "x"}
    columns.update(cols)
    names = ", ".join(columns)
    marks = ", ".join("?" for _ in columns)
    repo.conn.execute(
        f"INSERT INTO transactions ({names}) VALUES ({marks})", tuple(columns.values()),
    )


class TestMigrationApply:
    def test_creates_all_tables(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        tables = {
            row[0]
            for row in repo.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"schema_version", "transactions", "patterns"}.issubset(tables)

    def test_tracks_version(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        row = repo.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        assert row[0] == 2

    def test_idempotent(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        repo.apply_migrations(MIGRATIONS_DIR)  # second run
        row = repo.conn.execute(
            "SELECT COUNT(*) FROM schema_version"
        ).fetchone()
        assert row[0] == 2  # one record per migration

    def test_suggestion_columns_exist(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        cols = {
            row[1]
            for row in repo.conn.execute("PRAGMA table_info(transactions)").fetchall()
        }
        assert {
            "pending_review", "suggestion_confidence",
            "suggestion_reasoning", "suggestion_pattern_id",
        }.issubset(cols)

    def test_creates_indexes(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        indexes = {
            row[0]
            for row in repo.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='index'"
            ).fetchall()
        }
        assert {
            "idx_txn_date",
            "idx_txn_category",
            "idx_txn_pending_review",
            "idx_pattern_merchant",
        }.issubset(indexes)

    def test_failed_migration_not_recorded(self, repo, tmp_path):
        (tmp_path / "001_ok.sql").write_text("CREATE TABLE a (id TEXT);")
        (tmp_path / "002_bad.sql").write_text("CREATE TABLE b (id TEXT); NOT SQL AT ALL;")

        with pytest.raises(sqlite3.OperationalError):
            repo.apply_migrations(tmp_path)

        row = repo.conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        assert row[0] == 1


class TestForeignKeys:
    def test_foreign_keys_enabled(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        row = repo.conn.execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1

    def test_suggestion_requires_valid_pattern(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        with pytest.raises(sqlite3.IntegrityError):
            _insert_txn(
                repo, pending_review=1, suggestion_confidence=80.0,
                suggestion_reasoning="r", suggestion_pattern_id="nonexistent",
            )


class TestConstraints:
    def test_pattern_pair_unique(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1")
        with pytest.raises(sqlite3.IntegrityError):
            _insert_pattern(repo, "p2")

    def test_same_merchant_other_category_allowed(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1", category="Groceries")
        _insert_pattern(repo, "p2", category="Household")
        row = repo.conn.execute("SELECT COUNT(*) FROM patterns").fetchone()
        assert row[0] == 2

    def test_negative_counts_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        with pytest.raises(sqlite3.IntegrityError):
            _insert_pattern(repo, deny_count=-1)

    def test_inverted_amount_range_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        with pytest.raises(sqlite3.IntegrityError):
            _insert_pattern(repo, amount_min=60.0, amount_max=40.0)

    def test_unknown_recurrence_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        with pytest.raises(sqlite3.IntegrityError):
            _insert_pattern(repo, is_recurring=1, recurrence_pattern="weekly")

    def test_partial_suggestion_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1")
        with pytest.raises(sqlite3.IntegrityError):
            _insert_txn(repo, pending_review=1, suggestion_pattern_id="p1")

    def test_suggestion_without_flag_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1")
        with pytest.raises(sqlite3.IntegrityError):
            _insert_txn(
                repo, suggestion_confidence=80.0,
                suggestion_reasoning="r", suggestion_pattern_id="p1",
            )

    def test_confidence_out_of_range_rejected(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1")
        with pytest.raises(sqlite3.IntegrityError):
            _insert_txn(
                repo, pending_review=1, suggestion_confidence=120.0,
                suggestion_reasoning="r", suggestion_pattern_id="p1",
            )

    def test_complete_suggestion_accepted(self, repo):
        repo.apply_migrations(MIGRATIONS_DIR)
        _insert_pattern(repo, "p1")
        _insert_txn(
            repo, pending_review=1, suggestion_confidence=80.0,
            suggestion_reasoning="r", suggestion_pattern_id="p1",
        )
        row = repo.conn.execute("SELECT COUNT(*) FROM transactions").fetchone()
        assert row[0] == 1
