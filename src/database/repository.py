"""Repository: CRUD operations against SQLite using raw SQL.

All methods take/return dataclass instances from models.py.
Connection management uses a single connection with WAL mode and
foreign keys enabled.

This is the storage collaborator the categorization engine consumes:
get_patterns / add_pattern / update_pattern / update_transaction.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .models import Pattern, Suggestion, Transaction, _now


class DuplicatePatternError(Exception):
    """Raised when inserting a pattern whose (merchant, category) pair already exists."""

    def __init__(self, merchant_name: str, category_id: str,
                 existing_pattern_id: str | None = None):
        self.merchant_name = merchant_name
        self.category_id = category_id
        self.existing_pattern_id = existing_pattern_id
        super().__init__(
            f"Pattern for '{merchant_name}' -> '{category_id}' already exists"
        )


class Repository:
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ── Migrations ──────────────────────────────────────────

    def apply_migrations(self, migrations_dir: Path):
        """Apply all pending SQL migrations in order.

        Each migration runs in a transaction: if the SQL fails, the
        schema_version row is not inserted, allowing retry on next startup.
        """
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "  version INTEGER PRIMARY KEY,"
            "  description TEXT,"
            "  applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
            ")"
        )
        self.conn.commit()

        row = self.conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        current = row[0] or 0

        for sql_file in sorted(Path(migrations_dir).glob("*.sql")):
            version = int(sql_file.name.split("_")[0])
            if version > current:
                try:
                    self.conn.execute("BEGIN")
                    # executescript auto-commits, so we split statements manually
                    sql_text = sql_file.read_text()
                    for statement in sql_text.split(";"):
                        statement = statement.strip()
                        if statement:
                            self.conn.execute(statement)
                    self.conn.execute(
                        "INSERT INTO schema_version (version, description) VALUES (?, ?)",
                        (version, sql_file.stem),
                    )
                    self.conn.commit()
                except Exception:
                    self.conn.rollback()
                    raise

    # ── Transactions ────────────────────────────────────────

    _TXN_INSERT = (
        "INSERT INTO transactions"
        " (id, date, amount, description, category_id, is_split,"
        "  pending_review, suggestion_confidence, suggestion_reasoning,"
        "  suggestion_pattern_id, created_at, updated_at)"
        " VALUES (?,?,?,?,?,?,?,?,?,?,?,?)"
    )

    @staticmethod
    def _txn_params(t: Transaction) -> tuple:
        s = t.suggestion
        return (
            t.id, t.date, t.amount, t.description, t.category_id,
            int(t.is_split), int(s is not None),
            s.confidence if s else None,
            s.reasoning if s else None,
            s.pattern_id if s else None,
            t.created_at, t.updated_at,
        )

    def insert_transaction(self, txn: Transaction) -> Transaction:
        self.conn.execute(self._TXN_INSERT, self._txn_params(txn))
        self.conn.commit()
        return txn

    def insert_transactions_batch(self, txns: list[Transaction]):
        """Insert multiple transactions atomically.

        Uses a transaction wrapper so either all inserts succeed or none do.
        """
        try:
            self.conn.execute("BEGIN")
            self.conn.executemany(
                self._TXN_INSERT, [self._txn_params(t) for t in txns],
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def get_transaction(self, txn_id: str) -> Transaction | None:
        row = self.conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (txn_id,)
        ).fetchone()
        return self._row_to_transaction(row) if row else None

    def get_all_transactions(self) -> list[Transaction]:
        rows = self.conn.execute(
            "SELECT * FROM transactions ORDER BY date, rowid"
        ).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def get_uncategorized_transactions(
        self, limit: int | None = None
    ) -> list[Transaction]:
        """Transactions eligible for a suggestion: no category, not split."""
        sql = (
            "SELECT * FROM transactions"
            " WHERE category_id IS NULL AND is_split = 0"
            " ORDER BY date, rowid"
        )
        params: list = []
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def get_pending_review_transactions(self) -> list[Transaction]:
        rows = self.conn.execute(
            "SELECT * FROM transactions WHERE pending_review = 1"
            " ORDER BY date, rowid"
        ).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def update_transaction(self, txn: Transaction) -> None:
        """Persist the mutable fields of a transaction.

        The suggestion columns are always written as a group, so clearing
        txn.suggestion clears all four.
        """
        txn.updated_at = _now()
        s = txn.suggestion
        self.conn.execute(
            "UPDATE transactions SET"
            "  date = ?, amount = ?, description = ?, category_id = ?,"
            "  is_split = ?, pending_review = ?, suggestion_confidence = ?,"
            "  suggestion_reasoning = ?, suggestion_pattern_id = ?,"
            "  updated_at = ?"
            " WHERE id = ?",
            (txn.date, txn.amount, txn.description, txn.category_id,
             int(txn.is_split), int(s is not None),
             s.confidence if s else None,
             s.reasoning if s else None,
             s.pattern_id if s else None,
             txn.updated_at, txn.id),
        )
        self.conn.commit()

    def set_transaction_category(
        self, txn_id: str, category_id: str | None
    ) -> None:
        """Record a manual categorization, discarding any pending suggestion."""
        self.conn.execute(
            "UPDATE transactions SET category_id = ?, pending_review = 0,"
            "  suggestion_confidence = NULL, suggestion_reasoning = NULL,"
            "  suggestion_pattern_id = NULL, updated_at = ?"
            " WHERE id = ?",
            (category_id, _now(), txn_id),
        )
        self.conn.commit()

    # ── Patterns ────────────────────────────────────────────

    def get_patterns(self) -> list[Pattern]:
        rows = self.conn.execute(
            "SELECT * FROM patterns ORDER BY rowid"
        ).fetchall()
        return [self._row_to_pattern(r) for r in rows]

    def get_pattern(self, pattern_id: str) -> Pattern | None:
        row = self.conn.execute(
            "SELECT * FROM patterns WHERE id = ?", (pattern_id,)
        ).fetchone()
        return self._row_to_pattern(row) if row else None

    def get_pattern_by_key(
        self, merchant_name: str, category_id: str
    ) -> Pattern | None:
        row = self.conn.execute(
            "SELECT * FROM patterns WHERE merchant_name = ? AND category_id = ?",
            (merchant_name, category_id),
        ).fetchone()
        return self._row_to_pattern(row) if row else None

    def add_pattern(self, pattern: Pattern) -> str:
        """Insert a pattern and return its id.

        Raises:
            DuplicatePatternError: If a pattern with the same merchant_name
                and category_id already exists.
        """
        try:
            self.conn.execute(
                "INSERT INTO patterns"
                " (id, merchant_name, category_id, match_count, accept_count,"
                "  deny_count, last_seen, amount_min, amount_max,"
                "  is_recurring, recurrence_pattern)"
                " VALUES (?,?,?,?,?,?,?,?,?,?,?)",
                (pattern.id, pattern.merchant_name, pattern.category_id,
                 pattern.match_count, pattern.accept_count,
                 pattern.deny_count, pattern.last_seen,
                 pattern.amount_min, pattern.amount_max,
                 int(pattern.is_recurring), pattern.recurrence_pattern),
            )
            self.conn.commit()
            return pattern.id
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            if "UNIQUE constraint failed: patterns.merchant_name" in str(e):
                existing = self.get_pattern_by_key(
                    pattern.merchant_name, pattern.category_id,
                )
                raise DuplicatePatternError(
                    pattern.merchant_name,
                    pattern.category_id,
                    existing.id if existing else None,
                ) from e
            raise

    def update_pattern(self, pattern: Pattern) -> None:
        self.conn.execute(
            "UPDATE patterns SET"
            "  match_count = ?, accept_count = ?, deny_count = ?,"
            "  last_seen = ?, amount_min = ?, amount_max = ?,"
            "  is_recurring = ?, recurrence_pattern = ?"
            " WHERE id = ?",
            (pattern.match_count, pattern.accept_count, pattern.deny_count,
             pattern.last_seen, pattern.amount_min, pattern.amount_max,
             int(pattern.is_recurring), pattern.recurrence_pattern,
             pattern.id),
        )
        self.conn.commit()

    # ── Row Converters ──────────────────────────────────────

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        suggestion = None
        if row["pending_review"]:
            suggestion = Suggestion(
                confidence=row["suggestion_confidence"],
                reasoning=row["suggestion_reasoning"],
                pattern_id=row["suggestion_pattern_id"],
            )
        return Transaction(
            id=row["id"], date=row["date"], amount=row["amount"],
            description=row["description"],
            category_id=row["category_id"],
            is_split=bool(row["is_split"]),
            suggestion=suggestion,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_pattern(row: sqlite3.Row) -> Pattern:
        return Pattern(
            id=row["id"], merchant_name=row["merchant_name"],
            category_id=row["category_id"],
            match_count=row["match_count"],
            accept_count=row["accept_count"],
            deny_count=row["deny_count"],
            last_seen=row["last_seen"],
            amount_min=row["amount_min"], amount_max=row["amount_max"],
            is_recurring=bool(row["is_recurring"]),
            recurrence_pattern=row["recurrence_pattern"],
        )
