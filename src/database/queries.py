"""Aggregate queries that span multiple tables.

These go beyond single-table CRUD and back the reporting commands.
"""

from __future__ import annotations

import sqlite3


def get_status_counts(conn: sqlite3.Connection) -> dict:
    """Counts for the `moneytracker status` command."""
    row = conn.execute(
        "SELECT"
        "  (SELECT COUNT(*) FROM transactions) AS total_txns,"
        "  (SELECT COUNT(*) FROM transactions"
        "    WHERE category_id IS NOT NULL AND pending_review = 0) AS categorized,"
        "  (SELECT COUNT(*) FROM transactions"
        "    WHERE category_id IS NULL AND is_split = 0) AS uncategorized,"
        "  (SELECT COUNT(*) FROM transactions WHERE pending_review = 1) AS pending_review,"
        "  (SELECT COUNT(*) FROM transactions WHERE is_split = 1) AS split,"
        "  (SELECT COUNT(*) FROM patterns) AS total_patterns,"
        "  (SELECT COUNT(*) FROM patterns WHERE is_recurring = 1) AS recurring_patterns"
    ).fetchone()
    return dict(row)


def get_pattern_feedback_summary(conn: sqlite3.Connection) -> list[dict]:
    """Per-category pattern totals: patterns, history volume, feedback tallies."""
    rows = conn.execute(
        "SELECT category_id,"
        "  COUNT(*) AS pattern_count,"
        "  SUM(match_count) AS match_total,"
        "  SUM(accept_count) AS accept_total,"
        "  SUM(deny_count) AS deny_total"
        " FROM patterns"
        " GROUP BY category_id"
        " ORDER BY match_total DESC, category_id"
    ).fetchall()
    return [dict(r) for r in rows]
