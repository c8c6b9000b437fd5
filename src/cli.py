"""CLI entry point for MoneyTracker.

Commands:
    moneytracker mine                     Learn patterns from categorized history
    moneytracker suggest                  Suggest categories for uncategorized transactions
    moneytracker review                   List suggestions pending review
    moneytracker accept ID | --all        Accept one or all pending suggestions
    moneytracker deny ID                  Reject a suggestion (clears its category)
    moneytracker categorize ID CATEGORY   Record a manual categorization
    moneytracker patterns                 List learned patterns
    moneytracker threshold [VALUE]        Show or set the confidence threshold
    moneytracker status                   Transaction and pattern counts
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on FINANCE_LOG_LEVEL env var."""
    level = os.environ.get("FINANCE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load application config from config directory."""
    from src.config import Config

    config_dir = os.environ.get("FINANCE_CONFIG_DIR", "config")
    return Config(config_dir=config_dir)


def _get_repo():
    """Create a Repository connected to the configured database."""
    from src.database.repository import Repository

    db_path = os.environ.get("FINANCE_DB_PATH", "finance.db")
    return Repository(db_path=db_path)


def _get_migrations_dir() -> Path:
    """Get the migrations directory path."""
    return Path(os.environ.get(
        "FINANCE_MIGRATIONS_DIR", "src/database/migrations",
    ))


def _get_engine(config, repo):
    """Create a SuggestionEngine with patterns loaded from the repository."""
    from src.categorize.engine import SuggestionEngine
    from src.categorize.normalizer import MerchantNormalizer

    engine = SuggestionEngine(
        repo,
        normalizer=MerchantNormalizer(config.merchant_mappings),
        confidence_threshold=config.confidence_threshold,
    )
    engine.load()
    return engine


def _open_repo():
    repo = _get_repo()
    repo.apply_migrations(_get_migrations_dir())
    return repo


# ── Command handlers ─────────────────────────────────────


def cmd_mine(args: argparse.Namespace) -> int:
    """Mine categorized history into merchant -> category patterns."""
    from src.categorize.miner import is_minable

    config = _get_config()
    repo = _open_repo()
    try:
        engine = _get_engine(config, repo)
        transactions = repo.get_all_transactions()
        history = sum(1 for t in transactions if is_minable(t))
        mined = engine.mine(transactions)
        recurring = sum(1 for p in mined if p.is_recurring)
        print(
            f"Mined {len(mined)} patterns from {history} categorized transactions"
            f" ({recurring} recurring)."
        )
        return 0
    finally:
        repo.close()


def cmd_suggest(args: argparse.Namespace) -> int:
    """Attach suggestions to uncategorized transactions."""
    config = _get_config()
    repo = _open_repo()
    try:
        engine = _get_engine(config, repo)
        if not engine.patterns:
            print("No patterns learned yet. Run `moneytracker mine` first.")
            return 0

        pending = repo.get_uncategorized_transactions(limit=args.limit)
        result = engine.auto_categorize(pending)
        for txn, match in result.suggestions:
            print(
                f"  {txn.date}  {txn.amount:>10.2f}  {txn.description[:30]:<30}"
                f"  -> {match.pattern.category_id} ({match.confidence:.0f})"
            )
        print(
            f"\nProcessed {result.total} transactions: {result.suggested} suggested,"
            f" {result.no_match} without a match"
            f" (threshold {engine.get_confidence_threshold():.0f})."
        )
        return 0
    finally:
        repo.close()


def cmd_review(args: argparse.Namespace) -> int:
    """List transactions with a suggestion awaiting review."""
    repo = _open_repo()
    try:
        pending = repo.get_pending_review_transactions()
        if not pending:
            print("No suggestions pending review.")
            return 0

        print(f"Suggestions pending review ({len(pending)}):")
        print("-" * 80)
        for txn in pending:
            s = txn.suggestion
            print(
                f"  {txn.id}  {txn.date}  {txn.amount:>10.2f}"
                f"  {txn.description[:30]:<30}  {txn.category_id}  {s.confidence:.0f}"
            )
            if s.reasoning:
                print(f"      {s.reasoning}")
        return 0
    finally:
        repo.close()


def _load_pending(repo, txn_id: str):
    """Fetch a transaction by id, printing an error if missing or not pending."""
    txn = repo.get_transaction(txn_id)
    if txn is None:
        print(f"Error: Transaction '{txn_id}' not found.")
        return None
    if not txn.pending_review:
        print(f"Error: Transaction '{txn_id}' has no pending suggestion.")
        return None
    return txn


def cmd_accept(args: argparse.Namespace) -> int:
    """Accept one suggestion, or all pending suggestions with --all."""
    if not args.all and not args.id:
        print("Error: Give a transaction ID or --all.")
        return 1

    config = _get_config()
    repo = _open_repo()
    try:
        engine = _get_engine(config, repo)
        if args.all:
            count = engine.accept_all_pending(repo.get_pending_review_transactions())
            print(f"Accepted {count} suggestion(s).")
            return 0

        txn = _load_pending(repo, args.id)
        if txn is None:
            return 1
        engine.accept_suggestion(txn)
        print(f"Accepted '{txn.category_id}' for {txn.id}.")
        return 0
    finally:
        repo.close()


def cmd_deny(args: argparse.Namespace) -> int:
    """Reject a suggestion and clear the transaction's category."""
    config = _get_config()
    repo = _open_repo()
    try:
        engine = _get_engine(config, repo)
        txn = _load_pending(repo, args.id)
        if txn is None:
            return 1
        rejected = txn.category_id
        engine.deny_suggestion(txn)
        print(f"Rejected '{rejected}' for {txn.id}.")
        return 0
    finally:
        repo.close()


def cmd_categorize(args: argparse.Namespace) -> int:
    """Record a manual categorization, which becomes minable history."""
    repo = _open_repo()
    try:
        txn = repo.get_transaction(args.id)
        if txn is None:
            print(f"Error: Transaction '{args.id}' not found.")
            return 1
        if txn.is_split:
            print(f"Error: Transaction '{args.id}' is split; categorize its parts instead.")
            return 1
        repo.set_transaction_category(txn.id, args.category_id)
        print(f"Categorized {txn.id} as '{args.category_id}'.")
        return 0
    finally:
        repo.close()


def cmd_patterns(args: argparse.Namespace) -> int:
    """List learned patterns."""
    repo = _open_repo()
    try:
        patterns = repo.get_patterns()
        if not patterns:
            print("No patterns learned yet.")
            return 0

        print(f"Learned patterns ({len(patterns)}):")
        print("-" * 80)
        for p in sorted(patterns, key=lambda p: (-p.match_count, p.merchant_name)):
            if p.has_amount_range:
                amounts = f"{p.amount_min:.2f}-{p.amount_max:.2f}"
            else:
                amounts = "n/a"
            recurring = f"  [{p.recurrence_pattern}]" if p.is_recurring else ""
            print(
                f"  {p.merchant_name[:28]:<28}  {p.category_id:<18}"
                f"  n={p.match_count:<4} +{p.accept_count}/-{p.deny_count}"
                f"  {amounts}{recurring}"
            )
        return 0
    finally:
        repo.close()


def cmd_threshold(args: argparse.Namespace) -> int:
    """Show or persist the confidence threshold."""
    config = _get_config()
    if args.value is None:
        print(f"Confidence threshold: {config.confidence_threshold:.0f}")
        return 0

    stored = config.save_confidence_threshold(args.value)
    if stored != args.value:
        print(f"Threshold clamped to {stored:.0f}.")
    print(f"Confidence threshold set to {stored:.0f}.")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Display transaction and pattern counts."""
    from src.database.queries import get_pattern_feedback_summary, get_status_counts

    repo = _open_repo()
    try:
        counts = get_status_counts(repo.conn)

        print("MoneyTracker Status")
        print("=" * 40)
        print(f"  Total transactions:  {counts['total_txns']:,}")
        print(f"  Categorized:         {counts['categorized']:,}")
        print(f"  Uncategorized:       {counts['uncategorized']:,}")
        print(f"  Pending review:      {counts['pending_review']:,}")
        print(f"  Split:               {counts['split']:,}")
        print(f"  Patterns:            {counts['total_patterns']:,}"
              f" ({counts['recurring_patterns']:,} recurring)")

        summary = get_pattern_feedback_summary(repo.conn)
        if summary:
            print("\n  By category:")
            for row in summary:
                print(
                    f"    {row['category_id']:<20}  patterns={row['pattern_count']}"
                    f"  history={row['match_total']}"
                    f"  +{row['accept_total']}/-{row['deny_total']}"
                )
        return 0
    finally:
        repo.close()


# ── Main entry point ─────────────────────────────────────


_COMMANDS = {
    "mine": cmd_mine,
    "suggest": cmd_suggest,
    "review": cmd_review,
    "accept": cmd_accept,
    "deny": cmd_deny,
    "categorize": cmd_categorize,
    "patterns": cmd_patterns,
    "threshold": cmd_threshold,
    "status": cmd_status,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="moneytracker",
        description="MoneyTracker smart categorization",
    )
    subparsers = parser.add_subparsers(dest="command")

    # mine
    subparsers.add_parser("mine", help="Learn patterns from categorized history")

    # suggest
    suggest_p = subparsers.add_parser("suggest", help="Suggest categories for uncategorized transactions")
    suggest_p.add_argument("--limit", type=int, default=None, help="Max transactions to process")

    # review
    subparsers.add_parser("review", help="List suggestions pending review")

    # accept
    accept_p = subparsers.add_parser("accept", help="Accept pending suggestion(s)")
    accept_p.add_argument("id", nargs="?", help="Transaction ID")
    accept_p.add_argument("--all", action="store_true", help="Accept every pending suggestion")

    # deny
    deny_p = subparsers.add_parser("deny", help="Reject a suggestion")
    deny_p.add_argument("id", help="Transaction ID")

    # categorize
    cat_p = subparsers.add_parser("categorize", help="Record a manual categorization")
    cat_p.add_argument("id", help="Transaction ID")
    cat_p.add_argument("category_id", help="Category ID")

    # patterns
    subparsers.add_parser("patterns", help="List learned patterns")

    # threshold
    thr_p = subparsers.add_parser("threshold", help="Show or set the confidence threshold")
    thr_p.add_argument("value", nargs="?", type=float, help="New threshold (0-100)")

    # status
    subparsers.add_parser("status", help="Show transaction and pattern counts")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()
