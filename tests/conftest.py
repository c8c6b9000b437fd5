"""Shared test fixtures."""

from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent

# Test fixture config directory with synthetic data
FIXTURE_CONFIG_DIR = Path(__file__).parent / "fixtures" / "config"

MIGRATIONS_DIR = PROJECT_ROOT / "src" / "database" / "migrations"
