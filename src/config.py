"""YAML configuration loader for MoneyTracker.

Loads the seed config files from the config/ directory:
  merchants.yaml   ordered merchant-name mapping table for normalization
  engine.yaml      suggestion engine settings (confidence threshold)
"""

import re
from pathlib import Path

import yaml

DEFAULT_CONFIDENCE_THRESHOLD = 70.0


def clamp_threshold(value: float) -> float:
    """Clamp a confidence threshold into [0, 100]."""
    return max(0.0, min(100.0, float(value)))


class Config:
    """Loads and provides access to all YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._merchants: dict | None = None
        self._engine: dict | None = None

    def _load(self, filename: str) -> dict | list:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        return data

    @property
    def merchants(self) -> dict:
        if self._merchants is None:
            self._merchants = self._load("merchants.yaml")
        return self._merchants

    @property
    def engine(self) -> dict:
        if self._engine is None:
            self._engine = self._load("engine.yaml")
        return self._engine

    @property
    def merchant_mappings(self) -> list[tuple[str, str]]:
        """Ordered (pattern, canonical_name) pairs from merchants.yaml.

        Patterns are case-insensitive regular expressions; they are compiled
        here so a bad entry fails at load time rather than mid-scoring.
        """
        entries = self.merchants.get("mappings", [])
        path = self.config_dir / "merchants.yaml"
        mappings: list[tuple[str, str]] = []
        for entry in entries:
            pattern = entry.get("pattern")
            name = entry.get("name")
            if not pattern or not name:
                raise ValueError(
                    f"Merchant mapping needs both 'pattern' and 'name' in {path}: {entry}"
                )
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValueError(
                    f"Invalid merchant pattern '{pattern}' in {path}: {e}"
                ) from e
            mappings.append((pattern, name))
        return mappings

    @property
    def confidence_threshold(self) -> float:
        """Minimum confidence (0-100) for a suggestion. Default: 70."""
        value = self.engine.get("confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD)
        try:
            return clamp_threshold(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"confidence_threshold must be a number in "
                f"{self.config_dir / 'engine.yaml'}, got {value!r}"
            ) from e

    def save_confidence_threshold(self, value: float) -> float:
        """Clamp and write the threshold back to engine.yaml. Returns the stored value."""
        threshold = clamp_threshold(value)
        data = dict(self.engine)
        data["confidence_threshold"] = threshold
        path = self.config_dir / "engine.yaml"
        with open(path, "w") as f:
            f.write("# Suggestion engine settings for MoneyTracker\n")
            f.write("# Updated by `moneytracker threshold`\n\n")
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        self._engine = data
        return threshold
