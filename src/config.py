"""YAML configuration loader for Billfold.

Loads the seed config files from the config/ directory:
  classification.yaml, merchants.yaml
"""

from pathlib import Path

import yaml


class Config:
    """Loads and provides access to the YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._classification: dict | None = None
        self._merchants: dict | None = None

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
    def classification(self) -> dict:
        if self._classification is None:
            self._classification = self._load("classification.yaml")
        return self._classification

    @property
    def merchants(self) -> dict:
        if self._merchants is None:
            self._merchants = self._load("merchants.yaml")
        return self._merchants

    @property
    def classification_rules(self) -> list[dict]:
        """Ordered rule entries: label, description_keywords, bank_categories."""
        return self.classification.get("rules", [])

    @property
    def fallback_type(self) -> str:
        """Transaction type assigned when no rule matches. Default: 'misc'."""
        return self.classification.get("fallback_type", "misc")

    @property
    def extraction_patterns(self) -> list[str]:
        """Regex sources for merchant extraction, tried in order."""
        return self.merchants.get("extraction_patterns", [])

    @property
    def city_suffixes(self) -> list[str]:
        """City names that terminate a merchant label in bank descriptions."""
        return self.merchants.get("city_suffixes", [])
