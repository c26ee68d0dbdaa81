"""
Configuration settings for the Budget Explorer.

Key Design Principle: paths and tunables come from environment variables,
business rules (aggregation table, merge rules) live in configuration data,
never inline in the engine.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

CONFIG_DIR = Path(__file__).parent

# Logical field -> column header of the datalocale "comptes administratifs" export
DEFAULT_LEDGER_COLUMNS: Dict[str, str] = {
    "year": "Exercice",
    "direction": "Dépense/Recette",
    "section": "Investissement/Fonctionnement",
    "chapter": "Chapitre",
    "nature_code": "Nature",
    "function_code": "Rubrique fonctionnelle",
    "label": "Libellé",
    "amount": "Montant",
}


@dataclass(frozen=True)
class MergeRule:
    """
    Chart-only merge of two sibling categories under one parent.

    The absorbed entry disappears from the chart partition, the kept entry
    is shown under `label`. Amounts, ids and links are never changed.
    """
    parent_id: str
    absorbed_id: str
    kept_id: str
    label: str


# Merge Registry - one entry per explicitly approved merge
# Social spending is charted as a single "par publics" bar under DF.
MERGE_RULES: List[MergeRule] = [
    MergeRule(
        parent_id="DF",
        absorbed_id="DF-1",
        kept_id="DF-2",
        label="Actions sociales par publics",
    ),
]


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    parsed = int(value)
    return parsed if parsed > 0 else None


def _int_list(value: Optional[str]) -> List[int]:
    """Parse "2015, 2016,2017" into [2015, 2016, 2017]."""
    if not value:
        return []
    return [int(part) for part in value.replace(";", ",").split(",") if part.strip()]


@dataclass
class LedgerConfig:
    """Ledger (M52 CSV export) source configuration."""
    data_dir: str = field(default_factory=lambda: os.getenv("LEDGER_DATA_DIR", "data/ledgers"))
    # e.g. https://example.org/ca/CA_{year}.csv
    url_template: str = field(default_factory=lambda: os.getenv("LEDGER_URL_TEMPLATE", ""))
    # Years fetched through url_template, e.g. "2015,2016,2017"
    years: List[int] = field(default_factory=lambda: _int_list(os.getenv("LEDGER_YEARS")))
    csv_separator: str = field(default_factory=lambda: os.getenv("LEDGER_CSV_SEPARATOR", ";"))
    csv_decimal: str = field(default_factory=lambda: os.getenv("LEDGER_CSV_DECIMAL", "."))
    csv_encoding: str = field(default_factory=lambda: os.getenv("LEDGER_CSV_ENCODING", "utf-8"))
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("LEDGER_REQUEST_TIMEOUT", "30"))
    )
    columns: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LEDGER_COLUMNS))


@dataclass
class ExplorerConfig:
    """Engine configuration: rule tables, texts and memoization."""
    aggregation_rules_path: str = field(
        default_factory=lambda: os.getenv(
            "AGGREGATION_RULES_PATH", str(CONFIG_DIR / "aggregation_rules.yaml")
        )
    )
    texts_path: str = field(
        default_factory=lambda: os.getenv("TEXTS_PATH", str(CONFIG_DIR / "texts.yaml"))
    )
    m52_fonctions_path: str = field(
        default_factory=lambda: os.getenv(
            "M52_FONCTIONS_PATH", str(CONFIG_DIR / "m52_fonctions.yaml")
        )
    )
    # None or 0 = unbounded
    cache_max_entries: Optional[int] = field(
        default_factory=lambda: _optional_int(os.getenv("TREE_CACHE_MAX_ENTRIES", "64"))
    )
    merge_rules: List[MergeRule] = field(default_factory=lambda: list(MERGE_RULES))


@dataclass
class AppConfig:
    """Main application configuration."""
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    explorer: ExplorerConfig = field(default_factory=ExplorerConfig)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


def get_config() -> AppConfig:
    """Factory function to get application configuration."""
    return AppConfig()
