"""
Data layer: ledger snapshots, tree builders, texts and tree caching.
"""
from budget_explorer.data.ledger import (
    LedgerRow,
    LedgerSnapshot,
    LedgerRepository,
    load_ledger_csv,
    fetch_ledger_csv,
)
from budget_explorer.data.aggregation import (
    AggregationRule,
    AggregationBuilder,
    load_aggregation_rules,
    parse_aggregation_rules,
)
from budget_explorer.data.detail_hierarchy import (
    DetailHierarchyBuilder,
    detail_root_id,
)
from budget_explorer.data.aggregation_cache import (
    CachedTree,
    TreeCache,
)
from budget_explorer.data.texts import (
    TextsRecord,
    TextsStore,
    parse_texts,
)

__all__ = [
    # Ledger
    "LedgerRow",
    "LedgerSnapshot",
    "LedgerRepository",
    "load_ledger_csv",
    "fetch_ledger_csv",
    # Aggregated tree
    "AggregationRule",
    "AggregationBuilder",
    "load_aggregation_rules",
    "parse_aggregation_rules",
    # Detail tree
    "DetailHierarchyBuilder",
    "detail_root_id",
    # Caching
    "CachedTree",
    "TreeCache",
    # Texts
    "TextsRecord",
    "TextsStore",
    "parse_texts",
]
