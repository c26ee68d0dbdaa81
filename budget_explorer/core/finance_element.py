"""
Finance Element Assembly

Produces everything a detail page needs for one (category, year) request:
amounts over the years, aligned partitions, the chart-only merged
partitions, parent/top context, the breadcrumb and the raw rows of leaf
categories.

Data flow:
    ledger snapshot (per year)
      -> AggregationBuilder / DetailHierarchyBuilder
      -> YearTrees: ElementIndex + AncestorMap (per year, one cache entry)
      -> ContextResolver + make_partition
      -> align_partitions (across years)
      -> apply_merge_rules (chart view only)

Absence is the only failure mode: an unknown id or a year without data
yields None values, never an exception.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests

from config.settings import AppConfig, MergeRule, get_config
from budget_explorer.core.ancestors import AncestorMap, ContextResolver, ContextSummary, classify_domain
from budget_explorer.core.constants import M52_PREFIX, RDFI_SECTIONS, SECTION_LABELS
from budget_explorer.core.element_index import ElementIndex
from budget_explorer.core.merge import merge_partitions_by_year
from budget_explorer.core.partition import Partition, align_partitions, make_partition
from budget_explorer.core.tree import CategoryNode
from budget_explorer.data.aggregation import AggregationBuilder, load_aggregation_rules
from budget_explorer.data.aggregation_cache import TreeCache
from budget_explorer.data.detail_hierarchy import DetailHierarchyBuilder
from budget_explorer.data.ledger import LedgerRepository, LedgerRow
from budget_explorer.data.texts import TextsRecord, TextsStore

logger = logging.getLogger(__name__)

KIND_YEAR_TREES = "year_trees"


def detail_section(category_id: str) -> Optional[str]:
    """Section of a detail id ("M52-DF-51" -> "DF"), None for other ids."""
    if not category_id or not category_id.startswith(M52_PREFIX):
        return None
    rdfi = category_id[len(M52_PREFIX):].split("-", 1)[0]
    return rdfi if rdfi in RDFI_SECTIONS else None


@dataclass(frozen=True, eq=False)
class YearTrees:
    """
    One year's trees with the index and ancestor relation built over them.

    The relation is keyed by node identity, so all four parts are produced
    and cached together; nodes looked up in `index` are the ones `ancestors`
    knows about.
    """
    year: int
    rdfi: Optional[str]
    aggregated: Optional[CategoryNode]
    detail: Optional[CategoryNode]
    index: ElementIndex
    ancestors: AncestorMap

    def resolver(self, texts: TextsStore) -> ContextResolver:
        return ContextResolver(
            index=self.index,
            ancestors=self.ancestors,
            detail_root=self.detail,
            texts=texts,
        )


@dataclass
class FinanceElementView:
    """Detail page data for one category, centered on one year."""
    id: str
    year: int
    texts: Optional[TextsRecord]
    domain: Optional[str]
    rdfi: Optional[str]
    amount_by_year: Dict[int, Optional[float]] = field(default_factory=dict)
    partition_by_year: Dict[int, Optional[Partition]] = field(default_factory=dict)
    barchart_partition_by_year: Dict[int, Optional[Partition]] = field(default_factory=dict)
    parent: Optional[ContextSummary] = None
    top: Optional[ContextSummary] = None
    breadcrumb: Tuple[ContextSummary, ...] = ()  # Root first, the element excluded
    rows: Tuple[LedgerRow, ...] = ()

    @property
    def amount(self) -> Optional[float]:
        return self.amount_by_year.get(self.year)

    @property
    def label(self) -> str:
        return self.texts.label if self.texts and self.texts.label else self.id

    @property
    def title(self) -> str:
        """Page title, e.g. "Dépense de fonctionnement - Enfance en 2017"."""
        section = SECTION_LABELS.get(self.rdfi) if self.rdfi else None
        if section:
            return f"{section} - {self.label} en {self.year}"
        return f"{self.label} en {self.year}"

    @property
    def this_year_partition(self) -> Optional[Partition]:
        return self.partition_by_year.get(self.year)

    @property
    def is_leaf(self) -> bool:
        """A category with fewer than two parts this year is shown as a leaf."""
        partition = self.this_year_partition
        return partition is None or len(partition) < 2

    @property
    def years(self) -> List[int]:
        return sorted(self.amount_by_year)

    def to_dict(self) -> Dict[str, Any]:
        def partitions(by_year: Dict[int, Optional[Partition]]) -> Dict[int, Any]:
            return {
                year: [entry.to_dict() for entry in partition] if partition is not None else None
                for year, partition in by_year.items()
            }

        return {
            "id": self.id,
            "year": self.year,
            "label": self.label,
            "title": self.title,
            "texts": self.texts.to_dict() if self.texts else None,
            "domain": self.domain,
            "rdfi": self.rdfi,
            "amount": self.amount,
            "is_leaf": self.is_leaf,
            "amount_by_year": dict(self.amount_by_year),
            "partition_by_year": partitions(self.partition_by_year),
            "barchart_partition_by_year": partitions(self.barchart_partition_by_year),
            "parent": self.parent.to_dict() if self.parent else None,
            "top": self.top.to_dict() if self.top else None,
            "breadcrumb": [summary.to_dict() for summary in self.breadcrumb],
            "rows": [row.to_dict() for row in self.rows],
        }


class FinanceExplorer:
    """
    Per-year trees, indexes and finance element views over a ledger repository.

    Args:
        repository: Source of yearly ledger snapshots
        texts: Labels and texts store
        aggregation_builder: Builder of the aggregated tree
        detail_builder: Builder of the M52 detail trees
        merge_rules: Chart merge rules (None = MERGE_RULES)
        cache: Memoization cache; replaced snapshots invalidate it
    """

    def __init__(
        self,
        repository: LedgerRepository,
        texts: TextsStore,
        aggregation_builder: AggregationBuilder,
        detail_builder: Optional[DetailHierarchyBuilder] = None,
        merge_rules: Optional[List[MergeRule]] = None,
        cache: Optional[TreeCache] = None,
    ):
        self.repository = repository
        self.texts = texts
        self.aggregation_builder = aggregation_builder
        self.detail_builder = detail_builder or DetailHierarchyBuilder()
        self.merge_rules = merge_rules
        self.cache = cache if cache is not None else TreeCache()

        self.repository.add_listener(self.cache.invalidate)

    def year_trees(self, year: int, rdfi: Optional[str] = None) -> Optional[YearTrees]:
        """
        The year's trees and lookups, built together and cached as one entry.

        Args:
            year: Ledger year
            rdfi: Section whose detail tree is included, None for the aggregated tree only

        Returns:
            YearTrees, or None when the year has no rows
        """
        snapshot = self.repository.rows_for_year(year)
        if snapshot is None:
            return None

        def compute() -> YearTrees:
            aggregated = self.aggregation_builder.build(snapshot.rows)
            detail = self.detail_builder.build(snapshot.rows, rdfi) if rdfi else None
            return YearTrees(
                year=year,
                rdfi=rdfi,
                aggregated=aggregated,
                detail=detail,
                index=ElementIndex.build(aggregated, detail),
                ancestors=AncestorMap.build(aggregated, detail),
            )

        return self.cache.get_or_compute(KIND_YEAR_TREES, year, snapshot, compute, rdfi=rdfi)

    def aggregated_tree(self, year: int) -> Optional[CategoryNode]:
        trees = self.year_trees(year)
        return trees.aggregated if trees is not None else None

    def detail_tree(self, year: int, rdfi: str) -> Optional[CategoryNode]:
        trees = self.year_trees(year, rdfi)
        return trees.detail if trees is not None else None

    def element_index(self, year: int, rdfi: Optional[str] = None) -> Optional[ElementIndex]:
        """Index of the year's aggregated tree, plus the detail tree of `rdfi` if given."""
        trees = self.year_trees(year, rdfi)
        return trees.index if trees is not None else None

    def node(self, category_id: str, year: int) -> Optional[CategoryNode]:
        index = self.element_index(year, detail_section(category_id))
        return index.get(category_id) if index is not None else None

    def explore(self, category_id: str, year: int) -> Optional[FinanceElementView]:
        """
        Assemble the finance element of a category.

        Args:
            category_id: Aggregated ("DF-1") or detail ("M52-DF-51") id
            year: Selected year

        Returns:
            FinanceElementView, or None when the id exists in no year
        """
        rdfi = detail_section(category_id)
        years = sorted(set(self.repository.years()) | {year})

        amount_by_year: Dict[int, Optional[float]] = {}
        raw_partitions: Dict[int, Optional[Partition]] = {}
        selected_node: Optional[CategoryNode] = None
        selected_trees: Optional[YearTrees] = None

        for y in years:
            trees = self.year_trees(y, rdfi)
            node = trees.index.get(category_id) if trees is not None else None
            if node is None:
                amount_by_year[y] = None
                raw_partitions[y] = None
                continue
            amount_by_year[y] = node.total
            raw_partitions[y] = make_partition(node, self.texts)
            if y == year:
                selected_node = node
                selected_trees = trees

        if all(amount is None for amount in amount_by_year.values()):
            logger.info(f"Category {category_id} not found in any year")
            return None

        partition_by_year = align_partitions(raw_partitions)
        barchart_partition_by_year = merge_partitions_by_year(
            category_id, partition_by_year, self.merge_rules
        )

        parent = top = None
        breadcrumb: Tuple[ContextSummary, ...] = ()
        rows: Tuple[LedgerRow, ...] = ()
        if selected_node is not None:
            # node and relation must come from the same tree objects
            resolver = selected_trees.resolver(self.texts)
            parent = resolver.parent_context(selected_node)
            top = resolver.top_context(selected_node)
            breadcrumb = tuple(
                resolver.summarize(ancestor)
                for ancestor in selected_trees.ancestors.path_to_root(selected_node)[:-1]
            )
            if selected_node.is_leaf:
                rows = tuple(sorted(selected_node.rows, key=lambda row: row.amount, reverse=True))
        else:
            logger.debug(f"Category {category_id} has no data for {year}")

        return FinanceElementView(
            id=category_id,
            year=year,
            texts=self.texts.texts_for_id(category_id),
            domain=classify_domain(category_id),
            rdfi=rdfi,
            amount_by_year=amount_by_year,
            partition_by_year=partition_by_year,
            barchart_partition_by_year=barchart_partition_by_year,
            parent=parent,
            top=top,
            breadcrumb=breadcrumb,
            rows=rows,
        )


def build_finance_explorer(
    config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
) -> FinanceExplorer:
    """Build an explorer from configuration (ledger source, rule and texts files)."""
    config = config or get_config()

    repository = LedgerRepository.from_config(config.ledger, session=session)
    texts = TextsStore.from_yaml(config.explorer.texts_path, config.explorer.m52_fonctions_path)
    rules = load_aggregation_rules(config.explorer.aggregation_rules_path)

    return FinanceExplorer(
        repository=repository,
        texts=texts,
        aggregation_builder=AggregationBuilder(rules),
        detail_builder=DetailHierarchyBuilder(),
        merge_rules=config.explorer.merge_rules,
        cache=TreeCache(max_entries=config.explorer.cache_max_entries),
    )


# Singleton instance
_explorer: Optional[FinanceExplorer] = None


def get_finance_explorer(config: Optional[AppConfig] = None) -> FinanceExplorer:
    """Get the finance explorer instance."""
    global _explorer
    if _explorer is None:
        _explorer = build_finance_explorer(config)
    return _explorer


def reset_finance_explorer() -> None:
    """Reset the finance explorer instance (for testing)."""
    global _explorer
    _explorer = None
