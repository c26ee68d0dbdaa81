"""
Aggregated Budget Hierarchy

Turns one year's ledger rows into the coarse "aggregated" category tree
shown on the explorer's landing pages.

Key Concepts:
- Aggregation rule: a leaf category matching rows by function/nature prefix
- Category ids encode their lineage: DF-1-2 -> DF-1 -> DF -> D -> total
- Rows no rule matches land in the section's "<RDFI>-other" leaf
- Inner totals are sums of children, never sums of raw rows
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import yaml

from budget_explorer.core.constants import AGGREGATED_ROOT, RDFI_SECTIONS
from budget_explorer.core.error_taxonomy import ConfigurationError
from budget_explorer.core.tree import KIND_AGGREGATED, CategoryNode, flatten_tree, iter_sum_violations
from budget_explorer.data.ledger import LedgerRow

logger = logging.getLogger(__name__)

FALLBACK_SUFFIX = "other"


def fallback_id(rdfi: str) -> str:
    return f"{rdfi}-{FALLBACK_SUFFIX}"


def lineage(category_id: str) -> List[str]:
    """Ancestors of an aggregated id, domain root first, the id itself last."""
    parts = category_id.split("-")
    chain = ["-".join(parts[:i]) for i in range(1, len(parts) + 1)]
    return [parts[0][:1]] + chain


@dataclass(frozen=True)
class AggregationRule:
    """A leaf of the aggregated hierarchy and the rows it collects."""
    id: str
    functions: Tuple[str, ...] = ()  # function code prefixes, without "R"
    natures: Tuple[str, ...] = ()  # nature code prefixes

    @property
    def rdfi(self) -> str:
        return self.id.split("-")[0]

    def matches(self, row: LedgerRow) -> bool:
        if row.rdfi != self.rdfi:
            return False
        if self.functions and not row.function_digits.startswith(self.functions):
            return False
        if self.natures and not row.nature_code.startswith(self.natures):
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "functions": list(self.functions),
            "natures": list(self.natures),
        }


def _as_prefixes(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, int)):
        return (str(value),)
    return tuple(str(v) for v in value)


def parse_aggregation_rules(raw: Dict[str, Any]) -> List[AggregationRule]:
    """Validate the decoded YAML document and build the rules."""
    entries = (raw or {}).get("categories")
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError("Aggregation rules must define a non-empty 'categories' list")

    rules: List[AggregationRule] = []
    seen = set()
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("id"):
            raise ConfigurationError(f"Aggregation rule without id: {entry!r}")

        rule = AggregationRule(
            id=str(entry["id"]),
            functions=_as_prefixes(entry.get("functions")),
            natures=_as_prefixes(entry.get("natures")),
        )
        if rule.rdfi not in RDFI_SECTIONS:
            raise ConfigurationError(
                f"Aggregation rule {rule.id} does not start with a section ({', '.join(RDFI_SECTIONS)})"
            )
        if "-" not in rule.id or rule.id.endswith(f"-{FALLBACK_SUFFIX}"):
            raise ConfigurationError(
                f"Aggregation rule id {rule.id} must be below its section and not a fallback id"
            )
        if rule.id in seen:
            raise ConfigurationError(f"Duplicate aggregation rule id: {rule.id}")
        seen.add(rule.id)
        rules.append(rule)

    # a leaf may not also be the ancestor of another leaf
    for rule in rules:
        inner = set(lineage(rule.id)[:-1]) & seen
        if inner:
            raise ConfigurationError(
                f"Aggregation rule {rule.id} is nested under leaf rule(s) {sorted(inner)}"
            )

    return rules


def load_aggregation_rules(path: Union[str, Path]) -> List[AggregationRule]:
    """Load the aggregation table from YAML."""
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Aggregation rules not found at {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid aggregation rules YAML {path}: {e}") from e

    rules = parse_aggregation_rules(raw)
    logger.info(f"Loaded {len(rules)} aggregation rules from {path}")
    return rules


class AggregationBuilder:
    """
    Builds the aggregated category tree of one year.

    The tree shape follows the rule table order; only categories that
    received at least one row are created.
    """

    def __init__(self, rules: Sequence[AggregationRule]):
        self.rules = list(rules)
        self._rules_by_section: Dict[str, List[AggregationRule]] = defaultdict(list)
        for rule in self.rules:
            self._rules_by_section[rule.rdfi].append(rule)

        self._leaf_order: List[str] = [r.id for r in self.rules]
        self._leaf_order.extend(fallback_id(s) for s in RDFI_SECTIONS)

    def match(self, row: LedgerRow) -> Optional[str]:
        """Leaf id collecting this row, None for rows outside the four sections."""
        if row.rdfi not in RDFI_SECTIONS:
            return None
        for rule in self._rules_by_section.get(row.rdfi, ()):
            if rule.matches(row):
                return rule.id
        return fallback_id(row.rdfi)

    def build(self, rows: Iterable[LedgerRow]) -> Optional[CategoryNode]:
        """
        Build the aggregated tree.

        Args:
            rows: Ledger rows of a single year

        Returns:
            Root node ("total"), or None when there are no usable rows
        """
        buckets: Dict[str, List[LedgerRow]] = defaultdict(list)
        skipped = 0
        for row in rows:
            leaf_id = self.match(row)
            if leaf_id is None:
                skipped += 1
                continue
            buckets[leaf_id].append(row)

        if skipped:
            logger.warning(f"Ignored {skipped} ledger rows outside the known sections")

        if not buckets:
            return None

        children_ids: Dict[str, List[str]] = defaultdict(list)
        for leaf_id in self._leaf_order:
            if leaf_id not in buckets:
                continue
            chain = [AGGREGATED_ROOT] + lineage(leaf_id)
            for parent, child in zip(chain, chain[1:]):
                if child not in children_ids[parent]:
                    children_ids[parent].append(child)

        def make(node_id: str) -> CategoryNode:
            if node_id in buckets:
                return CategoryNode.leaf(node_id, buckets[node_id], kind=KIND_AGGREGATED)
            return CategoryNode.branch(
                node_id,
                [make(child_id) for child_id in children_ids[node_id]],
                kind=KIND_AGGREGATED,
            )

        root = make(AGGREGATED_ROOT)

        logger.debug(
            f"Built aggregated tree: {len(flatten_tree(root))} nodes, "
            f"{len(buckets)} leaves, total {root.total:,.2f}"
        )
        for node in iter_sum_violations(root):
            logger.warning(f"Aggregated node {node.id} total does not match its children")

        return root
