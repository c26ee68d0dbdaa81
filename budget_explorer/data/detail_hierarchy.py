"""
Detail (M52) Budget Hierarchy

Builds the fine-grained tree of one section (DF, DI, RF or RI) straight from
the M52 functional classification.

Key Concepts:
- Root: "M52-<RDFI>"
- Function levels follow the code prefixes: 5 -> 51 -> 511
- Each row lands in a nature leaf under its deepest function:
  "M52-DF-511-6568"
"""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from budget_explorer.core.constants import M52_PREFIX, RDFI_SECTIONS
from budget_explorer.core.tree import KIND_M52, CategoryNode, flatten_tree
from budget_explorer.data.ledger import LedgerRow

logger = logging.getLogger(__name__)


def detail_root_id(rdfi: str) -> str:
    return f"{M52_PREFIX}{rdfi}"


class DetailHierarchyBuilder:
    """Builds the M52 function/nature tree of one section."""

    def build(self, rows: Iterable[LedgerRow], rdfi: str) -> Optional[CategoryNode]:
        """
        Build the detail tree for a section.

        Args:
            rows: Ledger rows of a single year
            rdfi: Section selector ("DF", "DI", "RF" or "RI")

        Returns:
            Root node "M52-<rdfi>", or None when the section has no rows
        """
        if rdfi not in RDFI_SECTIONS:
            raise ValueError(f"Unknown section {rdfi!r}. Expected one of {RDFI_SECTIONS}")

        root_id = detail_root_id(rdfi)

        # deepest function digits -> nature code -> rows
        by_function: Dict[str, Dict[str, List[LedgerRow]]] = defaultdict(lambda: defaultdict(list))
        prefixes: Set[str] = set()
        missing_function = 0

        for row in rows:
            if row.rdfi != rdfi:
                continue
            digits = row.function_digits
            if not digits:
                missing_function += 1
                continue
            by_function[digits][row.nature_code].append(row)
            prefixes.update(digits[:i] for i in range(1, len(digits) + 1))

        if missing_function:
            logger.warning(f"Ignored {missing_function} {rdfi} rows without a function code")

        if not by_function:
            return None

        def make(prefix: str) -> CategoryNode:
            node_id = f"{root_id}-{prefix}"
            sub_functions = sorted(
                p for p in prefixes
                if len(p) == len(prefix) + 1 and p.startswith(prefix)
            )
            children = [make(p) for p in sub_functions]
            natures = by_function.get(prefix, {})
            children.extend(
                CategoryNode.leaf(f"{node_id}-{nature}", natures[nature], kind=KIND_M52)
                for nature in sorted(natures)
            )
            return CategoryNode.branch(node_id, children, kind=KIND_M52)

        root = CategoryNode.branch(
            root_id,
            [make(p) for p in sorted(p for p in prefixes if len(p) == 1)],
            kind=KIND_M52,
        )

        logger.debug(f"Built {rdfi} detail tree: {len(flatten_tree(root))} nodes, total {root.total:,.2f}")
        return root
