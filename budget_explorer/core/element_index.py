"""
Element Index

One year's id -> CategoryNode lookup, merging the aggregated tree with the
(optional) detail tree. On id collision the detail tree wins: it is flattened
last and later insertions overwrite earlier ones.
"""
import logging
from collections.abc import Mapping
from typing import Dict, Iterator, Optional

from budget_explorer.core.tree import CategoryNode, flatten_tree

logger = logging.getLogger(__name__)


class ElementIndex(Mapping):
    """Read-only mapping of category id to node for a single year."""

    def __init__(self, elements: Dict[str, CategoryNode]):
        self._elements: Dict[str, CategoryNode] = dict(elements)

    @classmethod
    def build(
        cls,
        aggregated: Optional[CategoryNode],
        detail: Optional[CategoryNode] = None,
    ) -> 'ElementIndex':
        elements: Dict[str, CategoryNode] = {}
        overridden = 0

        for node in flatten_tree(aggregated):
            elements[node.id] = node

        for node in flatten_tree(detail):
            if node.id in elements:
                overridden += 1
            elements[node.id] = node

        if overridden:
            logger.debug(f"Detail tree overrode {overridden} aggregated ids")

        return cls(elements)

    def __getitem__(self, category_id: str) -> CategoryNode:
        return self._elements[category_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def totals(self) -> Dict[str, float]:
        """Category id -> total."""
        return {category_id: node.total for category_id, node in self._elements.items()}

    def __repr__(self) -> str:
        return f"ElementIndex({len(self._elements)} elements)"
