"""
Ancestor Resolution

Answers "who is the parent of this category" and "which domain (expenditures
or revenue) does it belong to" without storing parent pointers on nodes.

Key Concepts:
- AncestorMap: arena of nodes plus a parallel list of parent positions,
  built in one traversal. Nodes are addressed by identity, so an aggregated
  node and a detail node sharing an id never get mixed up.
- Deep element: anything below the domain roots and below the detail root's
  direct children. Only deep elements get parent/top context.
- Domain classification relies on the id prefix (D... / M52-D... for
  expenditures, R... / M52-R... for revenue). It is a best-effort heuristic;
  ids following neither convention stay unclassified.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from budget_explorer.core.constants import EXPENDITURES, M52_PREFIX, REVENUE
from budget_explorer.core.element_index import ElementIndex
from budget_explorer.core.partition import detail_link
from budget_explorer.core.tree import CategoryNode
from budget_explorer.data.texts import TextsStore

logger = logging.getLogger(__name__)

NO_PARENT = -1


class AncestorMap:
    """Child -> parent relation over one year's trees."""

    def __init__(self):
        self._nodes: List[CategoryNode] = []
        self._parents: List[int] = []
        self._position: Dict[int, int] = {}  # id(node) -> arena position

    @classmethod
    def build(cls, *trees: Optional[CategoryNode]) -> 'AncestorMap':
        ancestors = cls()
        for root in trees:
            if root is not None:
                ancestors._add_tree(root)
        return ancestors

    def _add_tree(self, root: CategoryNode) -> None:
        stack = [(root, NO_PARENT)]
        while stack:
            node, parent_position = stack.pop()
            if id(node) in self._position:
                continue
            position = len(self._nodes)
            self._nodes.append(node)
            self._parents.append(parent_position)
            self._position[id(node)] = position
            stack.extend((child, position) for child in reversed(node.children))

    def parent_of(self, node: CategoryNode) -> Optional[CategoryNode]:
        position = self._position.get(id(node))
        if position is None:
            return None
        parent_position = self._parents[position]
        if parent_position == NO_PARENT:
            return None
        return self._nodes[parent_position]

    def path_to_root(self, node: CategoryNode) -> List[CategoryNode]:
        """Root-to-node path (breadcrumb order); empty for unknown nodes."""
        position = self._position.get(id(node))
        if position is None:
            return []

        path = []
        while position != NO_PARENT:
            path.append(self._nodes[position])
            position = self._parents[position]
        return list(reversed(path))

    def __contains__(self, node: CategoryNode) -> bool:
        return id(node) in self._position

    def __len__(self) -> int:
        return len(self._nodes)


def classify_domain(category_id: Optional[str]) -> Optional[str]:
    """EXPENDITURES, REVENUE, or None when the id matches neither prefix."""
    if not category_id:
        return None
    # weak test on the id prefix
    if category_id.startswith(EXPENDITURES) or category_id.startswith(M52_PREFIX + EXPENDITURES):
        return EXPENDITURES
    if category_id.startswith(REVENUE) or category_id.startswith(M52_PREFIX + REVENUE):
        return REVENUE
    logger.debug(f"Category id {category_id!r} is neither expenditure nor revenue")
    return None


def is_top_level_or_domain_root(node: CategoryNode) -> bool:
    return node.id in (EXPENDITURES, REVENUE)


@dataclass(frozen=True)
class ContextSummary:
    """Short description of a related category (parent or domain root)."""
    id: str
    amount: float
    label: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "label": self.label,
            "url": self.url,
        }


class ContextResolver:
    """
    Parent/top context of elements for one year.

    Args:
        index: The year's element index
        ancestors: Relation built over the same trees as the index
        detail_root: Root of the detail tree, None when no detail tree is used
        texts: Label source
    """

    def __init__(
        self,
        index: ElementIndex,
        ancestors: AncestorMap,
        detail_root: Optional[CategoryNode],
        texts: TextsStore,
    ):
        self.index = index
        self.ancestors = ancestors
        self.detail_root = detail_root
        self.texts = texts

    def is_deep(self, node: CategoryNode) -> bool:
        """
        False for domain roots and for nodes whose parent is the detail root.

        Without a detail tree, parentless nodes (the aggregated root) compare
        equal to the absent detail root and are not deep either.
        """
        if is_top_level_or_domain_root(node):
            return False
        return self.ancestors.parent_of(node) is not self.detail_root

    def parent_node(self, node: CategoryNode) -> Optional[CategoryNode]:
        if not self.is_deep(node):
            return None
        return self.ancestors.parent_of(node)

    def top_node(self, node: CategoryNode) -> Optional[CategoryNode]:
        if not self.is_deep(node):
            return None
        domain = classify_domain(node.id)
        if domain is None:
            return None
        return self.index.get(domain)

    def summarize(self, node: CategoryNode) -> ContextSummary:
        return ContextSummary(
            id=node.id,
            amount=node.total,
            label=self.texts.label_for(node.id),
            url=detail_link(node.id),
        )

    def parent_context(self, node: CategoryNode) -> Optional[ContextSummary]:
        """Parent summary; omitted when the parent is the domain root itself."""
        parent = self.parent_node(node)
        if parent is None:
            return None
        top = self.top_node(node)
        if top is not None and parent.id == top.id:
            return None
        return self.summarize(parent)

    def top_context(self, node: CategoryNode) -> Optional[ContextSummary]:
        top = self.top_node(node)
        return self.summarize(top) if top is not None else None
