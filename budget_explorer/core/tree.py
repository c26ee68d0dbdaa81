"""
Budget Category Tree

Provides the single node shape used by both the aggregated and the detail
(M52) hierarchies, and depth-first flattening of those trees.

Key Concepts:
- CategoryNode: a budget category with an aggregated total
- Total: always the sum of the children totals for non-leaf nodes
- TreeView: restartable, lazy pre-order sequence of every node in a tree
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

KIND_AGGREGATED = "aggregated"
KIND_M52 = "m52"

SUM_TOLERANCE = 0.005


@dataclass(frozen=True, eq=False)
class CategoryNode:
    """
    A budget category in one year's tree.

    Nodes compare by identity: two trees may contain nodes sharing an id,
    and lookups (e.g. parent resolution) must not confuse them.
    """
    id: str
    total: float
    kind: str = KIND_AGGREGATED
    children: Tuple['CategoryNode', ...] = ()
    rows: Tuple[Any, ...] = ()  # Contributing LedgerRows, leaves only

    @classmethod
    def leaf(cls, id: str, rows: Sequence[Any], kind: str = KIND_AGGREGATED) -> 'CategoryNode':
        """Build a leaf whose total is the sum of its rows."""
        rows = tuple(rows)
        return cls(
            id=id,
            total=float(sum(row.amount for row in rows)),
            kind=kind,
            rows=rows,
        )

    @classmethod
    def branch(cls, id: str, children: Sequence['CategoryNode'], kind: str = KIND_AGGREGATED) -> 'CategoryNode':
        """Build an inner node; its total comes from its children only. Rows stay on the leaves."""
        children = tuple(children)
        return cls(
            id=id,
            total=float(sum(child.total for child in children)),
            kind=kind,
            children=children,
        )

    @property
    def has_children(self) -> bool:
        return len(self.children) > 0

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def child(self, child_id: str) -> Optional['CategoryNode']:
        for c in self.children:
            if c.id == child_id:
                return c
        return None

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "total": self.total,
            "kind": self.kind,
            "child_count": len(self.children),
            "row_count": len(self.rows),
        }

        if include_children and self.children:
            result["children"] = [c.to_dict(include_children) for c in self.children]

        return result

    def __repr__(self) -> str:
        return f"CategoryNode(id={self.id!r}, total={self.total!r}, children={len(self.children)})"


Roots = Union[None, CategoryNode, Iterable[Optional[CategoryNode]]]


def _as_roots(roots: Roots) -> Tuple[CategoryNode, ...]:
    if roots is None:
        return ()
    if isinstance(roots, CategoryNode):
        return (roots,)
    return tuple(r for r in roots if r is not None)


class TreeView:
    """
    Restartable depth-first pre-order view over one or more trees.

    Each call to iter() starts a fresh walk; the view holds no cursor state.
    """

    def __init__(self, roots: Roots):
        self._roots = _as_roots(roots)

    def __iter__(self) -> Iterator[CategoryNode]:
        stack: List[CategoryNode] = list(reversed(self._roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def ids(self) -> List[str]:
        return [node.id for node in self]

    def __len__(self) -> int:
        return sum(1 for _ in self)


def flatten_tree(roots: Roots) -> TreeView:
    """Flatten a tree (or several) into a lazy, restartable node sequence."""
    return TreeView(roots)


def iter_sum_violations(roots: Roots, tolerance: float = SUM_TOLERANCE) -> Iterator[CategoryNode]:
    """Yield every non-leaf node whose total differs from its children's sum."""
    for node in flatten_tree(roots):
        if node.has_children:
            children_sum = sum(c.total for c in node.children)
            if abs(node.total - children_sum) > tolerance:
                yield node


def tree_depth(root: Optional[CategoryNode]) -> int:
    """Depth of a tree, 0 for a lone root."""
    if root is None:
        return 0

    max_depth = 0
    stack: List[Tuple[CategoryNode, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        max_depth = max(max_depth, depth)
        stack.extend((c, depth + 1) for c in node.children)
    return max_depth
