"""
Plain-text reports of category trees and finance elements, for the CLI.
"""
import logging
from typing import List, Optional

from budget_explorer.core.finance_element import FinanceElementView
from budget_explorer.core.tree import CategoryNode, flatten_tree, tree_depth
from budget_explorer.data.texts import TextsStore

logger = logging.getLogger(__name__)


def format_amount(amount: Optional[float]) -> str:
    if amount is None:
        return "-"
    return f"{amount:,.2f} €"


def format_hierarchy_report(
    root: Optional[CategoryNode],
    texts: Optional[TextsStore] = None,
    title: str = "Budget Hierarchy",
    indent_size: int = 2,
    max_depth: Optional[int] = None,
) -> str:
    """Format a category tree as an indented text report."""
    lines = [title, "=" * 50, ""]

    if root is None:
        lines.append("(no data)")
        return "\n".join(lines)

    _format_node(root, texts, lines, 0, indent_size, max_depth)
    lines.extend(["", f"{len(flatten_tree(root))} categories, depth {tree_depth(root)}"])
    return "\n".join(lines)


def _format_node(
    node: CategoryNode,
    texts: Optional[TextsStore],
    lines: List[str],
    depth: int,
    indent_size: int,
    max_depth: Optional[int],
):
    """Recursively format a node and its children."""
    indent = " " * (depth * indent_size)
    label = texts.label_for(node.id) if texts else node.id

    if label != node.id:
        lines.append(f"{indent}{node.id} - {label}: {format_amount(node.total)}")
    else:
        lines.append(f"{indent}{node.id}: {format_amount(node.total)}")

    if max_depth is not None and depth >= max_depth:
        return

    for child in node.children:
        _format_node(child, texts, lines, depth + 1, indent_size, max_depth)


def format_element_report(view: FinanceElementView, texts: Optional[TextsStore] = None) -> str:
    """Format a finance element the way the detail page lays it out."""
    lines = [view.title, "=" * 50, ""]
    if view.breadcrumb:
        lines.append(" > ".join([summary.label for summary in view.breadcrumb] + [view.label]))
    lines.append(f"Montant: {format_amount(view.amount)}")

    if view.top is not None:
        if view.parent is not None:
            lines.append(f"Parent: {view.parent.label} ({format_amount(view.parent.amount)})")
        lines.append(f"Total: {view.top.label} ({format_amount(view.top.amount)})")

    if view.texts and view.texts.atemporal:
        lines.extend(["", view.texts.atemporal.strip()])

    lines.extend(["", "Évolution:"])
    for year in view.years:
        partition = view.barchart_partition_by_year.get(year)
        marker = "*" if year == view.year else " "
        parts = ", ".join(
            f"{entry.label}: {format_amount(entry.part_amount)}" for entry in partition
        ) if partition else "-"
        lines.append(f" {marker} {year}: {format_amount(view.amount_by_year.get(year))}  [{parts}]")

    if view.texts and view.texts.temporal:
        lines.extend(["", view.texts.temporal.strip()])

    if not view.is_leaf:
        lines.extend(["", f"Détail en {view.year}:"])
        for entry in view.this_year_partition:
            lines.append(f"  {entry.label}: {format_amount(entry.part_amount)}  ({entry.url})")
    elif view.rows:
        lines.extend(["", f"Données M52 en {view.year}:"])
        for row in view.rows:
            function = (texts.function_label(row.function_code) if texts else None) or row.function_code
            lines.append(f"  {function} | {row.label or row.nature_code} | {format_amount(row.amount)}")

    return "\n".join(lines)
