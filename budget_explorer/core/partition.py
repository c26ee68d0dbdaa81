"""
Partitions

A partition is the breakdown of one category into its children's amounts for
a given year; it feeds the stacked bar chart and the drill-down list.

Supports:
- Projection of a category into partition entries (one per child, or the
  category itself for a leaf)
- Cross-year alignment so stacking order does not jitter from year to year
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from budget_explorer.core.constants import DETAIL_LINK_PREFIX
from budget_explorer.core.tree import CategoryNode
from budget_explorer.data.texts import TextsRecord, TextsStore

logger = logging.getLogger(__name__)

UNKNOWN_POSITION = -1

Partition = Tuple['PartitionEntry', ...]
TextsSource = Union[TextsStore, Mapping[str, TextsRecord], None]


def detail_link(category_id: str) -> str:
    """Routable link of a category's detail page."""
    return f"{DETAIL_LINK_PREFIX}{category_id}"


@dataclass(frozen=True)
class PartitionEntry:
    """One part of a partition."""
    content_id: str
    part_amount: float
    texts: Optional[TextsRecord]
    url: str

    @property
    def label(self) -> str:
        return self.texts.label if self.texts and self.texts.label else self.content_id

    def with_label(self, label: str) -> 'PartitionEntry':
        texts = self.texts.with_label(label) if self.texts else TextsRecord(id=self.content_id, label=label)
        return replace(self, texts=texts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_id": self.content_id,
            "part_amount": self.part_amount,
            "label": self.label,
            "texts": self.texts.to_dict() if self.texts else None,
            "url": self.url,
        }


def _texts_lookup(texts: TextsSource) -> Callable[[str], Optional[TextsRecord]]:
    if texts is None:
        return lambda category_id: None
    if isinstance(texts, TextsStore):
        return texts.texts_for_id
    return texts.get


def make_partition(
    node: CategoryNode,
    texts: TextsSource = None,
    link_for: Callable[[str], str] = detail_link,
) -> Partition:
    """
    Project a category into partition entries.

    Children keep their tree order; nothing is sorted here. A leaf yields a
    single entry describing itself.
    """
    texts_for_id = _texts_lookup(texts)
    parts = node.children if node.has_children else (node,)

    return tuple(
        PartitionEntry(
            content_id=part.id,
            part_amount=part.total,
            texts=texts_for_id(part.id),
            url=link_for(part.id),
        )
        for part in parts
    )


def project_partition(
    category_id: str,
    index: Optional[Mapping[str, CategoryNode]],
    texts: TextsSource = None,
) -> Optional[Partition]:
    """Partition of a category in one year's index, None when absent."""
    if index is None:
        return None
    node = index.get(category_id)
    if node is None:
        return None
    return make_partition(node, texts)


def canonical_order(partition: Sequence[PartitionEntry]) -> List[str]:
    """Ids sorted by amount, largest first (stable on ties)."""
    ranked = sorted(partition, key=lambda entry: entry.part_amount, reverse=True)
    return [entry.content_id for entry in ranked]


def align_partitions(
    partition_by_year: Mapping[int, Optional[Sequence[PartitionEntry]]],
) -> Dict[int, Optional[Partition]]:
    """
    Reorder every year's partition to follow the most recent year's ranking.

    The reference is the latest year that has a partition. Ids unknown to the
    reference sort first (position -1) and keep their relative order.
    Only the order changes; absent years stay absent.
    """
    present_years = [year for year, partition in partition_by_year.items() if partition is not None]
    if not present_years:
        return {year: None for year in partition_by_year}

    reference_year = max(present_years)
    positions: Dict[str, int] = {}
    for position, content_id in enumerate(canonical_order(partition_by_year[reference_year])):
        positions.setdefault(content_id, position)

    def sort_key(entry: PartitionEntry) -> int:
        return positions.get(entry.content_id, UNKNOWN_POSITION)

    return {
        year: tuple(sorted(partition, key=sort_key)) if partition is not None else None
        for year, partition in partition_by_year.items()
    }
