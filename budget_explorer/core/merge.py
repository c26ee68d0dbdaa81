"""
Chart Merge Rules

Some sibling categories are shown as a single bar in the chart even though
the drill-down list keeps them apart. Each such merge is an explicit entry in
config.settings.MERGE_RULES; nothing here knows about specific ids.

The merged partition is a chart-only view: callers keep the original
partition for everything else.
"""
import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from budget_explorer.core.partition import Partition, PartitionEntry
from config.settings import MERGE_RULES, MergeRule

logger = logging.getLogger(__name__)


def rules_for(content_id: str, rules: Iterable[MergeRule]) -> Tuple[MergeRule, ...]:
    return tuple(rule for rule in rules if rule.parent_id == content_id)


def apply_merge_rules(
    content_id: str,
    partition: Optional[Sequence[PartitionEntry]],
    rules: Optional[Iterable[MergeRule]] = None,
) -> Optional[Partition]:
    """
    Chart view of one category's partition.

    For every rule whose parent is `content_id`, the absorbed entry is
    dropped and the kept entry is relabeled. Amount, id and url of the kept
    entry stay as they are. Other categories pass through unchanged.

    Args:
        content_id: Category the partition belongs to
        partition: Partition of that category for one year (None passes through)
        rules: Merge rules, defaults to MERGE_RULES

    Returns:
        A new partition tuple; the input is never modified
    """
    if partition is None:
        return None

    applicable = rules_for(content_id, MERGE_RULES if rules is None else rules)
    if not applicable:
        return tuple(partition)

    merged = list(partition)
    for rule in applicable:
        ids = [entry.content_id for entry in merged]
        if rule.kept_id not in ids:
            # relabeling something that is not displayed would hide the absorbed amount
            logger.debug(f"Merge {rule.absorbed_id} -> {rule.kept_id} skipped: {rule.kept_id} absent")
            continue

        merged = [
            entry.with_label(rule.label) if entry.content_id == rule.kept_id else entry
            for entry in merged
            if entry.content_id != rule.absorbed_id
        ]
        logger.debug(f"Merged {rule.absorbed_id} into {rule.kept_id} for {content_id}")

    return tuple(merged)


def merge_partitions_by_year(
    content_id: str,
    partition_by_year: Mapping[int, Optional[Sequence[PartitionEntry]]],
    rules: Optional[Iterable[MergeRule]] = None,
) -> Dict[int, Optional[Partition]]:
    """apply_merge_rules over every year; absent years stay absent."""
    rules = list(MERGE_RULES if rules is None else rules)
    return {
        year: apply_merge_rules(content_id, partition, rules)
        for year, partition in partition_by_year.items()
    }
