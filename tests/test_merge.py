"""
Unit tests for the chart merge rules.
"""
import pytest

from budget_explorer.core.merge import apply_merge_rules, merge_partitions_by_year
from budget_explorer.core.partition import PartitionEntry, detail_link
from budget_explorer.data.texts import TextsRecord
from config.settings import MERGE_RULES, MergeRule


def entry(content_id, amount, label=None):
    texts = TextsRecord(id=content_id, label=label) if label else None
    return PartitionEntry(content_id=content_id, part_amount=float(amount), texts=texts, url=detail_link(content_id))


@pytest.fixture
def df_partition():
    return (
        entry("DF-1", 150, "Allocations"),
        entry("DF-2", 130, "Actions sociales"),
        entry("DF-3", 40),
    )


class TestMergeRules:
    """Tests for apply_merge_rules."""

    def test_registry(self):
        """Exactly one merge is configured."""
        assert MERGE_RULES == [MergeRule("DF", "DF-1", "DF-2", "Actions sociales par publics")]

    def test_absorbed_entry_dropped(self, df_partition):
        merged = apply_merge_rules("DF", df_partition)
        assert [e.content_id for e in merged] == ["DF-2", "DF-3"]

    def test_kept_entry_relabeled_only(self, df_partition):
        merged = apply_merge_rules("DF", df_partition)
        kept = merged[0]
        assert kept.label == "Actions sociales par publics"
        assert kept.part_amount == 130.0
        assert kept.url == "#!/finance-details/DF-2"

    def test_input_untouched(self, df_partition):
        """The drill-down partition keeps every id and label."""
        apply_merge_rules("DF", df_partition)
        assert [e.content_id for e in df_partition] == ["DF-1", "DF-2", "DF-3"]
        assert df_partition[1].label == "Actions sociales"

    def test_other_categories_pass_through(self, df_partition):
        assert apply_merge_rules("DI", df_partition) == df_partition

    def test_kept_entry_without_texts(self):
        merged = apply_merge_rules("DF", (entry("DF-1", 1), entry("DF-2", 2)))
        assert merged[0].texts.label == "Actions sociales par publics"

    def test_kept_entry_absent(self):
        """Nothing is dropped when the relabeled entry is not there."""
        partition = (entry("DF-1", 1), entry("DF-3", 2))
        assert apply_merge_rules("DF", partition) == partition

    def test_custom_rules(self):
        rules = [MergeRule("R", "RI", "RF", "Recettes")]
        merged = apply_merge_rules("R", (entry("RF", 5), entry("RI", 1)), rules)
        assert [e.label for e in merged] == ["Recettes"]

    def test_absent_partition(self):
        assert apply_merge_rules("DF", None) is None

    def test_by_year(self, df_partition):
        merged = merge_partitions_by_year("DF", {2016: None, 2017: df_partition})
        assert merged[2016] is None
        assert len(merged[2017]) == 2
