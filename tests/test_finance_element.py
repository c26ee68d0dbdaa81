"""
End-to-end tests for finance element views.

Tests cover:
- Amounts and aligned partitions over the years
- Chart-only merge on DF
- Parent/top context
- Leaf rows
- Absence propagation (unknown id, year without data)
- Cache reuse, invalidation on snapshot replacement, bounded caches
- Building from a local directory or a remote url template
"""
from unittest.mock import MagicMock

import pytest

from budget_explorer.core.constants import EXPENDITURES, REVENUE
from budget_explorer.core.error_taxonomy import ConfigurationError
from budget_explorer.core.finance_element import (
    FinanceExplorer,
    build_finance_explorer,
    detail_section,
    get_finance_explorer,
    reset_finance_explorer,
)
from budget_explorer.core.tree import iter_sum_violations
from budget_explorer.data.aggregation_cache import TreeCache
from config.settings import AppConfig, ExplorerConfig, LedgerConfig


def context_id(summary):
    return summary.id if summary is not None else None


def ids(partition):
    return [e.content_id for e in partition]


class TestDetailSection:
    """Tests for detail_section."""

    @pytest.mark.parametrize("category_id,expected", [
        ("M52-DF-51", "DF"),
        ("M52-RI", "RI"),
        ("DF-1", None),
        ("M52-XX-1", None),
        ("", None),
    ])
    def test_detail_section(self, category_id, expected):
        assert detail_section(category_id) == expected


class TestAggregatedElement:
    """Tests for aggregated categories."""

    def test_amount_by_year(self, explorer):
        view = explorer.explore("DF", 2017)
        assert view.amount_by_year == {2016: 230.0, 2017: 330.0}
        assert view.amount == 330.0

    def test_partitions_aligned_on_latest_year(self, explorer):
        """2017 ranks DF-1 (150) before DF-2 (130); 2016 follows that order."""
        view = explorer.explore("DF", 2016)
        assert ids(view.partition_by_year[2017]) == ["DF-1", "DF-2", "DF-3", "DF-other"]
        assert ids(view.partition_by_year[2016]) == ["DF-1", "DF-2", "DF-3"]
        assert [e.part_amount for e in view.partition_by_year[2016]] == [90.0, 95.0, 45.0]

    def test_partition_totals(self, explorer):
        view = explorer.explore("D", 2017)
        for year, partition in view.partition_by_year.items():
            assert sum(e.part_amount for e in partition) == pytest.approx(view.amount_by_year[year])

    def test_barchart_merge_on_df_only(self, explorer):
        view = explorer.explore("DF", 2017)

        chart = view.barchart_partition_by_year[2017]
        assert "DF-1" not in ids(chart)
        assert chart[0].content_id == "DF-2"
        assert chart[0].label == "Actions sociales par publics"
        assert chart[0].part_amount == 130.0

        # drill-down list untouched
        assert ids(view.this_year_partition) == ["DF-1", "DF-2", "DF-3", "DF-other"]
        assert view.this_year_partition[1].label == "Actions sociales"

    def test_no_merge_elsewhere(self, explorer):
        view = explorer.explore("D", 2017)
        assert view.barchart_partition_by_year == view.partition_by_year

    def test_contexts(self, explorer):
        view = explorer.explore("DF-2-1", 2017)
        assert view.parent.id == "DF-2"
        assert view.top.id == "D"
        assert view.domain == EXPENDITURES

    def test_breadcrumb(self, explorer):
        view = explorer.explore("DF-2-1", 2017)
        assert [s.id for s in view.breadcrumb] == ["total", "D", "DF", "DF-2"]
        assert view.breadcrumb[-1].label == "Actions sociales"
        assert view.to_dict()["breadcrumb"][1]["url"] == "#!/finance-details/D"

    def test_domain_root_has_no_context(self, explorer):
        view = explorer.explore("R", 2017)
        assert view.parent is None
        assert view.top is None
        assert view.domain == REVENUE

    def test_texts_and_title(self, explorer):
        view = explorer.explore("DF", 2017)
        assert view.texts.atemporal == "Le fonctionnement."
        assert view.title == "Dépenses de fonctionnement en 2017"

    def test_leaf_rows_sorted_by_amount(self, explorer):
        view = explorer.explore("DF-2-1", 2017)
        assert view.is_leaf
        assert [r.amount for r in view.rows] == [80.0, 20.0]

    def test_non_leaf_has_no_rows(self, explorer):
        view = explorer.explore("DF-2", 2017)
        assert not view.is_leaf
        assert view.rows == ()

    def test_to_dict(self, explorer):
        data = explorer.explore("DF-2-1", 2017).to_dict()
        assert data["amount"] == 100.0
        assert data["parent"]["url"] == "#!/finance-details/DF-2"
        assert data["partition_by_year"][2017][0]["content_id"] == "DF-2-1"
        assert data["rows"][0]["amount"] == 80.0


class TestDetailElement:
    """Tests for M52 categories."""

    def test_detail_element(self, explorer):
        view = explorer.explore("M52-DF-51", 2017)
        assert view.rdfi == "DF"
        assert view.amount == 100.0
        assert view.parent.id == "M52-DF-5"
        assert view.top.id == "D"
        assert view.title == "Dépense de fonctionnement - Famille et enfance en 2017"

    def test_detail_breadcrumb(self, explorer):
        view = explorer.explore("M52-DF-51", 2017)
        assert [s.id for s in view.breadcrumb] == ["M52-DF", "M52-DF-5"]

    def test_detail_section_root_children_have_no_context(self, explorer):
        view = explorer.explore("M52-DF-5", 2017)
        assert view.parent is None
        assert view.top is None

    def test_nature_leaf_rows(self, explorer):
        view = explorer.explore("M52-DF-511-6522", 2017)
        assert view.is_leaf
        assert [r.label for r in view.rows] == ["Frais de séjour"]

    def test_detail_trees_hold_sum_invariant(self, explorer):
        for rdfi in ("DF", "DI", "RF", "RI"):
            assert list(iter_sum_violations(explorer.detail_tree(2017, rdfi))) == []


class TestAbsence:
    """Tests for absence propagation."""

    def test_unknown_id(self, explorer):
        assert explorer.explore("DF-9", 2017) is None

    def test_year_without_data(self, explorer):
        """A requested year with no rows yields absent amount and partition."""
        view = explorer.explore("DF", 2015)
        assert view.amount_by_year[2015] is None
        assert view.partition_by_year[2015] is None
        assert view.barchart_partition_by_year[2015] is None
        assert view.amount is None
        assert view.parent is None
        assert view.is_leaf

    def test_category_missing_in_one_year(self, explorer):
        """DI has no rows in 2016."""
        view = explorer.explore("DI", 2016)
        assert view.amount_by_year == {2016: None, 2017: 60.0}
        assert view.partition_by_year[2016] is None

    def test_trees_absent(self, explorer):
        assert explorer.aggregated_tree(1990) is None
        assert explorer.element_index(1990) is None
        assert explorer.detail_tree(2016, "DI") is None


class TestCaching:
    """Tests for memoization through the explorer."""

    def test_trees_are_reused(self, explorer):
        first = explorer.aggregated_tree(2017)
        assert explorer.aggregated_tree(2017) is first
        assert explorer.cache.hits >= 1

    def test_replaced_snapshot_is_recomputed(self, explorer, make_ledger_row):
        before = explorer.explore("DF", 2017)
        explorer.repository.replace_year(2017, [make_ledger_row(2017, "DF", "R621", "615", 7)])
        after = explorer.explore("DF", 2017)

        assert before.amount == 330.0
        assert after.amount == 7.0
        assert ids(after.this_year_partition) == ["DF-3"]


# (category id, year, expected parent id, expected top id)
CONTEXT_CASES = [
    ("DF-2-1", 2016, "DF-2", "D"),
    ("DF-2-1", 2017, "DF-2", "D"),
    ("M52-DF-51", 2017, "M52-DF-5", "D"),
    ("M52-DF-5", 2017, None, None),
    ("DF-2", 2017, "DF", "D"),
    ("DF", 2017, None, "D"),
    ("R", 2017, None, None),
]


class TestBoundedCache:
    """Views must not depend on which cache entries were evicted."""

    @pytest.fixture
    def make_explorer(self, repository, texts, builder):
        def make(max_entries):
            return FinanceExplorer(
                repository=repository,
                texts=texts,
                aggregation_builder=builder,
                cache=TreeCache(max_entries=max_entries),
            )
        return make

    @pytest.mark.parametrize("max_entries", [1, 2, 3, 4])
    def test_contexts_under_eviction(self, make_explorer, max_entries):
        explorer = make_explorer(max_entries)

        for _ in range(2):
            for category_id, year, parent_id, top_id in CONTEXT_CASES:
                view = explorer.explore(category_id, year)
                assert (context_id(view.parent), context_id(view.top)) == (parent_id, top_id), \
                    f"{category_id} {year}"

        assert len(explorer.cache) <= max_entries

    @pytest.mark.parametrize("max_entries", [1, 2, 3, 4])
    def test_views_match_unbounded_cache(self, explorer, make_explorer, max_entries):
        bounded = make_explorer(max_entries)

        for category_id, year, _, _ in reversed(CONTEXT_CASES):
            expected = explorer.explore(category_id, year)
            view = bounded.explore(category_id, year)
            assert view.to_dict() == expected.to_dict()

    def test_index_and_trees_share_nodes(self, make_explorer):
        """Index lookups return the nodes of the cached trees."""
        explorer = make_explorer(1)
        trees = explorer.year_trees(2017, "DF")

        assert trees.index["D"] is trees.aggregated.child("D")
        assert trees.index["M52-DF"] is trees.detail
        assert trees.ancestors.parent_of(trees.index["M52-DF-51"]) is trees.index["M52-DF-5"]

        explorer.aggregated_tree(2016)  # evicts the 2017 entry
        assert explorer.year_trees(2017, "DF") is not trees


class TestFactory:
    """Tests for building the explorer from configuration."""

    @pytest.fixture
    def config(self, tmp_path):
        from budget_explorer.tools.mock_data_generator import write_mock_ledger_csv

        write_mock_ledger_csv([2016, 2017], tmp_path, seed=1)
        return AppConfig(ledger=LedgerConfig(data_dir=str(tmp_path), url_template=""), explorer=ExplorerConfig())

    def test_build_from_config(self, config):
        explorer = build_finance_explorer(config)
        assert isinstance(explorer, FinanceExplorer)
        assert explorer.repository.years() == [2016, 2017]

        view = explorer.explore("DF", 2017)
        assert view.amount == pytest.approx(explorer.aggregated_tree(2017).child("D").child("DF").total)

    def test_singleton(self, config):
        reset_finance_explorer()
        try:
            assert get_finance_explorer(config) is get_finance_explorer()
        finally:
            reset_finance_explorer()

    def test_build_from_url_template(self, tmp_path):
        from budget_explorer.tools.mock_data_generator import write_mock_ledger_csv

        exports = {p.name: p.read_bytes() for p in write_mock_ledger_csv([2016, 2017], tmp_path, seed=1)}

        def get(url, timeout=None):
            response = MagicMock()
            response.content = exports[url.rsplit("/", 1)[-1]]
            return response

        session = MagicMock()
        session.get.side_effect = get
        config = AppConfig(
            ledger=LedgerConfig(
                data_dir=str(tmp_path / "unused"),
                url_template="https://example.org/ca/CA_{year}.csv",
                years=[2016, 2017],
            ),
            explorer=ExplorerConfig(),
        )

        explorer = build_finance_explorer(config, session=session)

        assert explorer.repository.years() == [2016, 2017]
        assert [c[0][0] for c in session.get.call_args_list] == [
            "https://example.org/ca/CA_2016.csv",
            "https://example.org/ca/CA_2017.csv",
        ]
        local = build_finance_explorer(
            AppConfig(ledger=LedgerConfig(data_dir=str(tmp_path), url_template=""), explorer=ExplorerConfig())
        )
        assert explorer.explore("DF", 2017).amount == pytest.approx(local.explore("DF", 2017).amount)

    def test_url_template_without_years(self):
        config = AppConfig(
            ledger=LedgerConfig(url_template="https://example.org/ca/CA_{year}.csv", years=[]),
            explorer=ExplorerConfig(),
        )
        with pytest.raises(ConfigurationError):
            build_finance_explorer(config, session=MagicMock())
