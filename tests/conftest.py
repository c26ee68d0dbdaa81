"""
Shared fixtures: two small hand-written yearly ledgers and the rule table
they are aggregated with.

2017 totals: DF 330 (DF-1 150, DF-2 130, DF-3 40, DF-other 10), DI 60,
RF 500, RI 70 -> D 390, R 570, total 960.
2016 totals: DF 230 (DF-1 90, DF-2 95, DF-3 45), RF 280 -> total 510.
"""
import pytest

from budget_explorer.core.finance_element import FinanceExplorer
from budget_explorer.data.aggregation import AggregationBuilder, parse_aggregation_rules
from budget_explorer.data.aggregation_cache import TreeCache
from budget_explorer.data.ledger import LedgerRepository, LedgerRow
from budget_explorer.data.texts import TextsRecord, TextsStore


def make_row(year, rdfi, function_code, nature_code, amount, label=""):
    return LedgerRow(
        year=year,
        direction=rdfi[0],
        section=rdfi[1],
        function_code=function_code,
        nature_code=nature_code,
        amount=float(amount),
        label=label,
    )


RULES_DOCUMENT = {
    "categories": [
        {"id": "DF-1-1", "functions": ["54"], "natures": ["65"]},
        {"id": "DF-1-2", "functions": ["53"], "natures": ["65"]},
        {"id": "DF-2-1", "functions": ["51"]},
        {"id": "DF-2-2", "functions": ["52"]},
        {"id": "DF-3", "functions": ["6"]},
        {"id": "DI-1", "functions": ["6"]},
        {"id": "RF-1", "natures": ["731"]},
        {"id": "RF-2", "natures": ["74"]},
    ]
}


@pytest.fixture
def make_ledger_row():
    return make_row


@pytest.fixture
def rows_2017():
    return [
        make_row(2017, "DF", "R541", "6568", 100, "RSA"),
        make_row(2017, "DF", "R532", "6513", 50, "APA"),
        make_row(2017, "DF", "R511", "6522", 80, "Frais de séjour"),
        make_row(2017, "DF", "R511", "6132", 20, "Assistants familiaux"),
        make_row(2017, "DF", "R52", "6524", 30, "Hébergement"),
        make_row(2017, "DF", "R621", "61523", 40, "Entretien des routes"),
        make_row(2017, "DF", "R0202", "6411", 10, "Personnel"),
        make_row(2017, "DI", "R621", "23151", 60, "Travaux routiers"),
        make_row(2017, "RF", "R01", "73111", 300, "Taxe foncière"),
        make_row(2017, "RF", "R01", "7411", 200, "DGF"),
        make_row(2017, "RI", "R01", "1641", 70, "Emprunts"),
    ]


@pytest.fixture
def rows_2016():
    return [
        make_row(2016, "DF", "R541", "6568", 90, "RSA"),
        make_row(2016, "DF", "R511", "6522", 95, "Frais de séjour"),
        make_row(2016, "DF", "R621", "61523", 45, "Entretien des routes"),
        make_row(2016, "RF", "R01", "73111", 280, "Taxe foncière"),
    ]


@pytest.fixture
def rules():
    return parse_aggregation_rules(RULES_DOCUMENT)


@pytest.fixture
def builder(rules):
    return AggregationBuilder(rules)


@pytest.fixture
def texts():
    records = {
        "D": TextsRecord(id="D", label="Dépenses"),
        "R": TextsRecord(id="R", label="Recettes"),
        "DF": TextsRecord(id="DF", label="Dépenses de fonctionnement", atemporal="Le fonctionnement."),
        "DF-1": TextsRecord(id="DF-1", label="Allocations"),
        "DF-2": TextsRecord(id="DF-2", label="Actions sociales"),
        "DF-2-1": TextsRecord(id="DF-2-1", label="Enfance"),
    }
    return TextsStore(records, function_labels={"R5": "Action sociale", "51": "Famille et enfance"})


@pytest.fixture
def repository(rows_2016, rows_2017):
    return LedgerRepository.from_rows(rows_2016 + rows_2017)


@pytest.fixture
def explorer(repository, texts, builder):
    return FinanceExplorer(
        repository=repository,
        texts=texts,
        aggregation_builder=builder,
        cache=TreeCache(),
    )
