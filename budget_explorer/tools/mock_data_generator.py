"""
Mock M52 Ledger Generator

Generates fake yearly ledgers shaped like the datalocale "compte
administratif" exports of a Département, so the explorer can be run and
tested without downloading real data.

Usage:
    python main.py mock --years 2016 2017 2018 --out data/ledgers
"""
import random
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from config.settings import DEFAULT_LEDGER_COLUMNS
from budget_explorer.data.ledger import LedgerRow

logger = logging.getLogger(__name__)

# (rdfi, function code, nature code, label, base amount in euros)
MOCK_LINES: List[Tuple[str, str, str, str, float]] = [
    # Operating expenditures: social allocations
    ("DF", "R541", "6568", "RSA - allocations", 190_000_000.0),
    ("DF", "R561", "6568", "RSA - allocations (nouveau dispositif)", 95_000_000.0),
    ("DF", "R532", "6513", "Allocation personnalisée d'autonomie à domicile", 78_000_000.0),
    ("DF", "R551", "6513", "APA en établissement", 64_000_000.0),
    ("DF", "R521", "6511", "Prestation de compensation du handicap", 42_000_000.0),
    # Operating expenditures: social actions
    ("DF", "R51", "6522", "Frais de séjour enfance", 120_000_000.0),
    ("DF", "R511", "6132", "Assistants familiaux", 18_500_000.0),
    ("DF", "R52", "6524", "Hébergement des personnes handicapées", 88_000_000.0),
    ("DF", "R538", "6526", "Hébergement des personnes âgées", 45_000_000.0),
    ("DF", "R564", "6574", "Insertion - subventions aux associations", 12_000_000.0),
    ("DF", "R50", "6218", "Personnel affecté aux services sociaux", 9_500_000.0),
    ("DF", "R58", "6574", "Autres actions sociales", 3_200_000.0),
    # Operating expenditures: other policies
    ("DF", "R621", "61523", "Entretien des routes départementales", 21_000_000.0),
    ("DF", "R81", "6245", "Transports scolaires", 37_000_000.0),
    ("DF", "R221", "65511", "Dotations de fonctionnement des collèges", 26_000_000.0),
    ("DF", "R311", "6574", "Subventions culturelles", 7_800_000.0),
    ("DF", "R32", "6574", "Subventions sportives", 4_100_000.0),
    ("DF", "R01", "66111", "Intérêts de la dette", 15_300_000.0),
    ("DF", "R0202", "6411", "Rémunération du personnel", 140_000_000.0),
    ("DF", "R71", "6574", "Actions économiques", 5_600_000.0),
    ("DF", "R91", "6574", "Développement local", 2_900_000.0),
    # Investment expenditures
    ("DI", "R621", "23151", "Travaux routiers", 68_000_000.0),
    ("DI", "R221", "231312", "Construction et rénovation de collèges", 54_000_000.0),
    ("DI", "R72", "204142", "Subventions d'équipement aux communes", 31_000_000.0),
    ("DI", "R01", "1641", "Remboursement du capital de la dette", 72_000_000.0),
    ("DI", "R0202", "2183", "Matériel informatique", 6_400_000.0),
    # Operating revenue
    ("RF", "R01", "73111", "Taxe foncière sur les propriétés bâties", 290_000_000.0),
    ("RF", "R01", "7321", "Droits de mutation à titre onéreux", 260_000_000.0),
    ("RF", "R01", "7352", "TICPE", 110_000_000.0),
    ("RF", "R01", "7411", "Dotation globale de fonctionnement", 230_000_000.0),
    ("RF", "R54", "74783", "Fonds de mobilisation départementale pour l'insertion", 14_000_000.0),
    ("RF", "R55", "7513", "Recouvrements sur bénéficiaires de l'aide sociale", 21_000_000.0),
    ("RF", "R0202", "752", "Revenus des immeubles", 1_800_000.0),
    # Investment revenue
    ("RI", "R01", "1641", "Emprunts", 95_000_000.0),
    ("RI", "R621", "1323", "Subventions d'équipement reçues", 8_200_000.0),
    ("RI", "R01", "10222", "FCTVA", 24_000_000.0),
    ("RI", "R0202", "024", "Produits des cessions", 2_100_000.0),
]


def generate_mock_ledger_rows(
    years: Sequence[int],
    seed: Optional[int] = None,
    drift: float = 0.08,
    drop_rate: float = 0.05,
) -> List[LedgerRow]:
    """
    Generate mock ledger rows for several years.

    Args:
        years: Years to generate
        seed: Random seed, for reproducible ledgers
        drift: Maximum relative year-over-year change of a line
        drop_rate: Probability that a line is missing from a given year

    Returns:
        List of LedgerRow
    """
    rng = random.Random(seed)
    rows: List[LedgerRow] = []

    for rdfi, function_code, nature_code, label, base_amount in MOCK_LINES:
        amount = base_amount
        for year in sorted(years):
            amount *= 1 + rng.uniform(-drift, drift)
            # Lines occasionally disappear for a year (reorganized budgets)
            if rng.random() < drop_rate:
                continue
            rows.append(LedgerRow(
                year=year,
                direction=rdfi[0],
                section=rdfi[1],
                function_code=function_code,
                nature_code=nature_code,
                amount=round(amount, 2),
                label=label,
                chapter=nature_code[:2],
            ))

    logger.info(f"Generated {len(rows)} mock ledger rows for years {sorted(years)}")
    return rows


def _export_values(row: LedgerRow) -> Dict[str, Any]:
    return {
        "year": row.year,
        "direction": "Dépense" if row.direction == "D" else "Recette",
        "section": "Fonctionnement" if row.section == "F" else "Investissement",
        "chapter": row.chapter or "",
        "nature_code": row.nature_code,
        "function_code": row.function_code,
        "label": row.label,
        "amount": f"{row.amount:.2f}",
    }


def rows_to_dataframe(rows: Sequence[LedgerRow], columns: Dict[str, str] = None) -> pd.DataFrame:
    """Ledger rows as a DataFrame with the export's column headers."""
    columns = columns or DEFAULT_LEDGER_COLUMNS
    records = [
        {columns[name]: value for name, value in _export_values(row).items()}
        for row in rows
    ]
    return pd.DataFrame(records, columns=[columns[name] for name in columns])


def write_mock_ledger_csv(
    years: Sequence[int],
    out_dir: Union[str, Path],
    seed: Optional[int] = None,
    separator: str = ";",
) -> List[Path]:
    """
    Write one CA_<year>.csv file per year.

    Returns:
        Paths of the written files
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    rows = generate_mock_ledger_rows(years, seed=seed)
    written: List[Path] = []
    for year in sorted(years):
        year_rows = [row for row in rows if row.year == year]
        path = out_dir / f"CA_{year}.csv"
        rows_to_dataframe(year_rows).to_csv(path, sep=separator, index=False, encoding="utf-8")
        written.append(path)
        logger.info(f"Wrote {len(year_rows)} rows to {path}")

    return written
