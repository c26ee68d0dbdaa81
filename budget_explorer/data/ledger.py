"""
Ledger Snapshots

Loads the yearly M52 ledger ("compte administratif") exports and exposes them
as immutable per-year snapshots.

Key Concepts:
- LedgerRow: one accounting line (function code, nature code, amount)
- LedgerSnapshot: every row of one year; replaced wholesale, never edited
- LedgerRepository: year -> snapshot lookup, notifies listeners on replacement

Sources:
- Local CSV files (one or several years per file)
- Remote CSV exports fetched over HTTP
"""
import io
import re
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
import requests

from config.settings import LedgerConfig
from budget_explorer.core.constants import RDFI_SECTIONS
from budget_explorer.core.error_taxonomy import ConfigurationError, LedgerFormatError, LedgerSourceError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("direction", "section", "function_code", "nature_code", "amount")

_YEAR_IN_NAME = re.compile(r"(\d{4})")


@dataclass(frozen=True)
class LedgerRow:
    """A single accounting line of a yearly ledger."""
    year: int
    direction: str  # "D" expenditure, "R" revenue
    section: str  # "F" operating, "I" investment
    function_code: str  # e.g. "R511"
    nature_code: str  # e.g. "6568"
    amount: float
    label: str = ""
    chapter: Optional[str] = None

    @property
    def rdfi(self) -> str:
        return f"{self.direction}{self.section}"

    @property
    def function_digits(self) -> str:
        """Function code without its "R" (rubrique) prefix."""
        code = self.function_code.strip()
        if code[:1] in ("R", "r"):
            code = code[1:]
        return code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "direction": self.direction,
            "section": self.section,
            "rdfi": self.rdfi,
            "chapter": self.chapter,
            "function_code": self.function_code,
            "nature_code": self.nature_code,
            "label": self.label,
            "amount": self.amount,
        }


@dataclass(frozen=True, eq=False)
class LedgerSnapshot:
    """
    Immutable set of rows for one year.

    Compared by identity: a cache entry is valid only for the exact
    snapshot object it was computed from.
    """
    year: int
    rows: Tuple[LedgerRow, ...]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return len(self.rows) == 0


class LedgerRepository:
    """
    In-memory year -> LedgerSnapshot store.

    Years with no rows are reported as absent, never as an empty snapshot.
    """

    def __init__(self, snapshots: Dict[int, LedgerSnapshot] = None):
        self._snapshots: Dict[int, LedgerSnapshot] = dict(snapshots or {})
        self._listeners: List[Callable[[int], None]] = []

    @classmethod
    def from_rows(cls, rows: Iterable[LedgerRow]) -> 'LedgerRepository':
        """Group rows by year into snapshots."""
        by_year: Dict[int, List[LedgerRow]] = defaultdict(list)
        for row in rows:
            by_year[row.year].append(row)

        return cls({
            year: LedgerSnapshot(year=year, rows=tuple(year_rows))
            for year, year_rows in by_year.items()
        })

    @classmethod
    def from_directory(cls, data_dir: Union[str, Path], config: LedgerConfig = None) -> 'LedgerRepository':
        """Load every *.csv file of a directory."""
        config = config or LedgerConfig()
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            raise LedgerSourceError(
                f"Ledger directory not found: {data_dir}",
                context={"data_dir": str(data_dir)},
            )

        rows: List[LedgerRow] = []
        for csv_path in sorted(data_dir.glob("*.csv")):
            match = _YEAR_IN_NAME.search(csv_path.stem)
            default_year = int(match.group(1)) if match else None
            rows.extend(load_ledger_csv(csv_path, config, year=default_year))

        repository = cls.from_rows(rows)
        logger.info(f"Loaded {len(rows)} ledger rows for years {repository.years()} from {data_dir}")
        return repository

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig = None,
        session: requests.Session = None,
    ) -> 'LedgerRepository':
        """Remote ledgers when config.url_template is set, the local directory otherwise."""
        config = config or LedgerConfig()
        if config.url_template:
            if not config.years:
                raise ConfigurationError(
                    "LEDGER_URL_TEMPLATE is set but no years are configured (LEDGER_YEARS)",
                    context={"url_template": config.url_template},
                )
            logger.info(f"Fetching ledgers for years {config.years} from {config.url_template}")
            return cls.from_url_template(config.years, config, session=session)
        return cls.from_directory(config.data_dir, config)

    @classmethod
    def from_url_template(
        cls,
        years: Iterable[int],
        config: LedgerConfig = None,
        session: requests.Session = None,
    ) -> 'LedgerRepository':
        """Fetch one remote CSV per year using config.url_template."""
        config = config or LedgerConfig()
        if not config.url_template:
            raise LedgerSourceError("LEDGER_URL_TEMPLATE is not set")

        rows: List[LedgerRow] = []
        for year in years:
            url = config.url_template.format(year=year)
            rows.extend(fetch_ledger_csv(url, config, year=year, session=session))
        return cls.from_rows(rows)

    def add_listener(self, callback: Callable[[int], None]) -> None:
        """Register a callback invoked with the year whenever a snapshot changes."""
        self._listeners.append(callback)

    def years(self) -> List[int]:
        return sorted(self._snapshots.keys())

    def rows_for_year(self, year: int) -> Optional[LedgerSnapshot]:
        """Snapshot for a year, or None when the year has no rows."""
        snapshot = self._snapshots.get(year)
        if snapshot is None or snapshot.is_empty:
            return None
        return snapshot

    def replace_year(self, year: int, rows: Iterable[LedgerRow]) -> LedgerSnapshot:
        """Install a new snapshot for a year and notify listeners."""
        snapshot = LedgerSnapshot(year=year, rows=tuple(rows))
        self._snapshots[year] = snapshot
        logger.info(f"Replaced ledger snapshot for {year} ({snapshot.row_count} rows)")
        self._notify(year)
        return snapshot

    def remove_year(self, year: int) -> bool:
        if year not in self._snapshots:
            return False
        del self._snapshots[year]
        self._notify(year)
        return True

    def _notify(self, year: int) -> None:
        for callback in self._listeners:
            callback(year)

    def __len__(self) -> int:
        return len(self._snapshots)


def _normalize_letter(value: str) -> str:
    """'Dépense' -> 'D', 'fonctionnement' -> 'F', 'R' -> 'R'."""
    value = (value or "").strip()
    return value[:1].upper()


def _parse_amounts(values: pd.Series, decimal: str) -> pd.Series:
    cleaned = (
        values.astype(str)
        .str.replace("\u00a0", "", regex=False)
        .str.replace(" ", "", regex=False)
    )
    if decimal != ".":
        cleaned = cleaned.str.replace(decimal, ".", regex=False)
    return pd.to_numeric(cleaned, errors="coerce")


def load_ledger_csv(
    source: Union[str, Path, io.StringIO],
    config: LedgerConfig = None,
    year: Optional[int] = None,
) -> List[LedgerRow]:
    """
    Read a ledger CSV export into LedgerRows.

    Args:
        source: File path or text buffer
        config: Column mapping and CSV dialect (defaults from environment)
        year: Year to use when the file has no year column

    Returns:
        Parsed rows; rows with unusable amounts or sections are skipped
    """
    config = config or LedgerConfig()
    columns = config.columns

    try:
        df = pd.read_csv(
            source,
            sep=config.csv_separator,
            dtype=str,
            keep_default_na=False,
            encoding=config.csv_encoding,
        )
    except FileNotFoundError as e:
        raise LedgerSourceError(f"Ledger file not found: {source}") from e
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise LedgerFormatError(f"Unreadable ledger CSV {source}: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]

    missing = [f for f in REQUIRED_FIELDS if columns.get(f) not in df.columns]
    if year is None and columns.get("year") not in df.columns:
        missing.append("year")
    if missing:
        raise LedgerFormatError(
            f"Ledger CSV {source} is missing columns: {[columns.get(f, f) for f in missing]}",
            context={"missing": missing, "found": list(df.columns)},
        )

    if df.empty:
        logger.warning(f"Ledger CSV {source} has no rows")
        return []

    amounts = _parse_amounts(df[columns["amount"]], config.csv_decimal)
    if columns.get("year") in df.columns:
        years = pd.to_numeric(df[columns["year"]], errors="coerce")
        if year is not None:
            years = years.fillna(year)
    else:
        years = pd.Series([year] * len(df), index=df.index)

    def text(field_name: str) -> pd.Series:
        column = columns.get(field_name)
        if column in df.columns:
            return df[column].astype(str).str.strip()
        return pd.Series([""] * len(df), index=df.index)

    work = pd.DataFrame({
        "year": years,
        "direction": text("direction").map(_normalize_letter),
        "section": text("section").map(_normalize_letter),
        "chapter": text("chapter"),
        "function_code": text("function_code"),
        "nature_code": text("nature_code"),
        "label": text("label"),
        "amount": amounts,
    }, index=df.index)

    valid_rdfi = (work["direction"] + work["section"]).isin(RDFI_SECTIONS)
    valid = work["amount"].notna() & work["year"].notna() & valid_rdfi

    skipped = int((~valid).sum())
    if skipped:
        logger.warning(f"Skipped {skipped} ledger rows with unusable amount, year or section in {source}")

    rows = [
        LedgerRow(
            year=int(r.year),
            direction=r.direction,
            section=r.section,
            function_code=r.function_code,
            nature_code=r.nature_code,
            amount=float(r.amount),
            label=r.label,
            chapter=r.chapter or None,
        )
        for r in work.loc[valid].itertuples(index=False)
    ]

    logger.info(f"Parsed {len(rows)} ledger rows from {source}")
    return rows


def fetch_ledger_csv(
    url: str,
    config: LedgerConfig = None,
    year: Optional[int] = None,
    session: requests.Session = None,
) -> List[LedgerRow]:
    """Download a ledger CSV export and parse it."""
    config = config or LedgerConfig()
    http = session or requests.Session()

    try:
        response = http.get(url, timeout=config.request_timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to fetch ledger CSV {url}: {e}")
        raise LedgerSourceError(f"Ledger download failed: {e}", context={"url": url}) from e

    text = response.content.decode(config.csv_encoding, errors="replace")
    return load_ledger_csv(io.StringIO(text), config, year=year)
