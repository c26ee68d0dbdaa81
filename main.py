#!/usr/bin/env python3
"""
Budget Explorer - Main Entry Point

Usage:
    python main.py element DF-1 --year 2017     # Finance element of a category
    python main.py tree --year 2017 --rdfi DF   # Aggregated or M52 hierarchy
    python main.py mock --years 2015 2016 2017  # Write synthetic ledgers
    python main.py setup                        # Validate configuration
"""
import os
import sys
import json
import argparse
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

logger = logging.getLogger(__name__)


def setup_environment():
    """Load environment variables from .env file if present."""
    env_file = PROJECT_ROOT / '.env'
    if env_file.exists():
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ.setdefault(key.strip(), value.strip())


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()],
    )


def _resolve_year(explorer, year):
    if year is not None:
        return year
    years = explorer.repository.years()
    return years[-1] if years else None


def cmd_element(args):
    """Print the finance element of a category."""
    from budget_explorer.core.error_taxonomy import ErrorCategory, USER_MESSAGES
    from budget_explorer.core.finance_element import get_finance_explorer
    from budget_explorer.tools.report import format_element_report

    explorer = get_finance_explorer()
    year = _resolve_year(explorer, args.year)
    if year is None:
        print(USER_MESSAGES[ErrorCategory.NO_LEDGER_DATA])
        sys.exit(1)

    logger.info(f"Exploring {args.category_id} in {year}")
    view = explorer.explore(args.category_id, year)
    if view is None:
        print(f"{USER_MESSAGES[ErrorCategory.UNKNOWN_CATEGORY]} ({args.category_id})")
        sys.exit(1)

    if args.json:
        print(json.dumps(view.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_element_report(view, explorer.texts))


def cmd_tree(args):
    """Print the aggregated hierarchy, or the M52 hierarchy of a section."""
    from budget_explorer.core.error_taxonomy import ErrorCategory, USER_MESSAGES
    from budget_explorer.core.finance_element import get_finance_explorer
    from budget_explorer.tools.report import format_hierarchy_report

    explorer = get_finance_explorer()
    year = _resolve_year(explorer, args.year)
    if year is None:
        print(USER_MESSAGES[ErrorCategory.NO_LEDGER_DATA])
        sys.exit(1)

    if args.rdfi:
        root = explorer.detail_tree(year, args.rdfi.upper())
        title = f"M52 {args.rdfi.upper()} {year}"
    else:
        root = explorer.aggregated_tree(year)
        title = f"Budget {year}"

    print(format_hierarchy_report(root, explorer.texts, title=title, max_depth=args.depth))


def cmd_mock(args):
    """Write synthetic yearly ledgers as CSV files."""
    from config.settings import get_config
    from budget_explorer.tools.mock_data_generator import write_mock_ledger_csv

    out_dir = args.out or get_config().ledger.data_dir
    paths = write_mock_ledger_csv(args.years, out_dir, seed=args.seed)
    for path in paths:
        print(f"  {path}")


def cmd_setup(args):
    """Validate configuration and setup."""
    from config.settings import get_config
    from budget_explorer.core.error_taxonomy import ExplorerError
    from budget_explorer.data.aggregation import load_aggregation_rules
    from budget_explorer.data.ledger import LedgerRepository
    from budget_explorer.data.texts import TextsStore

    print("\n" + "="*60)
    print("CONFIGURATION VALIDATION")
    print("="*60)

    config = get_config()
    ok = True

    print(f"\n📐 Aggregation rules: {config.explorer.aggregation_rules_path}")
    try:
        rules = load_aggregation_rules(config.explorer.aggregation_rules_path)
        print(f"   ✅ {len(rules)} categories")
    except ExplorerError as e:
        ok = False
        print(f"   ❌ {e}")

    print(f"\n📝 Texts: {config.explorer.texts_path}")
    try:
        texts = TextsStore.from_yaml(config.explorer.texts_path, config.explorer.m52_fonctions_path)
        status = "✅" if len(texts) else "❌"
        print(f"   {status} {len(texts)} category texts")
    except ExplorerError as e:
        ok = False
        print(f"   ❌ {e}")

    if config.ledger.url_template:
        requested = ', '.join(str(y) for y in config.ledger.years) or 'none'
        print(f"\n📦 Ledgers: {config.ledger.url_template} (years: {requested})")
    else:
        print(f"\n📦 Ledgers: {config.ledger.data_dir}")
    try:
        repository = LedgerRepository.from_config(config.ledger)
        years = repository.years()
        status = "✅" if years else "❌"
        print(f"   {status} Years: {', '.join(str(y) for y in years) or 'none'}")
    except ExplorerError as e:
        ok = False
        print(f"   ❌ {e}")

    print(f"\n🔀 Chart merge rules:")
    for rule in config.explorer.merge_rules:
        print(f"   {rule.parent_id}: {rule.absorbed_id} → {rule.kept_id} ({rule.label})")

    print("\n" + "="*60)
    print("To generate sample ledgers: python main.py mock --years 2015 2016 2017")
    print("="*60)

    if not ok:
        sys.exit(1)


def main():
    setup_environment()
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    parser = argparse.ArgumentParser(
        description="Budget Explorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py element DF-1 --year 2017   Finance element of a category
  python main.py element M52-DF-51 --json   Same, as JSON
  python main.py tree --rdfi DI             M52 hierarchy of a section
  python main.py setup                      Check configuration

Environment Variables:
  LEDGER_DATA_DIR          Directory of yearly CSV ledgers (default: data/ledgers)
  LEDGER_URL_TEMPLATE      Remote CSV url, e.g. https://host/CA_{year}.csv (replaces LEDGER_DATA_DIR)
  LEDGER_YEARS             Years fetched from LEDGER_URL_TEMPLATE, e.g. 2015,2016,2017
  TEXTS_PATH               Category texts (YAML)
  AGGREGATION_RULES_PATH   Aggregated categories (YAML)
  LOG_LEVEL                Logging level (default: INFO)
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Element command
    element_parser = subparsers.add_parser('element', help='Show a finance element')
    element_parser.add_argument('category_id', help='Category id, e.g. DF-1 or M52-DF-51')
    element_parser.add_argument('--year', type=int, help='Selected year (default: latest)')
    element_parser.add_argument('--json', action='store_true', help='Print JSON')
    element_parser.set_defaults(func=cmd_element)

    # Tree command
    tree_parser = subparsers.add_parser('tree', help='Show a category hierarchy')
    tree_parser.add_argument('--year', type=int, help='Year (default: latest)')
    tree_parser.add_argument('--rdfi', choices=['DF', 'DI', 'RF', 'RI', 'df', 'di', 'rf', 'ri'],
                             help='Show the M52 hierarchy of this section')
    tree_parser.add_argument('--depth', type=int, default=None, help='Maximum depth')
    tree_parser.set_defaults(func=cmd_tree)

    # Mock command
    mock_parser = subparsers.add_parser('mock', help='Write synthetic ledgers')
    mock_parser.add_argument('--years', type=int, nargs='+', required=True, help='Years to generate')
    mock_parser.add_argument('--out', help='Output directory (default: LEDGER_DATA_DIR)')
    mock_parser.add_argument('--seed', type=int, default=None, help='Random seed')
    mock_parser.set_defaults(func=cmd_mock)

    # Setup command
    setup_parser = subparsers.add_parser('setup', help='Validate setup')
    setup_parser.set_defaults(func=cmd_setup)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        from budget_explorer.core.error_taxonomy import classify_error

        classified = classify_error(e, pipeline_phase=args.command)
        logger.error(f"Error: {classified.message}", exc_info=True)
        print(classified.user_message)
        sys.exit(1)


if __name__ == "__main__":
    main()
