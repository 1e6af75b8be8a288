# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for Shop Reports.

The CLI is intentionally thin: it parses arguments, loads the TOML
configuration and drives the ``ReportOrchestrator``. It does not compute
anything itself.


Commands
--------

    init-db
        Create the SQLite file and schema configured in [database].

    import TABLE CSV_PATH
        Load a CSV export into one of the store tables.

    list-reports
        Print the registered report types, their sub types, include flags
        and group-by choices.

    report TYPE [options]
        Generate a report for a date preset (--preset) or a custom range
        (--from-date / --to-date) and either print it as a console table
        (--format table, the default) or export it as csv, print (HTML) or
        pdf into the output directory.


Configuration
-------------

By default the CLI reads ``shop_reports_config.toml`` in the current working
directory (built-in defaults are used when it does not exist). Use

    --config PATH

to point to another file. ``--log-level`` overrides the [logging] level.


Exit codes
----------

0 on success, 1 when the configuration, the report or the export fails.
"""

import argparse
import logging
import warnings
import webbrowser
from datetime import date
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from . import __version__
from .config import AppConfig, load_app_config
from .errors import EmptyResultWarning
from .export import format_cell
from .io import import_table_csv
from .orchestrator import ReportOrchestrator
from .periods import PRESETS
from .registry import REGISTRY, report_types, sub_types
from .store import TABLE_SCHEMAS, SQLiteStore, init_database

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

EXPENSE_TYPE_FLAGS = {
    "company": frozenset({"company_expenses"}),
    "client": frozenset({"client_expenses"}),
}


class ConsoleProgress:
    """``ProgressListener`` printing export progress to stdout."""

    def start_download(self, name: str, kind: str) -> None:
        print(f"Exporting {name} ({kind})...")

    def complete_download(self) -> None:
        print("Export complete.")

    def set_error(self, message: str) -> None:
        print(f"Export failed: {message}")


def _open_in_browser(path: Path) -> None:
    webbrowser.open(path.resolve().as_uri())


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="shop-reports",
        description=(
            "Shop Reports - report aggregation & export for fabrication shops. "
            "Aggregates sales, expenses, inventory, client and financial "
            "records into reports and exports them as CSV, HTML or PDF."
        ),
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of shop_reports and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'shop_reports_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override the [logging] level of the configuration file.",
    )

    subparsers = ap.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create the database file and schema.")

    import_parser = subparsers.add_parser(
        "import", help="Import a CSV export into a store table."
    )
    import_parser.add_argument("table", choices=list(TABLE_SCHEMAS), help="Target table.")
    import_parser.add_argument("csv_path", help="CSV file to import.")

    subparsers.add_parser("list-reports", help="List the available reports.")

    report_parser = subparsers.add_parser("report", help="Generate a report.")
    report_parser.add_argument("report_type", choices=report_types(), help="Report type.")
    report_parser.add_argument(
        "--sub-type",
        dest="sub_type",
        help="Report sub type (default: the first one listed by list-reports).",
    )

    # Period selection
    report_parser.add_argument(
        "--preset",
        help=(
            f"Date preset. One of: {', '.join(PRESETS)}. "
            "Defaults to [reports] default_preset, or 'custom' when "
            "--from-date/--to-date are given."
        ),
    )
    report_parser.add_argument(
        "--from-date", dest="from_date", help="Custom period start date (YYYY-MM-DD)."
    )
    report_parser.add_argument(
        "--to-date",
        dest="to_date",
        help="Custom period end date (YYYY-MM-DD), included entirely.",
    )

    # Filters
    report_parser.add_argument(
        "--client-id", dest="client_id", type=int, help="Restrict to one client."
    )
    report_parser.add_argument(
        "--group-by", dest="group_by", help="Group rows (see list-reports)."
    )
    report_parser.add_argument(
        "--include",
        dest="include_flags",
        nargs="+",
        metavar="FLAG",
        help="Sources or sections to include (see list-reports).",
    )
    report_parser.add_argument("--category", help="Expense or stock category filter.")
    report_parser.add_argument("--status", help="Document status filter (sales).")
    report_parser.add_argument(
        "--expense-type",
        dest="expense_type",
        choices=sorted(EXPENSE_TYPE_FLAGS),
        help="Only company or only client expenses.",
    )
    report_parser.add_argument(
        "--account", help="Account type filter for the cash book (cash, bank, ...)."
    )
    report_parser.add_argument(
        "--opening-balance",
        dest="opening_balance",
        type=float,
        help="Opening balance of the cash book.",
    )

    # Output
    report_parser.add_argument(
        "--format",
        dest="fmt",
        choices=["table", "csv", "print", "pdf"],
        default="table",
        help="'table' prints to stdout; other formats write a file.",
    )
    report_parser.add_argument(
        "--output-dir",
        dest="output_dir",
        help="Directory for exported files (default: [output] dir).",
    )
    report_parser.add_argument(
        "--output-name",
        dest="output_name",
        help="File name of the export (extension added when missing).",
    )
    report_parser.add_argument(
        "--open",
        dest="open_output",
        action="store_true",
        help="Open the exported file in the default browser.",
    )

    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _handle_list_reports() -> None:
    for report_type in report_types():
        print(report_type)
        for sub_type in sub_types(report_type):
            descriptor = REGISTRY[(report_type, sub_type)]
            line = f"  {sub_type:<14} {descriptor.title}"
            if descriptor.flag_choices:
                line += f" | include: {', '.join(sorted(descriptor.flag_choices))}"
            if descriptor.group_by_choices:
                line += f" | group-by: {', '.join(descriptor.group_by_choices)}"
            print(line)


def _handle_import(args: argparse.Namespace, config: AppConfig, parser) -> int:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        parser.error(f"CSV file for import not found: {csv_path}")

    store = SQLiteStore(config.database)
    print(f"Importing {csv_path} into {args.table}...")
    try:
        stats = import_table_csv(store, args.table, csv_path)
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    print(f"Imported {stats.rows_inserted} row(s) into {stats.table}.")
    if stats.ignored_columns:
        print(f"Ignored column(s): {', '.join(stats.ignored_columns)}")
    return 0


def _report_options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.category:
        options["category"] = args.category
    if args.status:
        options["status"] = args.status
    if args.account:
        options["account"] = args.account
    if args.opening_balance is not None:
        options["opening_balance"] = args.opening_balance
    return options


def _include_flags(args: argparse.Namespace) -> Optional[frozenset[str]]:
    flags = set(args.include_flags) if args.include_flags else None
    if args.expense_type:
        expense_flags = EXPENSE_TYPE_FLAGS[args.expense_type]
        flags = set(expense_flags) if flags is None else flags | expense_flags
    return None if flags is None else frozenset(flags)


def _print_table(result, config: AppConfig) -> None:
    currency = config.display.currency
    decimals = config.display.decimals
    anchor = config.reports.anchor

    print(result.title)
    if result.period is not None:
        print(f"Period: {result.period.describe(anchor)}")
    if result.degraded:
        print(f"Warning: incomplete data, {', '.join(result.degraded)} shown as zero.")
    print()

    if result.is_empty:
        print("No data for the selected period.")
        return

    frame = pd.DataFrame(
        [
            [
                format_cell(row[c.key], c, currency=currency, decimals=decimals)
                for c in result.columns
            ]
            for row in result.rows
        ],
        columns=[c.label for c in result.columns],
    )
    print(frame.to_string(index=False))

    if result.totals:
        print()
        for column in result.total_columns:
            value = format_cell(
                result.totals[column.key], column, currency=currency, decimals=decimals
            )
            print(f"Total {column.label}: {value}")

    for name, value in result.summary.items():
        print(f"{name.replace('_', ' ').capitalize()}: {value}")


def _handle_report(args: argparse.Namespace, config: AppConfig) -> int:
    start = _parse_optional_date(args.from_date)
    end = _parse_optional_date(args.to_date)
    preset = args.preset
    if preset is None and (start is not None or end is not None):
        preset = "custom"

    output_dir = Path(args.output_dir) if args.output_dir else config.output_dir
    store = SQLiteStore(
        config.database, local_offset_hours=config.reports.anchor.utc_offset_hours
    )
    orchestrator = ReportOrchestrator(
        store,
        config.reports,
        display=config.display,
        company=config.company,
        print_target=_open_in_browser if args.open_output else None,
        listener=ConsoleProgress(),
        output_dir=output_dir,
    )

    report_filter = orchestrator.prepare(
        args.report_type,
        preset,
        start,
        end,
        sub_type=args.sub_type,
        entity_id=args.client_id,
        include_flags=_include_flags(args),
        group_by=args.group_by,
        options=_report_options(args),
    )
    if report_filter is None:
        print(f"Error: {orchestrator.error.message}")
        return 1

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", EmptyResultWarning)
        result = orchestrator.generate(report_filter)
    if result is None:
        error = orchestrator.error
        print(f"Error: {error.message if error else 'report was not generated.'}")
        return 1

    if args.fmt == "table":
        _print_table(result, config)
        return 0

    path = orchestrator.export(result, args.fmt, output_dir, name=args.output_name)
    if path is None:
        return 1
    print(f"Written to {path}")
    if args.open_output and args.fmt != "print":
        _open_in_browser(path)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """
    Entry point for the Shop Reports CLI.

    Parses command-line arguments, loads the configuration, configures
    logging and dispatches to the requested command.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"shop_reports version {__version__}")
        return 0

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    _configure_logging(args.log_level or config.log_level)
    logger.debug("Loaded configuration, database at %s", config.database.path)

    if args.command == "init-db":
        init_database(config.database)
        print(f"Database ready at {config.database.path}")
        return 0
    if args.command == "import":
        return _handle_import(args, config, parser)
    if args.command == "list-reports":
        _handle_list_reports()
        return 0
    if args.command == "report":
        return _handle_report(args, config)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
