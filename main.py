"""
Main module for budget-vs-actual reporting.

This module orchestrates a report run:
1. Loads configuration and sets up logging
2. Reads a snapshot (CSV exports or the database)
3. Builds the report for the selected period
4. Prints, exports or charts the result
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from budgeting import BudgetReportEngine
from config_manager import get_base_currency, get_reporting_preference, load_config
from data_ingestion import SnapshotLoader
from database_ops import DatabaseManager
from exceptions import BudgetReportError, ReportError
from models import CategoryType, ReportSnapshot
from periods import PeriodType, ReportPeriod
from report_generator import ReportGenerator
from utils import get_data_dir, resolve_connection_string, resolve_log_path

# Configure module-level logger
logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

SECTION_TYPES = {
    "income": CategoryType.INCOME,
    "expense": CategoryType.EXPENSE,
}


def setup_logging(config: dict) -> None:
    """
    Configure logging based on config settings.

    An unknown level falls back to INFO, a format without a timestamp gets
    one prepended, and a log file that cannot be opened is reported and
    skipped.

    Args:
        config: Configuration dictionary with logging settings
    """
    log_config = config.get("logging") or {}
    level_name = str(log_config.get("level") or "INFO").upper()
    log_level = getattr(logging, level_name, None)
    invalid_level = not isinstance(log_level, int)
    if invalid_level:
        log_level = logging.INFO

    log_format = log_config.get("format") or DEFAULT_LOG_FORMAT
    if "%(asctime)s" not in log_format:
        log_format = f"%(asctime)s - {log_format}"

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    file_error = None
    log_file = log_config.get("file")
    if log_file:
        try:
            handlers.append(logging.FileHandler(resolve_log_path(log_file)))
        except OSError as exc:
            file_error = exc

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True
    )

    if invalid_level:
        logger.warning(f"Invalid log level '{level_name}', using INFO")
    if file_error is not None:
        logger.warning(f"Unable to open log file '{log_file}': {file_error}; logging to stdout only")


def build_snapshot(config: dict, source: str, data_dir: Optional[str] = None) -> ReportSnapshot:
    """
    Read a report snapshot from the configured source.

    Args:
        config: Configuration dictionary
        source: 'csv' or 'db'
        data_dir: CSV export directory (overrides config['snapshot']['data_dir'])

    Returns:
        ReportSnapshot for the engine

    Raises:
        SnapshotError: If the CSV exports cannot be read
        DatabaseError: If the database cannot be read
    """
    base_currency = get_base_currency(config)
    if source == "db":
        db_manager = DatabaseManager(resolve_connection_string(config))
        try:
            return db_manager.load_snapshot(default_base_currency=base_currency)
        finally:
            db_manager.close()

    directory = Path(data_dir) if data_dir else get_data_dir(config, section="snapshot")
    loader = SnapshotLoader(default_base_currency=base_currency)
    return loader.load_directory(directory)


def resolve_period(args: argparse.Namespace, config: dict) -> ReportPeriod:
    """
    Build the reporting period from --month/--period/--offset and config defaults.

    Raises:
        PeriodError: If the month or period type is invalid
    """
    period_type = PeriodType.from_value(
        args.period or get_reporting_preference(config, "default_period", PeriodType.MONTH.value)
    )
    if args.month:
        period = ReportPeriod.from_month(args.month, period_type)
    else:
        period = ReportPeriod.current(period_type)
    offset = getattr(args, "offset", 0) or 0
    return period.shift(offset) if offset else period


def _source(args: argparse.Namespace, config: dict) -> str:
    return args.source or (config.get("snapshot") or {}).get("source") or "csv"


def handle_report_command(args: argparse.Namespace, config: dict) -> None:
    """
    Handle the report command.

    Args:
        args: Parsed command-line arguments
        config: Configuration dictionary
    """
    period = resolve_period(args, config)
    report_type = args.type or get_reporting_preference(config, "default_type", "all")
    snapshot = build_snapshot(config, _source(args, config), args.data_dir)

    engine = BudgetReportEngine.from_snapshot(snapshot)
    logger.info(f"Building {report_type} report for {period.label}")
    report = engine.build_full_report(period.date_range)

    generator = ReportGenerator(base_currency=report.base_currency)
    print(generator.generate_budget_report(report, period.label, report_type))

    if args.export or args.chart:
        if report_type == "income":
            df = generator.rows_to_dataframe(report.income_rows, CategoryType.INCOME)
        elif report_type == "expense":
            df = generator.rows_to_dataframe(report.expense_rows, CategoryType.EXPENSE)
        else:
            df = generator.report_to_dataframe(report)

        if args.export:
            generator.export_to_csv(df, Path(args.export), report_name=f"budget report ({period.label})")
            print(f"\nReport exported to {args.export}")
        if args.chart:
            generator.create_budget_vs_actual_chart(
                df,
                output_path=Path(args.chart),
                title=f"Budget vs Actual - {period.label}"
            )
            print(f"Chart saved to {args.chart}")


def handle_drilldown_command(args: argparse.Namespace, config: dict) -> None:
    """
    Handle the drilldown command: list the transactions behind one category row.

    Args:
        args: Parsed command-line arguments
        config: Configuration dictionary

    Raises:
        ReportError: If the category id is not in the snapshot
    """
    period = resolve_period(args, config)
    snapshot = build_snapshot(config, _source(args, config), args.data_dir)

    category = next((c for c in snapshot.categories if c.id == args.category), None)
    if category is None:
        raise ReportError("Unknown category", details={"category_id": args.category})

    engine = BudgetReportEngine.from_snapshot(snapshot)
    transactions = engine.get_drilldown_transactions(category.id, SECTION_TYPES[args.type], period.date_range)
    logger.info(f"Drill-down for {category.name} ({period.label}): {len(transactions)} transactions")

    generator = ReportGenerator(base_currency=snapshot.base_currency)
    print(generator.generate_drilldown_report(transactions, f"{category.name} - {period.label}"))


def _add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--month", "-m", type=str, help="Anchor month (YYYY-MM, default: current month)")
    parser.add_argument(
        "--period",
        "-p",
        type=str,
        choices=[p.value for p in PeriodType],
        help="Period length (default: reporting.default_period)"
    )
    parser.add_argument("--offset", type=int, default=0, help="Shift the period by N periods (negative for earlier)")
    parser.add_argument("--source", type=str, choices=["csv", "db"], help="Snapshot source (default: snapshot.source)")
    parser.add_argument("--data-dir", type=str, help="Directory with CSV exports (csv source)")


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the application."""
    parser = argparse.ArgumentParser(
        description="Budget vs actual reporting",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    report_parser = subparsers.add_parser("report", help="Show budget vs actual for a period")
    _add_period_arguments(report_parser)
    report_parser.add_argument(
        "--type",
        "-t",
        type=str,
        choices=["income", "expense", "all"],
        help="Sections to include (default: reporting.default_type)"
    )
    report_parser.add_argument("--export", type=str, metavar="FILE", help="Export report rows to CSV file")
    report_parser.add_argument("--chart", type=str, metavar="FILE", help="Save budget vs actual chart (PNG)")

    drilldown_parser = subparsers.add_parser("drilldown", help="List transactions behind a category row")
    _add_period_arguments(drilldown_parser)
    drilldown_parser.add_argument("--category", type=str, required=True, help="Category ID")
    drilldown_parser.add_argument(
        "--type",
        "-t",
        type=str,
        choices=["income", "expense"],
        required=True,
        help="Report section the row belongs to"
    )

    args = parser.parse_args(argv)

    # Handle case where no command is provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(Path(args.config))
    except BudgetReportError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    handlers = {
        "report": handle_report_command,
        "drilldown": handle_drilldown_command,
    }
    try:
        handlers[args.command](args, config)
    except BudgetReportError as e:
        logger.error(f"{args.command} command failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
