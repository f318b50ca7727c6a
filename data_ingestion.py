"""
Snapshot ingestion from CSV exports.

This module reads a directory of CSV exports of the store (categories,
budgets, transactions, exchange rates, settings) with pandas and turns
every row into a domain model through data_standardization.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, TypeVar, Union

import pandas as pd
from pandas import errors as pd_errors

from category_hierarchy import find_cyclic_categories
from data_standardization import (
    settings_to_dict,
    standardize_budget,
    standardize_category,
    standardize_exchange_rate,
    standardize_transaction,
)
from exceptions import SnapshotError, StandardizationError
from models import ReportSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_CURRENCY_SETTING = "BaseCurrency"


class SnapshotLoader:
    """
    Loads a ReportSnapshot from CSV files.

    Expected files (in one directory):
    - categories.csv: category_id, name, type, parent_category_id, status
    - budgets.csv: category_id, amount, currency, status, recurring, start_month, end_month, month
    - transactions.csv: category_id, account_id, amount, currency, type, status, date, created_at, deleted_at
    - exchange_rates.csv (optional): from_currency, to_currency, rate, date
    - settings.csv (optional): setting_key, setting_value
    """

    FILES = {
        "categories": "categories.csv",
        "budgets": "budgets.csv",
        "transactions": "transactions.csv",
        "exchange_rates": "exchange_rates.csv",
        "settings": "settings.csv",
    }

    REQUIRED_COLUMNS = {
        "categories": ("name", "type"),
        "budgets": ("category_id", "amount"),
        "transactions": ("amount", "type", "date"),
        "exchange_rates": ("from_currency", "to_currency", "rate"),
        "settings": ("setting_key", "setting_value"),
    }

    OPTIONAL_FILES = ("exchange_rates", "settings")

    def __init__(self, default_base_currency: str = "USD", *, skip_on_error: bool = True):
        """
        Initialize the snapshot loader.

        Args:
            default_base_currency: Base currency used when settings.csv has none
            skip_on_error: When True, malformed rows are logged and skipped instead of raising
        """
        self.default_base_currency = default_base_currency.upper()
        self.skip_on_error = skip_on_error
        logger.info(
            "Snapshot loader initialized (default base currency %s, skip_on_error=%s)",
            self.default_base_currency,
            skip_on_error
        )

    def read_table(self, file_path: Path, name: str) -> pd.DataFrame:
        """
        Read one CSV export into a DataFrame of strings.

        Args:
            file_path: CSV file path
            name: Logical table name (used for column checks and messages)

        Returns:
            DataFrame with every column read as text

        Raises:
            SnapshotError: If the file is unreadable or lacks a required column
        """
        try:
            df = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding="utf-8")
        except pd_errors.EmptyDataError:
            logger.warning("Snapshot file %s is empty", file_path)
            return pd.DataFrame(columns=list(self.REQUIRED_COLUMNS[name]))
        except (OSError, pd_errors.ParserError, UnicodeDecodeError) as exc:
            raise SnapshotError(
                f"Unable to read {name} export",
                details={"file": str(file_path)},
                original_error=exc
            ) from exc

        df.columns = [str(column).strip() for column in df.columns]
        missing = [column for column in self.REQUIRED_COLUMNS[name] if column not in df.columns]
        if missing:
            raise SnapshotError(
                f"{name} export is missing required columns",
                details={"file": str(file_path), "missing_columns": missing}
            )
        return df

    def _convert_rows(self, df: pd.DataFrame, name: str, convert: Callable[[dict], T]) -> List[T]:
        records: List[T] = []
        skipped = 0
        for position, row in enumerate(df.to_dict(orient="records"), start=2):
            try:
                records.append(convert(row))
            except StandardizationError as exc:
                if not self.skip_on_error:
                    exc.details.setdefault("line", position)
                    raise
                skipped += 1
                logger.warning("Skipping %s row at line %s: %s", name, position, exc)
        if skipped:
            logger.warning("Skipped %s malformed %s rows", skipped, name)
        return records

    def _load(self, directory: Path, name: str, convert: Callable[[dict], T]) -> List[T]:
        file_path = directory / self.FILES[name]
        if not file_path.exists():
            if name in self.OPTIONAL_FILES:
                logger.debug("Optional snapshot file %s not found", file_path)
                return []
            raise SnapshotError(f"Missing {name} export", details={"file": str(file_path)})
        df = self.read_table(file_path, name)
        records = self._convert_rows(df, name, convert)
        logger.debug("Loaded %s %s records from %s", len(records), name, file_path)
        return records

    def load_directory(self, directory: Union[str, Path]) -> ReportSnapshot:
        """
        Load every export in ``directory`` into a ReportSnapshot.

        Args:
            directory: Directory containing the CSV exports

        Returns:
            ReportSnapshot ready for the aggregation engine

        Raises:
            SnapshotError: If the directory or a required export is missing
        """
        path = Path(directory)
        if not path.is_dir():
            raise SnapshotError("Snapshot directory not found", details={"directory": str(path)})

        categories = self._load(path, "categories", standardize_category)
        budgets = self._load(path, "budgets", standardize_budget)
        transactions = self._load(path, "transactions", standardize_transaction)
        exchange_rates = self._load(path, "exchange_rates", standardize_exchange_rate)
        settings = self._load(path, "settings", lambda row: row)

        cyclic = find_cyclic_categories(categories)
        if cyclic:
            logger.warning("Category hierarchy contains cycles at: %s", ", ".join(cyclic))

        snapshot = ReportSnapshot(
            categories=categories,
            budgets=budgets,
            transactions=transactions,
            exchange_rates=exchange_rates,
            base_currency=self.resolve_base_currency(settings_to_dict(settings)),
        )
        logger.info(
            "Loaded snapshot from %s: %s categories, %s budgets, %s transactions, %s rates",
            path,
            len(categories),
            len(budgets),
            len(transactions),
            len(exchange_rates)
        )
        return snapshot

    def resolve_base_currency(self, settings: Dict[str, str]) -> str:
        """Base currency from settings, else the loader default."""
        value = (settings.get(BASE_CURRENCY_SETTING) or "").strip()
        return value.upper() if value else self.default_base_currency
