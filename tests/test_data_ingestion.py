"""
Unit tests for loading snapshots from CSV exports.
"""

from datetime import date
from decimal import Decimal

import pytest

from budgeting import BudgetReportEngine
from data_ingestion import SnapshotLoader
from exceptions import SnapshotError, StandardizationError
from models import CategoryType, DateRange, RecordStatus, TransactionType


@pytest.fixture
def loader():
    return SnapshotLoader(default_base_currency="usd")


class TestLoadDirectory:
    """Tests for reading a complete export directory."""

    def test_loads_every_table(self, loader, snapshot_dir):
        snapshot = loader.load_directory(snapshot_dir)

        assert len(snapshot.categories) == 7
        assert len(snapshot.budgets) == 7
        assert len(snapshot.transactions) == 11
        assert len(snapshot.exchange_rates) == 3
        assert snapshot.base_currency == "USD"

    def test_values_are_standardized(self, loader, snapshot_dir):
        snapshot = loader.load_directory(snapshot_dir)
        travel = next(c for c in snapshot.categories if c.id == "exp-travel")
        transfer = next(t for t in snapshot.transactions if t.id == "t-transfer")
        bonus = next(b for b in snapshot.budgets if b.id == "b-bonus")

        assert travel.status is RecordStatus.INACTIVE
        assert transfer.type is TransactionType.TRANSFER_OUT
        assert transfer.amount == Decimal("-25")
        assert bonus.month == date(2024, 3, 1)
        assert bonus.currency == "EUR"

    def test_loaded_snapshot_matches_model_fixtures(self, loader, snapshot_dir, march_2024):
        """The CSV ledger produces the same totals as the in-memory fixtures."""
        engine = BudgetReportEngine.from_snapshot(loader.load_directory(snapshot_dir))
        report = engine.build_full_report(march_2024)
        assert report.expense_totals.budget == Decimal("1700")
        assert report.expense_totals.actual == Decimal("1349")
        assert report.income_totals.actual == Decimal("5972")

    def test_base_currency_from_settings(self, loader, snapshot_dir):
        (snapshot_dir / "settings.csv").write_text("setting_key,setting_value\nBaseCurrency,eur\n", encoding="utf-8")
        assert loader.load_directory(snapshot_dir).base_currency == "EUR"

    def test_optional_files_may_be_missing(self, loader, snapshot_dir):
        (snapshot_dir / "exchange_rates.csv").unlink()
        (snapshot_dir / "settings.csv").unlink()

        snapshot = loader.load_directory(snapshot_dir)

        assert snapshot.exchange_rates == []
        assert snapshot.base_currency == "USD"

    def test_missing_required_file(self, loader, snapshot_dir):
        (snapshot_dir / "budgets.csv").unlink()
        with pytest.raises(SnapshotError) as exc_info:
            loader.load_directory(snapshot_dir)
        assert "budgets" in str(exc_info.value)

    def test_missing_directory(self, loader, tmp_path):
        with pytest.raises(SnapshotError):
            loader.load_directory(tmp_path / "nope")


class TestMalformedData:
    """Tests for column checks and bad rows."""

    def test_missing_required_column(self, loader, snapshot_dir):
        (snapshot_dir / "transactions.csv").write_text("category_id,amount\nexp-food,10\n", encoding="utf-8")
        with pytest.raises(SnapshotError) as exc_info:
            loader.load_directory(snapshot_dir)
        assert exc_info.value.details["missing_columns"] == ["type", "date"]

    def test_bad_rows_are_skipped(self, loader, snapshot_dir):
        with open(snapshot_dir / "transactions.csv", "a", encoding="utf-8") as f:
            f.write("t-bad,exp-food,acct-1,lots,USD,Expense,Cleared,2024-03-02,,,Broken\n")

        snapshot = loader.load_directory(snapshot_dir)

        assert len(snapshot.transactions) == 11

    def test_bad_rows_raise_when_strict(self, snapshot_dir):
        with open(snapshot_dir / "budgets.csv", "a", encoding="utf-8") as f:
            f.write("b-bad,exp-food,100,USD,Active,sometimes,2024-01,,\n")

        strict = SnapshotLoader(skip_on_error=False)
        with pytest.raises(StandardizationError) as exc_info:
            strict.load_directory(snapshot_dir)
        assert exc_info.value.details["line"] == 9

    def test_empty_optional_file(self, loader, snapshot_dir):
        (snapshot_dir / "exchange_rates.csv").write_text("", encoding="utf-8")
        assert loader.load_directory(snapshot_dir).exchange_rates == []

    def test_cycle_is_logged(self, loader, snapshot_dir, caplog):
        with open(snapshot_dir / "categories.csv", "a", encoding="utf-8") as f:
            f.write("x,X,Expense,y,Active\ny,Y,Expense,x,Active\n")

        with caplog.at_level("WARNING"):
            loader.load_directory(snapshot_dir)

        assert "cycles" in caplog.text


def test_read_table_reads_text(loader, snapshot_dir):
    df = loader.read_table(snapshot_dir / "budgets.csv", "budgets")
    assert list(df["amount"])[:2] == ["1000", "200"]
    assert df.loc[0, "end_month"] == ""


def test_april_actuals(loader, snapshot_dir):
    """April has only the late grocery run and no one-time budgets."""
    engine = BudgetReportEngine.from_snapshot(loader.load_directory(snapshot_dir))
    april = DateRange(date(2024, 4, 1), date(2024, 4, 30))
    actual = engine.evaluate_actual("exp-food", april, CategoryType.EXPENSE)
    assert actual.amount == Decimal("60")
