"""
Report generator module for budget-vs-actual output.

This module turns the engine's report rows into text tables, pandas
DataFrames, CSV exports and matplotlib charts.
"""

import logging
from typing import Iterable, List, Optional
from pathlib import Path
import pandas as pd
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for CLI
import matplotlib.pyplot as plt
from io import BytesIO

from currency import format_currency
from exceptions import ReportError
from formatting import format_amount_display, format_currencies, format_variance
from models import AggregateResult, BudgetReport, CategoryType, ReportRow, Transaction

logger = logging.getLogger(__name__)

DATAFRAME_COLUMNS = [
    'category_id',
    'category',
    'depth',
    'type',
    'budget',
    'actual',
    'difference',
    'variance',
    'currencies',
    'is_mixed',
]


class ReportGenerator:
    """
    Generate formatted budget reports.

    Supports text tables for the terminal, DataFrames for CSV export and
    budget-vs-actual bar charts (matplotlib).
    """

    def __init__(self, base_currency: str = "USD"):
        """
        Initialize the report generator.

        Args:
            base_currency: Currency used to format report amounts
        """
        self.base_currency = base_currency.upper()
        logger.info(f"Report generator initialized (base currency {self.base_currency})")

    def format_currency(self, amount) -> str:
        """
        Format amount in the base currency.

        Args:
            amount: Amount to format

        Returns:
            Formatted currency string
        """
        return format_currency(amount, self.base_currency)

    def rows_to_dataframe(self, rows: Iterable[ReportRow], report_type: CategoryType) -> pd.DataFrame:
        """
        Flatten report rows (depth-first) into a DataFrame.

        Args:
            rows: Top-level report rows of one section
            report_type: Section the rows belong to

        Returns:
            DataFrame with one record per category row
        """
        records = []
        for root in rows:
            for depth, row in root.walk():
                totals = row.totals
                records.append({
                    'category_id': row.category_id,
                    'category': row.category.name,
                    'depth': depth,
                    'type': report_type.value,
                    'budget': float(totals.budget),
                    'actual': float(totals.actual),
                    'difference': float(totals.difference),
                    'variance': float(totals.variance) if totals.variance is not None else None,
                    'currencies': format_currencies(totals.currencies),
                    'is_mixed': totals.is_mixed,
                })
        return pd.DataFrame(records, columns=DATAFRAME_COLUMNS)

    def report_to_dataframe(self, report: BudgetReport) -> pd.DataFrame:
        """Both sections of a report in one DataFrame (income first)."""
        income = self.rows_to_dataframe(report.income_rows, CategoryType.INCOME)
        expense = self.rows_to_dataframe(report.expense_rows, CategoryType.EXPENSE)
        frames = [df for df in (income, expense) if not df.empty]
        if not frames:
            return pd.DataFrame(columns=DATAFRAME_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def _amount(self, amount, originals, is_mixed: bool) -> str:
        return format_amount_display(amount, self.base_currency, originals, is_mixed)

    def _row_line(self, depth: int, name: str, totals: AggregateResult, report_type: CategoryType) -> str:
        label = f"{'  ' * depth}{name}"
        if len(label) > 30:
            label = label[:27] + "..."
        budget = self._amount(totals.budget, totals.budget_original_by_currency, totals.is_mixed)
        actual = self._amount(totals.actual, totals.actual_original_by_currency, totals.is_mixed)
        return (
            f"{label:<30} {budget:>22} {actual:>22} "
            f"{self.format_currency(totals.difference):>16} {format_variance(totals.variance, report_type):>9}"
        )

    def _section_lines(self, title: str, rows: List[ReportRow], totals: AggregateResult, report_type: CategoryType) -> List[str]:
        lines = [
            title,
            "-" * 104,
            f"{'Category':<30} {'Budget':>22} {'Actual':>22} {'Difference':>16} {'Variance':>9}",
            "-" * 104,
        ]
        if not rows:
            lines.append(f"No {report_type.value.lower()} budgets or transactions in this period")
        for root in rows:
            for depth, row in root.walk():
                lines.append(self._row_line(depth, row.category.name, row.totals, report_type))
        lines.append("-" * 104)
        lines.append(self._row_line(0, f"Total {report_type.value}", totals, report_type))
        lines.append("")
        return lines

    def generate_budget_report(self, report: BudgetReport, label: str, report_type: str = 'all') -> str:
        """
        Generate the budget-vs-actual text report.

        Args:
            report: Full report from the engine
            label: Period label (e.g. "March 2024")
            report_type: 'income', 'expense' or 'all'

        Returns:
            Formatted text report
        """
        report_lines = [
            "=" * 104,
            f"BUDGET VS ACTUAL ({label})",
            f"Range: {report.date_range}    Base currency: {report.base_currency}",
            "=" * 104,
            "",
        ]

        if report_type in ('income', 'all'):
            report_lines.extend(
                self._section_lines("INCOME", report.income_rows, report.income_totals, CategoryType.INCOME)
            )
        if report_type in ('expense', 'all'):
            report_lines.extend(
                self._section_lines("EXPENSES", report.expense_rows, report.expense_totals, CategoryType.EXPENSE)
            )
        if report_type == 'all':
            report_lines.extend([
                "NET SUMMARY",
                "-" * 104,
                f"Planned Savings:        {self.format_currency(report.net_summary.planned_savings):>20}",
                f"Actual Savings:         {self.format_currency(report.net_summary.actual_savings):>20}",
            ])
        report_lines.append("=" * 104)

        return "\n".join(report_lines)

    def generate_drilldown_report(self, transactions: List[Transaction], title: str) -> str:
        """
        Generate a text listing of the transactions behind one report cell.

        Amounts are shown in their original currency.

        Args:
            transactions: Transactions in display order
            title: Heading (category name and period)

        Returns:
            Formatted text report
        """
        if not transactions:
            return f"\nNo transactions found for {title}\n"

        report_lines = [
            "=" * 90,
            f"TRANSACTIONS: {title}",
            "=" * 90,
            "",
            f"{'Date':<12} {'Type':<14} {'Amount':>16}  {'Description':<44}",
            "-" * 90,
        ]
        for transaction in transactions:
            description = transaction.description or ""
            if len(description) > 44:
                description = description[:41] + "..."
            amount = format_currency(transaction.amount, transaction.currency or self.base_currency)
            report_lines.append(
                f"{transaction.date.isoformat():<12} {transaction.type.value:<14} {amount:>16}  {description:<44}"
            )
        report_lines.extend(["-" * 90, f"{len(transactions)} transactions", "=" * 90])
        return "\n".join(report_lines)

    def export_to_csv(
        self,
        df: pd.DataFrame,
        output_path: Path,
        report_name: str = "budget report"
    ) -> None:
        """
        Export DataFrame to CSV file.

        Args:
            df: DataFrame to export
            output_path: Output file path
            report_name: Name of the report for logging

        Raises:
            ReportError: If the file cannot be written
        """
        try:
            df.to_csv(output_path, index=False)
            logger.info(f"Exported {report_name} to {output_path}")
        except OSError as e:
            logger.error(f"Failed to export {report_name}: {e}")
            raise ReportError(
                f"Failed to export {report_name}",
                details={"path": str(output_path)},
                original_error=e
            ) from e

    def create_budget_vs_actual_chart(
        self,
        df: pd.DataFrame,
        output_path: Optional[Path] = None,
        title: str = "Budget vs Actual"
    ) -> Optional[BytesIO]:
        """
        Create grouped bar chart of budget and actual per top-level category.

        Args:
            df: DataFrame from ``rows_to_dataframe``/``report_to_dataframe``
            output_path: Optional file path to save chart
            title: Chart title

        Returns:
            BytesIO object if output_path is None, otherwise None
        """
        if df.empty:
            logger.warning("No data to plot budget vs actual chart")
            return None

        df_plot = df[df['depth'] == 0].reset_index(drop=True)
        labels = [f"{row['category']} ({row['type'][0]})" for _, row in df_plot.iterrows()]

        fig, ax = plt.subplots(figsize=(12, 6))

        x = range(len(df_plot))
        width = 0.35

        ax.bar([i - width/2 for i in x], df_plot['budget'], width, label='Budget', color='#3498db')
        ax.bar([i + width/2 for i in x], df_plot['actual'], width, label='Actual', color='#e67e22')

        ax.set_xlabel('Category', fontsize=11)
        ax.set_ylabel(f'Amount ({self.base_currency})', fontsize=11)
        ax.set_title(title, fontsize=14, fontweight='bold', pad=20)
        ax.set_xticks(list(x))
        ax.set_xticklabels(labels, rotation=45, ha='right')
        ax.legend()
        ax.grid(True, alpha=0.3, axis='y')

        plt.tight_layout()

        if output_path:
            try:
                plt.savefig(output_path, dpi=150, bbox_inches='tight')
            except OSError as e:
                raise ReportError(
                    "Failed to save chart",
                    details={"path": str(output_path)},
                    original_error=e
                ) from e
            finally:
                plt.close(fig)
            logger.info(f"Saved budget vs actual chart to {output_path}")
            return None

        buf = BytesIO()
        plt.savefig(buf, format='png', dpi=150, bbox_inches='tight')
        buf.seek(0)
        plt.close(fig)
        return buf
