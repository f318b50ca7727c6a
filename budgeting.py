"""
Budget-vs-actual aggregation engine.

This module combines the category tree, the budget and actual evaluators
and the currency converter into per-category report rows, section totals
and a net savings summary. Every call recomputes from the snapshot it was
given; the engine never mutates its inputs and keeps no UI state.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from category_hierarchy import build_category_tree, get_category_and_descendant_ids, get_section_scope_ids
from currency import Converter, convert_amount
from evaluators import evaluate_actual, evaluate_budget, transaction_matches
from models import (
    ZERO,
    ActualEvaluation,
    AggregateResult,
    Budget,
    BudgetEvaluation,
    BudgetReport,
    Category,
    CategoryNode,
    CategoryType,
    CurrencyAmounts,
    DateRange,
    ExchangeRate,
    NetSummary,
    ReportRow,
    ReportSnapshot,
    Transaction,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def calculate_variance(budget: Decimal, actual: Decimal) -> Optional[Decimal]:
    """
    Percentage by which actual deviates from budget.

    Negative means actual is below budget, positive means above. Returns
    None when the budget is not positive.
    """
    if budget > 0:
        return (actual - budget) / budget * HUNDRED
    return None


def build_aggregate(
    budget: Decimal,
    actual: Decimal,
    currencies: Iterable[str],
    budget_originals: CurrencyAmounts,
    actual_originals: CurrencyAmounts
) -> AggregateResult:
    """
    Derive difference, variance and the mixed-currency flag for a row or section.

    ``is_mixed`` counts only currencies with a strictly positive original
    amount in either map, so a currency whose contribution is zero does not
    make an aggregate look mixed.
    """
    positive = set(budget_originals.positive_currencies()) | set(actual_originals.positive_currencies())
    return AggregateResult(
        budget=budget,
        actual=actual,
        difference=budget - actual,
        variance=calculate_variance(budget, actual),
        currencies=frozenset(currencies),
        is_mixed=len(positive) > 1,
        budget_original_by_currency=budget_originals,
        actual_original_by_currency=actual_originals,
        difference_original_by_currency=budget_originals.minus(actual_originals),
    )


def combine_aggregates(parts: Iterable[AggregateResult]) -> AggregateResult:
    """Sum several aggregates, unioning currencies and summing original-amount maps."""
    budget = ZERO
    actual = ZERO
    currencies: Set[str] = set()
    budget_originals = CurrencyAmounts()
    actual_originals = CurrencyAmounts()
    for part in parts:
        budget += part.budget
        actual += part.actual
        currencies.update(part.currencies)
        budget_originals.merge(part.budget_original_by_currency)
        actual_originals.merge(part.actual_original_by_currency)
    return build_aggregate(budget, actual, currencies, budget_originals, actual_originals)


def _drilldown_sort_key(transaction: Transaction) -> Tuple[date, bool, float]:
    # Same-day rows without created_at sort after the ones that have it
    created_at = transaction.created_at
    return (
        transaction.date,
        created_at is not None,
        created_at.timestamp() if created_at is not None else 0.0,
    )


class BudgetReportEngine:
    """
    Computes budget-vs-actual report data from one in-memory snapshot.

    The engine is UI-agnostic and total over its inputs: missing exchange
    rates fall back to unconverted amounts, orphaned categories become
    roots, malformed budgets contribute nothing, and empty inputs produce
    zero totals.
    """

    def __init__(
        self,
        categories: Sequence[Category],
        budgets: Sequence[Budget],
        transactions: Sequence[Transaction],
        base_currency: str = "USD",
        exchange_rates: Optional[Sequence[ExchangeRate]] = None,
        converter: Converter = convert_amount
    ):
        """
        Initialize the engine over a snapshot.

        Args:
            categories: Full category list (inactive categories included)
            budgets: Budget list
            transactions: Transaction list, soft-deleted rows included
            base_currency: Currency all totals are normalised into
            exchange_rates: Exchange-rate table
            converter: Conversion function with the ``convert_amount`` signature
        """
        self.categories = tuple(categories)
        self.budgets = tuple(budgets)
        self.transactions = tuple(transactions)
        self.base_currency = (base_currency or "USD").upper()
        self.exchange_rates = tuple(exchange_rates or ())
        self.converter = converter
        self._descendant_ids: Dict[str, Set[str]] = {}
        self._row_ids: Dict[CategoryType, Set[str]] = {}
        self._scope_ids: Dict[Tuple[str, CategoryType], Set[str]] = {}
        logger.debug(
            "Budget report engine initialized: %s categories, %s budgets, %s transactions, base %s",
            len(self.categories),
            len(self.budgets),
            len(self.transactions),
            self.base_currency
        )

    @classmethod
    def from_snapshot(cls, snapshot: ReportSnapshot, converter: Converter = convert_amount) -> "BudgetReportEngine":
        """Create an engine from a loaded ReportSnapshot."""
        return cls(
            categories=snapshot.categories,
            budgets=snapshot.budgets,
            transactions=snapshot.transactions,
            base_currency=snapshot.base_currency,
            exchange_rates=snapshot.exchange_rates,
            converter=converter,
        )

    def build_category_tree(self, category_type: CategoryType) -> List[CategoryNode]:
        """Active categories of one type as a forest."""
        return build_category_tree(self.categories, category_type)

    def category_and_descendant_ids(self, category_id: str) -> Set[str]:
        """Ids of a category and all its descendants in the full snapshot."""
        if category_id not in self._descendant_ids:
            self._descendant_ids[category_id] = get_category_and_descendant_ids(category_id, self.categories)
        return self._descendant_ids[category_id]

    def _section_row_ids(self, report_type: CategoryType) -> Set[str]:
        if report_type not in self._row_ids:
            self._row_ids[report_type] = {
                node.id for root in self.build_category_tree(report_type) for node in root.walk()
            }
        return self._row_ids[report_type]

    def own_scope_ids(self, category_id: str, report_type: CategoryType) -> Set[str]:
        """
        Ids counted in a category's own figures within one section.

        The category itself plus every same-type descendant that has no row
        of its own in the section (inactive subcategories, or those below an
        inactive or other-type link). Descendants with their own row are
        counted through the roll-up instead.
        """
        key = (category_id, report_type)
        if key not in self._scope_ids:
            self._scope_ids[key] = get_section_scope_ids(
                category_id,
                self.categories,
                report_type,
                self._section_row_ids(report_type),
            )
        return self._scope_ids[key]

    def _category_ids(self, category_id: str, include_descendants: bool) -> Set[str]:
        if include_descendants:
            return self.category_and_descendant_ids(category_id)
        return {category_id}

    def evaluate_budget(
        self,
        category_id: str,
        date_range: DateRange,
        include_descendants: bool = True
    ) -> BudgetEvaluation:
        """Budget evaluator for one category (optionally with its descendants)."""
        return evaluate_budget(
            self.budgets,
            self._category_ids(category_id, include_descendants),
            date_range,
            self.base_currency,
            self.exchange_rates,
            self.converter,
        )

    def evaluate_actual(
        self,
        category_id: str,
        date_range: DateRange,
        report_type: CategoryType,
        include_descendants: bool = True
    ) -> ActualEvaluation:
        """Actual evaluator for one category (optionally with its descendants)."""
        return evaluate_actual(
            self.transactions,
            self._category_ids(category_id, include_descendants),
            date_range,
            report_type,
            self.base_currency,
            self.exchange_rates,
            self.converter,
        )

    def _evaluate_ids(self, category_ids: Set[str], date_range: DateRange, report_type: CategoryType) -> AggregateResult:
        budget = evaluate_budget(
            self.budgets,
            category_ids,
            date_range,
            self.base_currency,
            self.exchange_rates,
            self.converter,
        )
        actual = evaluate_actual(
            self.transactions,
            category_ids,
            date_range,
            report_type,
            self.base_currency,
            self.exchange_rates,
            self.converter,
        )
        return build_aggregate(
            budget.amount,
            actual.amount,
            budget.currencies | actual.currencies,
            budget.original_amounts_by_currency,
            actual.original_amounts_by_currency,
        )

    def calculate_category_totals(
        self,
        node: CategoryNode,
        report_type: CategoryType,
        date_range: DateRange,
        include_descendants: bool = True
    ) -> AggregateResult:
        """
        Roll up budget and actual figures for one category node.

        With ``include_descendants=False`` only records assigned directly to
        the category count. Otherwise the node's own scope (see
        ``own_scope_ids``) is evaluated and the recursive roll-up of each
        child node is added, so every budget and transaction is counted
        exactly once whatever the shape of the hierarchy.

        Args:
            node: Category node from the tree builder
            report_type: Income or Expense section
            date_range: Reporting range
            include_descendants: Whether to roll up descendant categories

        Returns:
            AggregateResult for the node
        """
        if not include_descendants:
            return self._evaluate_ids({node.id}, date_range, report_type)

        own = self._evaluate_ids(self.own_scope_ids(node.id, report_type), date_range, report_type)
        if not node.children:
            return own

        children = [
            self.calculate_category_totals(child, report_type, date_range, include_descendants=True)
            for child in node.children
        ]
        return combine_aggregates([own, *children])

    def _build_row(self, node: CategoryNode, report_type: CategoryType, date_range: DateRange) -> Optional[ReportRow]:
        child_rows = [
            row for row in (self._build_row(child, report_type, date_range) for child in node.children)
            if row is not None
        ]
        totals = self.calculate_category_totals(node, report_type, date_range)
        if totals.has_data or child_rows:
            return ReportRow(category=node, totals=totals, children=child_rows)
        return None

    def build_report(self, report_type: CategoryType, date_range: DateRange) -> List[ReportRow]:
        """
        Build the ordered report rows for one section.

        Rows are kept when the category has a positive budget or actual, or
        when one of its descendants does. Child rows follow the same rule.

        Args:
            report_type: Income or Expense
            date_range: Reporting range

        Returns:
            Root report rows in category order, each with nested child rows
        """
        rows = []
        for node in self.build_category_tree(report_type):
            row = self._build_row(node, report_type, date_range)
            if row is not None:
                rows.append(row)
        logger.debug("Built %s %s report rows for %s", len(rows), report_type.value, date_range)
        return rows

    @staticmethod
    def calculate_section_totals(rows: Iterable[ReportRow]) -> AggregateResult:
        """Grand total of the top-level rows of one section."""
        return combine_aggregates(row.totals for row in rows)

    @staticmethod
    def calculate_net_summary(income_totals: AggregateResult, expense_totals: AggregateResult) -> NetSummary:
        """Planned and actual savings (income minus expense)."""
        return NetSummary(
            planned_savings=income_totals.budget - expense_totals.budget,
            actual_savings=income_totals.actual - expense_totals.actual,
        )

    def build_full_report(self, date_range: DateRange) -> BudgetReport:
        """Build both sections, their totals and the net summary for a range."""
        income_rows = self.build_report(CategoryType.INCOME, date_range)
        expense_rows = self.build_report(CategoryType.EXPENSE, date_range)
        income_totals = self.calculate_section_totals(income_rows)
        expense_totals = self.calculate_section_totals(expense_rows)
        report = BudgetReport(
            date_range=date_range,
            base_currency=self.base_currency,
            income_rows=income_rows,
            expense_rows=expense_rows,
            income_totals=income_totals,
            expense_totals=expense_totals,
            net_summary=self.calculate_net_summary(income_totals, expense_totals),
        )
        logger.info(
            "Budget report for %s: income %s/%s, expense %s/%s (%s)",
            date_range,
            income_totals.actual,
            income_totals.budget,
            expense_totals.actual,
            expense_totals.budget,
            self.base_currency
        )
        return report

    def get_drilldown_transactions(
        self,
        category_id: str,
        report_type: CategoryType,
        date_range: DateRange
    ) -> List[Transaction]:
        """
        Transactions behind one report cell, newest first.

        Covers the same categories as the row's rolled-up actual and applies
        the actual evaluator's filters. Same-day transactions are ordered by
        ``created_at`` descending, those without one last in input order.
        """
        category_ids = self._row_scope_ids(category_id, report_type)
        matched = [
            transaction for transaction in self.transactions
            if transaction_matches(transaction, category_ids, date_range, report_type)
        ]
        return sorted(matched, key=_drilldown_sort_key, reverse=True)

    def _row_scope_ids(self, category_id: str, report_type: CategoryType) -> Set[str]:
        for root in self.build_category_tree(report_type):
            for node in root.walk():
                if node.id == category_id:
                    ids: Set[str] = set()
                    for member in node.walk():
                        ids |= self.own_scope_ids(member.id, report_type)
                    return ids
        return self.own_scope_ids(category_id, report_type)
