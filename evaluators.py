"""
Budget and actual evaluators.

Both evaluators work on one set of category ids and one DateRange, sum the
matching records in base currency, and keep the unconverted per-currency
totals alongside. They are pure functions of their inputs.
"""

import logging
from typing import AbstractSet, Iterable, Sequence, Set

from currency import Converter, convert_amount, convert_or_original
from models import (
    ZERO,
    ActualEvaluation,
    Budget,
    BudgetEvaluation,
    CategoryType,
    CurrencyAmounts,
    DateRange,
    ExchangeRate,
    Transaction,
    TransactionType,
)
from periods import month_end, month_start, months_between_inclusive

logger = logging.getLogger(__name__)

# Transaction types counted toward each report section. Outgoing transfers
# are reported as expense-like; incoming transfers are not counted as income.
SECTION_TRANSACTION_TYPES = {
    CategoryType.INCOME: frozenset({TransactionType.INCOME}),
    CategoryType.EXPENSE: frozenset({TransactionType.EXPENSE, TransactionType.TRANSFER_OUT}),
}


def count_applicable_months(budget: Budget, date_range: DateRange) -> int:
    """
    Count the months a budget's amount applies to within a date range.

    Recurring budgets overlap [start_month, end_month] (end open when unset)
    with the range and count every calendar month touched by the overlap.
    One-time budgets count 1 when their month overlaps the range. Budgets
    missing the month field they need count 0.
    """
    if budget.recurring:
        if budget.start_month is None:
            return 0
        window_start = max(month_start(budget.start_month), date_range.start)
        window_end = date_range.end
        if budget.end_month is not None:
            window_end = min(month_end(budget.end_month), window_end)
        if window_start > window_end:
            return 0
        return months_between_inclusive(window_start, window_end)

    if budget.month is None:
        return 0
    if month_start(budget.month) <= date_range.end and month_end(budget.month) >= date_range.start:
        return 1
    return 0


def evaluate_budget(
    budgets: Iterable[Budget],
    category_ids: AbstractSet[str],
    date_range: DateRange,
    base_currency: str,
    exchange_rates: Sequence[ExchangeRate],
    converter: Converter = convert_amount
) -> BudgetEvaluation:
    """
    Sum the Active budgets of a set of categories over a date range.

    Each budget contributes ``amount x applicable months``, converted to the
    base currency (the unconverted amount is used when no rate is known).

    Args:
        budgets: Budget list
        category_ids: Categories to include (self, or self plus descendants)
        date_range: Reporting range
        base_currency: Currency to normalise into
        exchange_rates: Exchange-rate table
        converter: Conversion function

    Returns:
        BudgetEvaluation with the converted total, currencies seen and original totals
    """
    total = ZERO
    currencies: Set[str] = set()
    originals = CurrencyAmounts()

    for budget in budgets:
        if budget.category_id not in category_ids or not budget.is_active:
            continue
        months = count_applicable_months(budget, date_range)
        if months <= 0:
            continue

        amount = budget.amount * months
        currency = (budget.currency or base_currency).upper()
        originals.add(currency, amount)
        total += convert_or_original(amount, currency, base_currency, exchange_rates, converter)
        currencies.add(currency)

    return BudgetEvaluation(
        amount=total,
        currencies=frozenset(currencies),
        original_amounts_by_currency=originals,
    )


def transaction_matches(
    transaction: Transaction,
    category_ids: AbstractSet[str],
    date_range: DateRange,
    report_type: CategoryType
) -> bool:
    """Whether a transaction counts toward a section total for the given categories."""
    if transaction.category_id is None or transaction.category_id not in category_ids:
        return False
    if transaction.is_excluded:
        return False
    if transaction.type not in SECTION_TRANSACTION_TYPES[report_type]:
        return False
    return date_range.contains(transaction.date)


def evaluate_actual(
    transactions: Iterable[Transaction],
    category_ids: AbstractSet[str],
    date_range: DateRange,
    report_type: CategoryType,
    base_currency: str,
    exchange_rates: Sequence[ExchangeRate],
    converter: Converter = convert_amount
) -> ActualEvaluation:
    """
    Sum matching transactions for a set of categories over a date range.

    Cancelled and soft-deleted transactions are skipped. Amounts are taken
    as absolute values and converted to the base currency.

    Returns:
        ActualEvaluation with the converted total, currencies seen, the
        matching transactions and original per-currency totals
    """
    total = ZERO
    currencies: Set[str] = set()
    originals = CurrencyAmounts()
    matched = []

    for transaction in transactions:
        if not transaction_matches(transaction, category_ids, date_range, report_type):
            continue
        amount = abs(transaction.amount)
        currency = (transaction.currency or base_currency).upper()
        originals.add(currency, amount)
        total += convert_or_original(amount, currency, base_currency, exchange_rates, converter)
        currencies.add(currency)
        matched.append(transaction)

    return ActualEvaluation(
        amount=total,
        currencies=frozenset(currencies),
        transactions=matched,
        original_amounts_by_currency=originals,
    )
