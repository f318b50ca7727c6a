"""
Display rules for budget-vs-actual figures.

Variance text and colour classification differ between the Income and
Expense sections: falling short is the problem for income, overspending
is the problem for expenses.
"""

import enum
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple

from currency import format_currency
from models import CategoryType, CurrencyAmounts

NOT_AVAILABLE = "N/A"


class DisplayColor(enum.Enum):
    """Semantic colour classes used by the presentation layer."""
    NORMAL = "normal"
    WARNING = "warning"
    SUCCESS = "success"


def _whole_percent(value: Decimal) -> Decimal:
    rounded = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    # avoid "-0%"
    return rounded if rounded != 0 else Decimal("0")


def format_variance(variance: Optional[Decimal], report_type: CategoryType) -> str:
    """
    Format a variance percentage for display.

    Income shows the sign (``-20%`` short, ``+20%`` met or exceeded).
    Expense always shows the absolute percentage; colour carries the sign.
    """
    if variance is None:
        return NOT_AVAILABLE
    rounded = _whole_percent(Decimal(variance))
    if report_type == CategoryType.INCOME:
        if rounded < 0:
            return f"{rounded}%"
        return f"+{rounded}%"
    return f"{abs(rounded)}%"


def get_variance_color(variance: Optional[Decimal], report_type: CategoryType) -> DisplayColor:
    """Warning for income below budget or expense above budget."""
    if variance is None:
        return DisplayColor.NORMAL
    if report_type == CategoryType.INCOME:
        return DisplayColor.WARNING if variance < 0 else DisplayColor.NORMAL
    return DisplayColor.WARNING if variance > 0 else DisplayColor.NORMAL


def get_difference_color(difference: Decimal, report_type: CategoryType) -> DisplayColor:
    """
    Colour for the budget-minus-actual difference.

    Income: a positive difference (actual short of budget) is a warning.
    Expense: a negative difference (actual over budget) is a warning.
    """
    if report_type == CategoryType.INCOME:
        return DisplayColor.WARNING if difference > 0 else DisplayColor.SUCCESS
    return DisplayColor.SUCCESS if difference >= 0 else DisplayColor.WARNING


def get_foreign_currency_display(
    original_amounts: CurrencyAmounts,
    base_currency: str
) -> Optional[Tuple[str, Decimal]]:
    """
    Return ``(currency, amount)`` when every recorded amount is in one foreign currency.

    Returns None for base-currency-only, mixed, or empty aggregates.
    """
    positive = original_amounts.positive_currencies()
    if len(positive) != 1:
        return None
    currency = positive[0]
    if currency == base_currency.upper():
        return None
    return currency, original_amounts[currency]


def format_amount_display(
    amount: Decimal,
    base_currency: str,
    original_amounts: CurrencyAmounts,
    is_mixed: bool
) -> str:
    """
    Format a base-currency amount, annotated with its origin currency.

    Single foreign currency: ``$108.00 (€100.00)``. Mixed: ``$250.00 (mixed)``.
    """
    text = format_currency(amount, base_currency)
    if is_mixed:
        return f"{text} (mixed)"
    foreign = get_foreign_currency_display(original_amounts, base_currency)
    if foreign is not None:
        currency, original = foreign
        return f"{text} ({format_currency(original, currency)})"
    return text


def format_currencies(currencies: Iterable[str]) -> str:
    """Comma-separated, sorted currency codes."""
    return ", ".join(sorted(currencies))
