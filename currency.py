"""
Currency conversion helpers.

Converts amounts between currencies using the exchange-rate table supplied
with a snapshot. Conversion is advisory: when no rate is available the
caller receives None and decides on a fallback.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional, Sequence

from models import ExchangeRate

logger = logging.getLogger(__name__)

# Signature shared by convert_amount and any replacement conversion service
Converter = Callable[[Decimal, Optional[str], Optional[str], Sequence[ExchangeRate]], Optional[Decimal]]

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "LKR": "Rs ",
}


def to_decimal(value, default: Decimal = Decimal("0")) -> Decimal:
    """
    Coerce a number or numeric string into a Decimal.

    Floats go through ``str`` so that 0.1 stays 0.1. Empty and unparseable
    values yield ``default``.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        text = str(value).strip()
        if not text or text.lower() == "nan":
            return default
        return Decimal(text)
    except (InvalidOperation, ValueError):
        logger.debug("Could not convert %r to Decimal; using %s", value, default)
        return default


def _latest(rates: Sequence[ExchangeRate]) -> Optional[ExchangeRate]:
    if not rates:
        return None
    # Undated rates sort before any dated one
    return max(rates, key=lambda rate: rate.date or date.min)


def find_exchange_rate(
    exchange_rates: Sequence[ExchangeRate],
    from_currency: str,
    to_currency: str
) -> Optional[Decimal]:
    """
    Look up the multiplier converting ``from_currency`` into ``to_currency``.

    The most recent direct rate wins; otherwise the most recent reverse rate
    is inverted. Rates that are zero or negative are ignored.

    Returns:
        The rate, or None when the table holds no usable rate
    """
    source = from_currency.strip().upper()
    target = to_currency.strip().upper()
    if source == target:
        return Decimal("1")

    usable = [rate for rate in exchange_rates or [] if rate.rate and rate.rate > 0]
    direct = _latest([
        rate for rate in usable
        if rate.from_currency.upper() == source and rate.to_currency.upper() == target
    ])
    if direct is not None:
        return direct.rate

    reverse = _latest([
        rate for rate in usable
        if rate.from_currency.upper() == target and rate.to_currency.upper() == source
    ])
    if reverse is not None:
        return Decimal("1") / reverse.rate

    return None


def convert_amount(
    amount: Decimal,
    from_currency: Optional[str],
    to_currency: Optional[str],
    exchange_rates: Sequence[ExchangeRate]
) -> Optional[Decimal]:
    """
    Convert an amount between currencies.

    Args:
        amount: Amount in ``from_currency``
        from_currency: Source currency code
        to_currency: Target currency code
        exchange_rates: Exchange-rate table

    Returns:
        Converted amount, or None when a currency is missing or no rate is known
    """
    if not from_currency or not to_currency:
        return None

    rate = find_exchange_rate(exchange_rates, from_currency, to_currency)
    if rate is None:
        logger.debug("No exchange rate from %s to %s", from_currency, to_currency)
        return None
    if rate == 1:
        return amount
    return amount * rate


def convert_or_original(
    amount: Decimal,
    from_currency: str,
    base_currency: str,
    exchange_rates: Sequence[ExchangeRate],
    converter: Converter = convert_amount
) -> Decimal:
    """Convert into the base currency, falling back to the unconverted amount."""
    converted = converter(amount, from_currency, base_currency, exchange_rates)
    if converted is None:
        return amount
    return converted


def format_currency(amount: Decimal, currency: str = "USD") -> str:
    """
    Format an amount with its currency symbol, e.g. ``$1,234.50`` or ``-€12.00``.

    Currencies without a known symbol are prefixed with their code.
    """
    code = (currency or "").upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    value = to_decimal(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
