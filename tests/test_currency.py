"""
Tests for exchange-rate lookup, conversion and currency formatting.
"""

from datetime import date
from decimal import Decimal

import pytest

from currency import (
    convert_amount,
    convert_or_original,
    find_exchange_rate,
    format_currency,
    to_decimal,
)
from models import ExchangeRate


class TestFindExchangeRate:
    """Tests for rate selection."""

    def test_same_currency_is_one(self, exchange_rates):
        assert find_exchange_rate(exchange_rates, "usd", "USD") == Decimal("1")

    def test_latest_direct_rate_wins(self, exchange_rates):
        assert find_exchange_rate(exchange_rates, "EUR", "USD") == Decimal("1.08")

    def test_reverse_rate_is_inverted(self, exchange_rates):
        assert find_exchange_rate(exchange_rates, "GBP", "USD") == Decimal("1.25")

    def test_direct_preferred_over_reverse(self):
        rates = [
            ExchangeRate("USD", "EUR", Decimal("0.5"), date(2024, 5, 1)),
            ExchangeRate("EUR", "USD", Decimal("1.1"), date(2024, 1, 1)),
        ]
        assert find_exchange_rate(rates, "EUR", "USD") == Decimal("1.1")

    def test_undated_rate_loses_to_dated(self):
        rates = [
            ExchangeRate("EUR", "USD", Decimal("2"), date(2020, 1, 1)),
            ExchangeRate("EUR", "USD", Decimal("3")),
        ]
        assert find_exchange_rate(rates, "EUR", "USD") == Decimal("2")

    def test_non_positive_rates_are_ignored(self):
        rates = [ExchangeRate("EUR", "USD", Decimal("0"), date(2024, 1, 1))]
        assert find_exchange_rate(rates, "EUR", "USD") is None

    def test_unknown_pair(self, exchange_rates):
        assert find_exchange_rate(exchange_rates, "CHF", "USD") is None


class TestConvertAmount:
    """Tests for conversion with fallbacks."""

    def test_converts_with_rate(self, exchange_rates):
        assert convert_amount(Decimal("100"), "EUR", "USD", exchange_rates) == Decimal("108")

    def test_same_currency_returns_amount(self):
        assert convert_amount(Decimal("12.34"), "USD", "USD", []) == Decimal("12.34")

    @pytest.mark.parametrize("from_currency,to_currency", [(None, "USD"), ("EUR", None), ("", "USD")])
    def test_missing_currency_returns_none(self, from_currency, to_currency):
        assert convert_amount(Decimal("1"), from_currency, to_currency, []) is None

    def test_no_rate_returns_none(self):
        assert convert_amount(Decimal("1"), "CHF", "USD", []) is None

    def test_convert_or_original_falls_back(self):
        assert convert_or_original(Decimal("70"), "CHF", "USD", []) == Decimal("70")


class TestFormatting:
    """Tests for currency display strings."""

    def test_known_symbol(self):
        assert format_currency(Decimal("1234.5"), "USD") == "$1,234.50"

    def test_negative_amount(self):
        assert format_currency(Decimal("-12"), "eur") == "-€12.00"

    def test_unknown_currency_uses_code(self):
        assert format_currency(Decimal("5"), "CAD") == "CAD 5.00"

    def test_to_decimal(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("abc") == Decimal("0")
        assert to_decimal(None, Decimal("1")) == Decimal("1")
