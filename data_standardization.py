"""
Record standardization for snapshot sources.

Converts raw records (CSV rows or database rows as dictionaries) into the
immutable domain models: string enums are matched by value, dates and
timestamps are parsed, amounts become Decimals and currency codes are
upper-cased. Both the CSV loader and the database reader go through here.
"""

from __future__ import annotations

import enum
import logging
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar

import pandas as pd

from exceptions import StandardizationError
from models import (
    Budget,
    Category,
    CategoryType,
    ExchangeRate,
    RecordStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)

# Store status values that map onto the engine's two-state lifecycle
_STATUS_ALIASES = {
    "archived": RecordStatus.INACTIVE,
    "inactive": RecordStatus.INACTIVE,
    "active": RecordStatus.ACTIVE,
}

_TRUE_VALUES = {"true", "1", "yes", "y", "t"}
_FALSE_VALUES = {"false", "0", "no", "n", "f", ""}


def is_missing(value: Any) -> bool:
    """True for None, empty strings and pandas/float NaN values."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value: Any) -> Optional[str]:
    """Strip a text value, returning None when missing."""
    if is_missing(value):
        return None
    text = str(value).strip()
    # IDs read by pandas as floats (e.g. 12.0) keep their integer form
    if isinstance(value, float) and value.is_integer():
        text = str(int(value))
    return text


def parse_decimal(value: Any, field: str) -> Decimal:
    """
    Parse a monetary value into a Decimal.

    Raises:
        StandardizationError: If the value is missing or not numeric
    """
    if is_missing(value):
        raise StandardizationError(f"Missing value for '{field}'", details={"field": field})
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip().replace(",", ""))
    except (InvalidOperation, ValueError) as exc:
        raise StandardizationError(
            f"Invalid number for '{field}'",
            details={"field": field, "value": value},
            original_error=exc
        ) from exc


def parse_date(value: Any, field: str, required: bool = True) -> Optional[date]:
    """
    Parse a date from ISO strings, ``YYYY-MM`` month strings or date objects.

    Raises:
        StandardizationError: If a required value is missing or unparseable
    """
    if is_missing(value):
        if required:
            raise StandardizationError(f"Missing date for '{field}'", details={"field": field})
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 7 and text[4] == "-":
        text = f"{text}-01"
    try:
        return pd.to_datetime(text).date()
    except (ValueError, TypeError) as exc:
        raise StandardizationError(
            f"Invalid date for '{field}'",
            details={"field": field, "value": value},
            original_error=exc
        ) from exc


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Parse an optional timestamp; missing values give None."""
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return pd.to_datetime(str(value).strip()).to_pydatetime()
    except (ValueError, TypeError) as exc:
        raise StandardizationError(
            f"Invalid timestamp for '{field}'",
            details={"field": field, "value": value},
            original_error=exc
        ) from exc


def parse_bool(value: Any, field: str) -> bool:
    """Parse truthy/falsy strings and numbers."""
    if isinstance(value, bool):
        return value
    if is_missing(value):
        return False
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise StandardizationError(f"Invalid boolean for '{field}'", details={"field": field, "value": value})


def parse_enum(enum_type: Type[E], value: Any, field: str, default: Optional[E] = None) -> E:
    """
    Match a raw value against an enum's values (case-insensitive).

    Raises:
        StandardizationError: If the value matches no member and no default is given
    """
    if isinstance(value, enum_type):
        return value
    if is_missing(value):
        if default is not None:
            return default
        raise StandardizationError(f"Missing value for '{field}'", details={"field": field})
    text = str(value).strip().lower()
    for member in enum_type:
        if member.value.lower() == text:
            return member
    raise StandardizationError(
        f"Unknown {field} '{value}'",
        details={"field": field, "valid": [member.value for member in enum_type]}
    )


def parse_record_status(value: Any) -> RecordStatus:
    """Map store status values (Active/Inactive/Archived) onto RecordStatus."""
    if isinstance(value, RecordStatus):
        return value
    if is_missing(value):
        return RecordStatus.ACTIVE
    status = _STATUS_ALIASES.get(str(value).strip().lower())
    if status is None:
        raise StandardizationError(f"Unknown status '{value}'", details={"field": "status"})
    return status


def parse_currency(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text.upper() if text else None


def _first(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row and not is_missing(row[key]):
            return row[key]
    return None


def standardize_category(row: Mapping[str, Any]) -> Category:
    """Build a Category from a raw record (``category_id``/``id``, ``parent_category_id``/``parent_id``)."""
    category_id = clean_text(_first(row, "category_id", "id"))
    if not category_id:
        raise StandardizationError("Category record has no id", details={"row": dict(row)})
    return Category(
        id=category_id,
        name=clean_text(row.get("name")) or category_id,
        type=parse_enum(CategoryType, row.get("type"), "type"),
        parent_id=clean_text(_first(row, "parent_category_id", "parent_id")),
        status=parse_record_status(row.get("status")),
    )


def standardize_budget(row: Mapping[str, Any]) -> Budget:
    """Build a Budget from a raw record."""
    category_id = clean_text(row.get("category_id"))
    if not category_id:
        raise StandardizationError("Budget record has no category_id", details={"row": dict(row)})
    return Budget(
        id=clean_text(_first(row, "budget_id", "id")),
        category_id=category_id,
        amount=parse_decimal(row.get("amount"), "amount"),
        currency=parse_currency(row.get("currency")),
        status=parse_record_status(row.get("status")),
        recurring=parse_bool(row.get("recurring"), "recurring"),
        start_month=parse_date(row.get("start_month"), "start_month", required=False),
        end_month=parse_date(row.get("end_month"), "end_month", required=False),
        month=parse_date(row.get("month"), "month", required=False),
    )


def standardize_transaction(row: Mapping[str, Any]) -> Transaction:
    """Build a Transaction from a raw record."""
    return Transaction(
        id=clean_text(_first(row, "transaction_id", "id")),
        category_id=clean_text(row.get("category_id")),
        account_id=clean_text(row.get("account_id")),
        amount=parse_decimal(row.get("amount"), "amount"),
        currency=parse_currency(row.get("currency")),
        type=parse_enum(TransactionType, row.get("type"), "type", default=TransactionType.EXPENSE),
        status=parse_enum(TransactionStatus, row.get("status"), "status", default=TransactionStatus.CLEARED),
        date=parse_date(row.get("date"), "date"),
        created_at=parse_datetime(row.get("created_at"), "created_at"),
        deleted_at=parse_datetime(row.get("deleted_at"), "deleted_at"),
        description=clean_text(row.get("description")) or "",
    )


def standardize_exchange_rate(row: Mapping[str, Any]) -> ExchangeRate:
    """Build an ExchangeRate from a raw record."""
    from_currency = parse_currency(row.get("from_currency"))
    to_currency = parse_currency(row.get("to_currency"))
    if not from_currency or not to_currency:
        raise StandardizationError("Exchange rate record is missing a currency", details={"row": dict(row)})
    return ExchangeRate(
        from_currency=from_currency,
        to_currency=to_currency,
        rate=parse_decimal(row.get("rate"), "rate"),
        date=parse_date(row.get("date"), "date", required=False),
    )


def settings_to_dict(rows: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Collapse ``setting_key``/``setting_value`` records into a dictionary."""
    settings: Dict[str, str] = {}
    for row in rows:
        key = clean_text(row.get("setting_key"))
        if key:
            settings[key] = clean_text(row.get("setting_value")) or ""
    return settings
