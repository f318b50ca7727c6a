"""
Reporting period helpers.

Resolves a period anchor month and period type into a whole-month
DateRange, and provides the month arithmetic shared by the budget
evaluator. ReportPeriod is the explicit navigation state the calling
layer owns (the engine keeps no selected-month state of its own).
"""

import calendar
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from exceptions import PeriodError
from models import DateRange

logger = logging.getLogger(__name__)


class PeriodType(enum.Enum):
    """Length of a reporting period."""
    MONTH = "month"
    SIX_MONTHS = "6months"
    ONE_YEAR = "1year"

    @property
    def months(self) -> int:
        """Number of calendar months covered by the period (and its navigation step)."""
        return _PERIOD_MONTHS[self]

    @classmethod
    def from_value(cls, value: Union[str, "PeriodType"]) -> "PeriodType":
        """
        Parse a period type from its string value.

        Raises:
            PeriodError: If the value is not a known period type
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise PeriodError(
                f"Unknown period type '{value}'",
                details={"valid": [p.value for p in cls]},
                original_error=exc
            ) from exc


_PERIOD_MONTHS = {
    PeriodType.MONTH: 1,
    PeriodType.SIX_MONTHS: 6,
    PeriodType.ONE_YEAR: 12,
}


def month_start(value: date) -> date:
    """First day of the month containing ``value``."""
    return date(value.year, value.month, 1)


def month_end(value: date) -> date:
    """Last day of the month containing ``value``."""
    return date(value.year, value.month, calendar.monthrange(value.year, value.month)[1])


def add_months(value: date, months: int) -> date:
    """
    Shift ``value`` by a number of months, clamping the day to the target month.

    Args:
        value: Starting date
        months: Months to add (negative to go back)
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between_inclusive(start: date, end: date) -> int:
    """
    Count calendar months from the month of ``start`` to the month of ``end``.

    Both months are included, so the same month gives 1. Returns 0 when
    ``end`` falls in an earlier month than ``start``.
    """
    count = (end.year - start.year) * 12 + (end.month - start.month) + 1
    return max(count, 0)


def parse_month(value: Union[str, date]) -> date:
    """
    Parse a ``YYYY-MM`` (or ``YYYY-MM-DD``) string into the first day of that month.

    Raises:
        PeriodError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return month_start(value.date())
    if isinstance(value, date):
        return month_start(value)
    text = str(value).strip()
    for fmt in ("%Y-%m", "%Y-%m-%d"):
        try:
            return month_start(datetime.strptime(text, fmt).date())
        except ValueError:
            continue
    raise PeriodError(f"Invalid month '{value}'", details={"expected": "YYYY-MM"})


def resolve_date_range(anchor: date, period_type: PeriodType) -> DateRange:
    """
    Compute the inclusive date range for a period ending in the anchor month.

    ``month`` covers the anchor month; ``6months`` and ``1year`` cover the
    anchor month and the 5 or 11 months before it.

    Args:
        anchor: Any date inside the anchor month
        period_type: Period length

    Returns:
        DateRange from the first day of the first month to the last day of the anchor month
    """
    end = month_end(anchor)
    start = month_start(add_months(month_start(anchor), -(period_type.months - 1)))
    return DateRange(start=start, end=end)


def shift_anchor(anchor: date, period_type: PeriodType, steps: int = 1) -> date:
    """
    Move the anchor month by whole periods (1, 6 or 12 months per step).

    Args:
        anchor: Current anchor
        period_type: Active period type, which sets the step size
        steps: Positive to move forward, negative to move back
    """
    return add_months(month_start(anchor), steps * period_type.months)


@dataclass(frozen=True)
class ReportPeriod:
    """
    Selected reporting period: an anchor month and a period type.

    Navigation returns a new ReportPeriod; instances are never mutated.
    """
    anchor: date
    period_type: PeriodType = PeriodType.MONTH

    @classmethod
    def from_month(cls, month: Union[str, date], period_type: Union[str, PeriodType] = PeriodType.MONTH) -> "ReportPeriod":
        return cls(anchor=parse_month(month), period_type=PeriodType.from_value(period_type))

    @classmethod
    def current(cls, period_type: PeriodType = PeriodType.MONTH, today: Optional[date] = None) -> "ReportPeriod":
        return cls(anchor=month_start(today or date.today()), period_type=period_type)

    @property
    def date_range(self) -> DateRange:
        return resolve_date_range(self.anchor, self.period_type)

    def shift(self, steps: int) -> "ReportPeriod":
        return ReportPeriod(anchor=shift_anchor(self.anchor, self.period_type, steps), period_type=self.period_type)

    def previous(self) -> "ReportPeriod":
        return self.shift(-1)

    def next(self) -> "ReportPeriod":
        return self.shift(1)

    def with_period_type(self, period_type: PeriodType) -> "ReportPeriod":
        """Switch period length while keeping the anchor month."""
        return ReportPeriod(anchor=self.anchor, period_type=period_type)

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``March 2024`` or ``Jan 2024 - Jun 2024``."""
        date_range = self.date_range
        if self.period_type == PeriodType.MONTH:
            return date_range.start.strftime("%B %Y")
        return f"{date_range.start.strftime('%b %Y')} - {date_range.end.strftime('%b %Y')}"
