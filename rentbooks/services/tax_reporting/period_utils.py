"""Period date range calculation utilities.

Reference months are ``YYYY-MM`` strings. Quarters are calendar quarters
(Jan-Mar, Apr-Jun, Jul-Sep, Oct-Dec). Business days are Monday to Friday;
public holidays are not taken into account.
"""
import calendar
import re
from datetime import date, timedelta
from typing import Tuple

from rentbooks.core.exceptions import InvalidReferenceMonthError

_REFERENCE_MONTH = re.compile(r"^(\d{4})-(\d{2})$")


def parse_reference_month(reference_month: str) -> Tuple[int, int]:
    """Split ``YYYY-MM`` into (year, month).

    Raises:
        InvalidReferenceMonthError: If the value is not a valid YYYY-MM month
    """
    match = _REFERENCE_MONTH.match(reference_month or "")
    if not match:
        raise InvalidReferenceMonthError(reference_month)
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidReferenceMonthError(reference_month)
    return year, month


def format_reference_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def reference_month_of(day: date) -> str:
    return format_reference_month(day.year, day.month)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the month, inclusive."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def is_quarter_end(month: int) -> bool:
    return month in (3, 6, 9, 12)


def quarter_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of the calendar quarter containing ``month``."""
    first_month = ((month - 1) // 3) * 3 + 1
    start, _ = month_bounds(year, first_month)
    _, end = month_bounds(year, first_month + 2)
    return start, end


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole months, clamping to the target month's length."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def last_business_day(year: int, month: int) -> date:
    _, day = month_bounds(year, month)
    while day.weekday() >= 5:  # Saturday, Sunday
        day -= timedelta(days=1)
    return day


def monthly_due_date(year: int, month: int, due_day: int) -> date:
    """``due_day`` of the month after (year, month), clamped to that month's length."""
    next_month = add_months(date(year, month, 1), 1)
    last_day = calendar.monthrange(next_month.year, next_month.month)[1]
    return next_month.replace(day=max(1, min(due_day, last_day)))


def quarterly_due_date(year: int, month: int) -> date:
    """Last business day of the month following the quarter that contains ``month``."""
    _, quarter_end = quarter_bounds(year, month)
    following = add_months(quarter_end.replace(day=1), 1)
    return last_business_day(following.year, following.month)
