from datetime import date

import pytest

from rentbooks.core.exceptions import InvalidReferenceMonthError
from rentbooks.services.tax_reporting import (
    add_months,
    is_quarter_end,
    last_business_day,
    month_bounds,
    monthly_due_date,
    parse_reference_month,
    quarter_bounds,
    quarterly_due_date,
)


def test_parse_reference_month():
    assert parse_reference_month("2025-07") == (2025, 7)


@pytest.mark.parametrize("value", ["2025-13", "2025-00", "2025-7", "07/2025", "", "abcd-ef"])
def test_parse_reference_month_rejects_malformed(value):
    with pytest.raises(InvalidReferenceMonthError):
        parse_reference_month(value)


def test_month_and_quarter_bounds():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert quarter_bounds(2025, 8) == (date(2025, 7, 1), date(2025, 9, 30))
    assert quarter_bounds(2025, 12) == (date(2025, 10, 1), date(2025, 12, 31))
    assert [m for m in range(1, 13) if is_quarter_end(m)] == [3, 6, 9, 12]


def test_add_months_clamps_to_month_length():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 8, 30), 2) == date(2025, 10, 30)
    assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)


def test_last_business_day_skips_weekend():
    # 2025-08-31 is a Sunday
    assert last_business_day(2025, 8) == date(2025, 8, 29)
    assert last_business_day(2025, 10) == date(2025, 10, 31)


def test_monthly_due_date():
    assert monthly_due_date(2025, 7, 25) == date(2025, 8, 25)
    assert monthly_due_date(2025, 1, 30) == date(2025, 2, 28)
    assert monthly_due_date(2025, 12, 25) == date(2026, 1, 25)


def test_quarterly_due_date_is_last_business_day_after_quarter():
    assert quarterly_due_date(2025, 9) == date(2025, 10, 31)
    # 2026-01-31 is a Saturday
    assert quarterly_due_date(2025, 12) == date(2026, 1, 30)
