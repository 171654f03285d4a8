"""Tax Reporting Module.

Sub-modules:
- period_utils: Reference months, quarters and tax due dates
- reporting_service: Main TaxReportingService class
"""
from .period_utils import (
    add_months,
    is_quarter_end,
    last_business_day,
    month_bounds,
    monthly_due_date,
    parse_reference_month,
    quarter_bounds,
    quarterly_due_date,
)
from .reporting_service import TaxReportingService

__all__ = [
    # Utilities
    "add_months",
    "is_quarter_end",
    "last_business_day",
    "month_bounds",
    "monthly_due_date",
    "parse_reference_month",
    "quarter_bounds",
    "quarterly_due_date",
    # Service class
    "TaxReportingService",
]
