"""Column types for monetary values.

Amounts are stored as integer cents so that SUM() and comparisons are exact
on every backend (SQLite has no fixed-point NUMERIC). Rates and percentages
use ``Numeric`` with enough scale for values such as 1.65 or 7.60.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import BigInteger, Numeric
from sqlalchemy.types import TypeDecorator

from rentbooks.utils.money import Money

# Percentages such as 1.65, 32.00 or 0.000001 (up to 999999.999999)
Rate = Numeric(12, 6)


class MoneyType(TypeDecorator):
    """Persist :class:`Money` as BIGINT cents and load it back as ``Money``."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> int | None:
        if value is None:
            return None
        if not isinstance(value, Money):
            value = Money.from_decimal(value)
        return value.to_cents()

    def process_result_value(self, value: Any, dialect) -> Money | None:
        if value is None:
            return None
        return Money.from_cents(int(value))
