"""Field types shared by API schemas.

Money leaves the API as a two-decimal string ("1234.50"); rates as a
plain decimal string without trailing zeros ("1.65", "7.6", "32").
"""
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BeforeValidator

from rentbooks.utils.money import Money


def format_amount(value: Any) -> Any:
    if isinstance(value, Money):
        return value.to_decimal_string()
    if isinstance(value, Decimal):
        return Money.from_decimal(value).to_decimal_string()
    return value


def format_rate(value: Any) -> Any:
    """Format Decimal values without trailing zeros for API responses."""
    if not isinstance(value, Decimal):
        return value

    normalized = value.normalize()
    if normalized == normalized.to_integral():
        normalized = normalized.quantize(Decimal("1"))

    text = format(normalized, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


MoneyStr = Annotated[str, BeforeValidator(format_amount)]
RateStr = Annotated[str, BeforeValidator(format_rate)]
