"""Exact currency arithmetic.

``Money`` is an immutable amount held as a ``Decimal`` quantized to cents.
Binary floats never take part in arithmetic: a float handed in by a caller
is converted through its shortest ``repr`` first, exactly as if the user had
typed it.

Rounding policy is ROUND_HALF_UP everywhere (not banker's rounding).

Usage
-----
    from rentbooks.utils.money import Money

    rent = Money.parse_user_input("1.234,56")     # local format
    fee = rent.percentage(Decimal("7.6"))          # Money('93.83')
    rent.to_brl()                                  # 'R$ 1.234,56'
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Any, Iterable, Sequence, Union

from rentbooks.core.config import settings
from rentbooks.core.exceptions import DivisionByZeroError, InvalidAmountError

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# "1.234,56", "1234,5", "-10,00", "1.000.000" (thousands dot, decimal comma)
_LOCAL_FORMAT = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")
_CURRENCY_NOISE = re.compile(r"R\$|\s")

Scalar = Union[int, Decimal, str, float]


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmountError(value, "booleans are not amounts")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidAmountError(value, "empty input")
        try:
            number = Decimal(text)
        except InvalidOperation as exc:
            raise InvalidAmountError(value, "not a decimal number") from exc
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")
    if not number.is_finite():
        raise InvalidAmountError(value, "not a finite number")
    return number


def to_scalar(value: Scalar) -> Decimal:
    """Convert a rate, weight or factor to ``Decimal`` without float artefacts."""
    return _to_decimal(value)


@total_ordering
@dataclass(frozen=True)
class Money:
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise InvalidAmountError(self.amount, "Money must be built from Decimal; use Money.from_decimal")
        if not self.amount.is_finite():
            raise InvalidAmountError(self.amount, "not a finite number")
        try:
            cents = self.amount.quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            # More digits than the decimal context holds
            raise InvalidAmountError(str(self.amount), "amount out of range") from exc
        object.__setattr__(self, "amount", cents)

    # ---------------- construction -----------------
    @classmethod
    def zero(cls) -> Money:
        return _ZERO

    @classmethod
    def from_decimal(cls, value: Scalar) -> Money:
        """Build from a plain decimal value ("1234.56", 1234.56, Decimal)."""
        if isinstance(value, Money):
            return value
        return cls(_to_decimal(value))

    @classmethod
    def from_cents(cls, cents: int) -> Money:
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise InvalidAmountError(cents, "cents must be an integer")
        return cls(Decimal(cents) / HUNDRED)

    @classmethod
    def from_brl(cls, value: str) -> Money:
        """Parse the local format only: "R$ 1.234,56", "1234,56", "1.000"."""
        if not isinstance(value, str):
            raise InvalidAmountError(value, "local format input must be text")
        cleaned = _CURRENCY_NOISE.sub("", value)
        if not _LOCAL_FORMAT.match(cleaned):
            raise InvalidAmountError(value, "not in local format")
        return cls(Decimal(cleaned.replace(".", "").replace(",", ".")))

    @classmethod
    def parse_user_input(cls, value: Any) -> Money:
        """Parse user input, trying the local format before plain decimal.

        "1.234,56" and "1234.56" both give 1234.56. An ambiguous "1.234"
        is read in local format (one thousand two hundred thirty-four).
        """
        if isinstance(value, Money):
            return value
        if value is None:
            raise InvalidAmountError(value, "no amount given")
        if not isinstance(value, str):
            return cls.from_decimal(value)
        try:
            return cls.from_brl(value)
        except InvalidAmountError:
            pass
        cleaned = _CURRENCY_NOISE.sub("", value)
        try:
            return cls.from_decimal(cleaned)
        except InvalidAmountError as exc:
            raise InvalidAmountError(value, "expected 1.234,56 or 1234.56") from exc

    # ---------------- arithmetic -----------------
    def add(self, other: Money) -> Money:
        return Money(self.amount + _require_money(other).amount)

    def subtract(self, other: Money) -> Money:
        return Money(self.amount - _require_money(other).amount)

    def multiply(self, factor: Scalar) -> Money:
        return Money(self.amount * to_scalar(factor))

    def divide(self, divisor: Scalar) -> Money:
        number = to_scalar(divisor)
        if number == 0:
            raise DivisionByZeroError("Money.divide")
        return Money(self.amount / number)

    def percentage(self, rate: Scalar) -> Money:
        """Return ``self * rate / 100`` rounded half-up to cents."""
        return Money(self.amount * to_scalar(rate) / HUNDRED)

    def split(self, parts: int) -> list[Money]:
        """Split into ``parts`` values summing exactly to ``self``.

        Every part but the last is the floor of ``self / parts`` at cent
        precision; the last part absorbs the remainder.
        """
        if isinstance(parts, bool) or not isinstance(parts, int):
            raise InvalidAmountError(parts, "number of parts must be an integer")
        if parts == 0:
            raise DivisionByZeroError("Money.split")
        if parts < 0:
            raise InvalidAmountError(parts, "number of parts must be positive")
        share = (self.amount / parts).quantize(CENT, rounding=ROUND_FLOOR)
        head = [Money(share)] * (parts - 1)
        return head + [Money(self.amount - share * (parts - 1))]

    def allocate(self, ratios: Sequence[Scalar]) -> list[Money]:
        """Split proportionally to ``ratios``; the last entry absorbs rounding drift."""
        weights = [to_scalar(r) for r in ratios]
        if not weights:
            return []
        total_weight = sum(weights, Decimal("0"))
        if total_weight == 0:
            raise DivisionByZeroError("Money.allocate")
        parts: list[Money] = []
        distributed = Decimal("0")
        for weight in weights[:-1]:
            part = Money(self.amount * weight / total_weight)
            parts.append(part)
            distributed += part.amount
        parts.append(Money(self.amount - distributed))
        return parts

    def abs(self) -> Money:
        return Money(abs(self.amount))

    def negate(self) -> Money:
        return Money(-self.amount)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, factor: Scalar) -> Money:
        if isinstance(factor, Money):
            return NotImplemented
        return self.multiply(factor)

    __rmul__ = __mul__

    def __neg__(self) -> Money:
        return self.negate()

    # ---------------- comparison -----------------
    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < other.amount

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def is_less_than(self, other: Money) -> bool:
        return self < _require_money(other)

    def is_greater_than(self, other: Money) -> bool:
        return self > _require_money(other)

    # ---------------- conversion -----------------
    def to_cents(self) -> int:
        return int(self.amount * HUNDRED)

    def to_decimal(self) -> Decimal:
        return self.amount

    def to_decimal_string(self) -> str:
        return f"{self.amount:.2f}"

    def to_brl(self, include_symbol: bool = True) -> str:
        """Localized string: ``R$ 1.234,56`` / ``-R$ 10,00``."""
        grouped = f"{abs(self.amount):,.2f}"
        local = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
        sign = "-" if self.amount < 0 else ""
        symbol = "R$ " if include_symbol else ""
        return f"{sign}{symbol}{local}"

    def to_api(self) -> dict[str, Any]:
        return {
            "cents": self.to_cents(),
            "decimal": self.to_decimal_string(),
            "formatted": self.to_brl(),
        }

    def __str__(self) -> str:
        return self.to_decimal_string()

    def __repr__(self) -> str:
        return f"Money('{self.to_decimal_string()}')"


_ZERO = Money(Decimal("0"))


def _require_money(value: Any) -> Money:
    if not isinstance(value, Money):
        raise InvalidAmountError(value, "expected a Money value")
    return value


def money_sum(values: Iterable[Money]) -> Money:
    total = Money.zero()
    for value in values:
        total = total.add(value)
    return total


def money_average(values: Sequence[Money]) -> Money:
    if not values:
        return Money.zero()
    return money_sum(values).divide(len(values))


def validate_amount(
    money: Money,
    *,
    minimum: Money | None = None,
    maximum: Money | None = None,
    allow_negative: bool = False,
    allow_zero: bool = False,
) -> Money:
    """Reject amounts outside the accepted range; returns the value unchanged."""
    upper = maximum if maximum is not None else Money.from_cents(settings.MONEY_MAX_CENTS)
    lower = minimum if minimum is not None else Money.from_cents(-settings.MONEY_MAX_CENTS)
    if not allow_zero and money.is_zero():
        raise InvalidAmountError(money.to_decimal_string(), "amount cannot be zero")
    if not allow_negative and money.is_negative():
        raise InvalidAmountError(money.to_decimal_string(), "amount cannot be negative")
    if money.is_less_than(lower):
        raise InvalidAmountError(money.to_decimal_string(), f"minimum is {lower.to_brl()}")
    if money.is_greater_than(upper):
        raise InvalidAmountError(money.to_decimal_string(), f"maximum is {upper.to_brl()}")
    return money
