"""Tests for the distribution engine."""
from decimal import Decimal

import pytest

from rentbooks.core.exceptions import (
    DivisionByZeroError,
    DuplicateSelectionError,
    EmptySelectionError,
    InvalidAmountError,
)
from rentbooks.services.distribution import (
    WeightedEntity,
    distribute,
    distribute_equally,
    distribute_proportionally,
    shares_by_percentage,
)
from rentbooks.utils.money import Money, money_sum


def _as_strings(distribution):
    return {key: value.to_decimal_string() for key, value in distribution.items()}


class TestProportional:
    def test_splits_by_weight(self):
        total = Money.from_decimal("1000.00")
        result = distribute_proportionally(
            total, [WeightedEntity.of(1, Money.from_decimal("6000")), WeightedEntity.of(2, Money.from_decimal("4000"))]
        )
        assert _as_strings(result) == {1: "600.00", 2: "400.00"}

    def test_drift_goes_to_last_entity_in_caller_order(self):
        total = Money.from_decimal("100.00")
        result = distribute_proportionally(total, [WeightedEntity.of(k, 1) for k in ("c", "a", "b")])
        assert list(result) == ["c", "a", "b"]
        assert _as_strings(result) == {"c": "33.33", "a": "33.33", "b": "33.34"}

    @pytest.mark.parametrize(
        "total, weights",
        [
            ("0.01", [1, 1, 1]),
            ("999.99", [3, 7, 11, 13]),
            ("165.00", ["6000.00", "4000.00", "1234.56"]),
            ("1.00", ["0.0001", "0.0002"]),
        ],
    )
    def test_shares_sum_to_total_exactly(self, total, weights):
        money = Money.from_decimal(total)
        result = distribute_proportionally(money, [WeightedEntity.of(i, w) for i, w in enumerate(weights)])
        assert money_sum(result.values()) == money

    def test_empty_selection(self):
        with pytest.raises(EmptySelectionError):
            distribute_proportionally(Money.from_decimal("1"), [])

    def test_zero_total_weight(self):
        with pytest.raises(DivisionByZeroError):
            distribute_proportionally(Money.from_decimal("1"), [WeightedEntity.of(1, 0), WeightedEntity.of(2, 0)])

    def test_negative_weight(self):
        with pytest.raises(InvalidAmountError):
            distribute_proportionally(Money.from_decimal("1"), [WeightedEntity.of(1, -1), WeightedEntity.of(2, 3)])

    def test_duplicate_ids(self):
        with pytest.raises(DuplicateSelectionError):
            distribute_proportionally(Money.from_decimal("1"), [WeightedEntity.of(1, 1), WeightedEntity.of(1, 2)])


class TestEqual:
    @pytest.mark.parametrize("n", range(1, 21))
    def test_exact_sum_for_any_count(self, n):
        total = Money.from_decimal("5000.01")
        result = distribute_equally(total, list(range(n)))
        assert money_sum(result.values()) == total
        shares = list(result.values())
        assert all(s == shares[0] for s in shares[:-1])

    def test_five_properties(self):
        result = distribute_equally(Money.from_decimal("5000.00"), [10, 20, 30, 40, 50])
        assert set(_as_strings(result).values()) == {"1000.00"}

    def test_empty_selection(self):
        with pytest.raises(EmptySelectionError):
            distribute_equally(Money.from_decimal("1"), [])


class TestDistribute:
    def test_uses_weights_when_usable(self):
        result, method = distribute(Money.from_decimal("10.00"), [1, 2], {1: Decimal("3"), 2: Decimal("1")})
        assert method == "proportional"
        assert _as_strings(result) == {1: "7.50", 2: "2.50"}

    def test_falls_back_to_equal_when_weights_sum_to_zero(self):
        result, method = distribute(Money.from_decimal("10.00"), [1, 2], {1: 0, 2: 0})
        assert method == "equal"
        assert _as_strings(result) == {1: "5.00", 2: "5.00"}

    def test_missing_weight_counts_as_zero(self):
        result, method = distribute(Money.from_decimal("10.00"), [1, 2], {1: 5})
        assert method == "proportional"
        assert _as_strings(result) == {1: "10.00", 2: "0.00"}


def test_shares_by_percentage():
    distribution = {
        "a": Money.from_decimal("33.33"),
        "b": Money.from_decimal("33.33"),
        "c": Money.from_decimal("33.34"),
    }
    assert shares_by_percentage(distribution) == {
        "a": Decimal("33.33"),
        "b": Decimal("33.33"),
        "c": Decimal("33.34"),
    }
    assert shares_by_percentage({"a": Money.zero()}) == {"a": Decimal("0.00")}
