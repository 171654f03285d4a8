"""Tests for the tax calculator (presumed-profit regime)."""
from datetime import date
from decimal import Decimal

import pytest

from rentbooks.core.exceptions import InvalidReferenceMonthError
from rentbooks.services.revenue_source import RevenueAggregate
from rentbooks.services.tax_calculator import TaxCalculator, attribute_to_properties
from rentbooks.services.tax_settings_service import TaxSettingsService
from rentbooks.utils.money import Money, money_sum


class StaticRevenueSource:
    """Revenue source returning fixed aggregates whatever the period."""

    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def get_revenue_by_property_and_period(self, user_id, start_date, end_date, property_ids=None):
        self.calls.append((start_date, end_date))
        return list(self.rows)


def _by_type(computations):
    return {c.tax_type: c for c in computations}


@pytest.fixture
def defaults(db_session, user_id):
    return TaxSettingsService(db_session).initialize_defaults(user_id)


def _calculator(db_session, revenue: str) -> TaxCalculator:
    source = StaticRevenueSource([RevenueAggregate(1, "Apto 101", Money.from_decimal(revenue))])
    return TaxCalculator(db_session, revenue_source=source)


def test_end_to_end_month(db_session, user_id, defaults, make_property, add_revenue):
    a, b = make_property("Apto 101"), make_property("Casa Centro")
    add_revenue("6000.00", date(2025, 7, 5), a)
    add_revenue("4000.00", date(2025, 7, 20), b)
    add_revenue("999.00", date(2025, 8, 1), a)  # next month, ignored

    result = _by_type(TaxCalculator(db_session).calculate(user_id, "2025-07"))

    assert {k: v.total_amount.to_decimal_string() for k, v in result.items()} == {
        "PIS": "165.00",
        "COFINS": "760.00",
        "CSLL": "288.00",
        "IRPJ": "480.00",
    }
    assert result["IRPJ"].additional_amount.is_zero()
    assert result["PIS"].due_date == date(2025, 8, 25)
    assert result["CSLL"].due_date == date(2025, 8, 30)
    assert result["CSLL"].presumed_profit == Money.from_decimal("3200.00")
    assert not result["CSLL"].qualifies_for_installments()

    shares = {s.property_id: s.tax_amount.to_decimal_string() for s in result["PIS"].property_distribution}
    assert shares == {a.id: "99.00", b.id: "66.00"}


@pytest.mark.parametrize("revenue", ["1.91", "0.35", "1234.56", "9876.43", "19999.99", "20000.00"])
def test_presumed_profit_matches_combined_rate(db_session, user_id, defaults, revenue):
    result = _by_type(_calculator(db_session, revenue).calculate(user_id, "2025-07"))
    money = Money.from_decimal(revenue)
    assert result["CSLL"].total_amount == money.multiply(Decimal("0.0288"))
    assert result["IRPJ"].total_amount == money.multiply(Decimal("0.048"))


def test_irpj_additional_above_threshold(db_session, user_id, defaults):
    irpj = _by_type(_calculator(db_session, "30000.00").calculate(user_id, "2025-07"))["IRPJ"]
    assert irpj.tax_amount == Money.from_decimal("1440.00")
    # 10% on the 32% presumed profit of the 10000.00 excess
    assert irpj.additional_amount == Money.from_decimal("320.00")
    assert irpj.total_amount == Money.from_decimal("1760.00")


def test_no_revenue_yields_nothing(db_session, user_id, defaults):
    assert TaxCalculator(db_session).calculate(user_id, "2025-07") == []


def test_no_settings_yields_nothing(db_session, user_id, add_revenue):
    add_revenue("1000.00", date(2025, 7, 1))
    assert TaxCalculator(db_session).calculate(user_id, "2025-07") == []


def test_tax_rounding_to_zero_is_skipped(db_session, user_id, defaults):
    result = _by_type(_calculator(db_session, "0.10").calculate(user_id, "2025-07"))
    # 0.10 * 1.65% = 0.00165 -> 0.00
    assert "PIS" not in result
    assert result["COFINS"].total_amount == Money.from_decimal("0.01")


def test_settings_in_force_at_month_end_apply(db_session, user_id, defaults):
    TaxSettingsService(db_session).update_settings(user_id, "PIS", {"rate": "0.65"}, effective_date=date(2025, 7, 15))
    result = _by_type(_calculator(db_session, "10000.00").calculate(user_id, "2025-07"))
    assert result["PIS"].total_amount == Money.from_decimal("65.00")
    result = _by_type(_calculator(db_session, "10000.00").calculate(user_id, "2025-06"))
    assert result["PIS"].total_amount == Money.from_decimal("165.00")


def test_quarterly_tax_only_on_quarter_end(db_session, user_id, defaults, add_revenue):
    TaxSettingsService(db_session).update_settings(
        user_id, "CSLL", {"payment_frequency": "quarterly"}, effective_date=date(2025, 1, 1)
    )
    add_revenue("1000.00", date(2025, 7, 10))
    add_revenue("2000.00", date(2025, 8, 10))
    add_revenue("3000.00", date(2025, 9, 10))
    calculator = TaxCalculator(db_session)

    assert "CSLL" not in _by_type(calculator.calculate(user_id, "2025-08"))

    september = _by_type(calculator.calculate(user_id, "2025-09"))
    assert september["CSLL"].base_amount == Money.from_decimal("6000.00")
    assert september["CSLL"].total_amount == Money.from_decimal("172.80")
    assert september["CSLL"].due_date == date(2025, 10, 31)
    # Monthly taxes still use the month alone
    assert september["PIS"].base_amount == Money.from_decimal("3000.00")


def test_company_level_revenue_is_attributed_last(db_session, user_id, defaults, make_property, add_revenue):
    prop = make_property("Loja")
    add_revenue("500.00", date(2025, 7, 1))
    add_revenue("500.00", date(2025, 7, 2), prop)
    pis = _by_type(TaxCalculator(db_session).calculate(user_id, "2025-07"))["PIS"]
    assert [s.property_id for s in pis.property_distribution] == [prop.id, None]
    assert pis.property_distribution[1].property_name == "Company"
    assert money_sum(s.tax_amount for s in pis.property_distribution) == pis.total_amount


def test_invalid_reference_month(db_session, user_id, defaults):
    with pytest.raises(InvalidReferenceMonthError):
        TaxCalculator(db_session).calculate(user_id, "2025-13")


def test_attribution_gives_zero_to_properties_without_revenue():
    rows = [
        RevenueAggregate(1, "A", Money.zero()),
        RevenueAggregate(2, "B", Money.from_decimal("100.00")),
        RevenueAggregate(3, "C", Money.from_decimal("200.00")),
    ]
    shares = attribute_to_properties(Money.from_decimal("10.00"), rows)
    assert [s.tax_amount.to_decimal_string() for s in shares] == ["0.00", "3.33", "6.67"]


class TestAdHocCalculations:
    def test_tax_preview(self, db_session, user_id, make_property, add_revenue):
        a, b = make_property("A"), make_property("B")
        add_revenue("6000.00", date(2025, 7, 1), a)
        add_revenue("4000.00", date(2025, 7, 1), b)
        preview = TaxCalculator(db_session).generate_tax_preview(user_id, "2025-07", "cofins", "5")
        assert preview["tax_type"] == "COFINS"
        assert preview["tax_amount"] == Money.from_decimal("500.00")
        assert [s.tax_amount.to_decimal_string() for s in preview["distribution"]] == ["300.00", "200.00"]

    @pytest.mark.parametrize(
        "regime, pis, cofins",
        [("cumulative", "65.00", "300.00"), ("non-cumulative", "165.00", "760.00")],
    )
    def test_pis_cofins_regimes(self, db_session, user_id, add_revenue, regime, pis, cofins):
        add_revenue("10000.00", date(2025, 7, 1))
        result = TaxCalculator(db_session).calculate_pis_cofins(user_id, "2025-07", regime=regime)
        assert result["pis_amount"].to_decimal_string() == pis
        assert result["cofins_amount"].to_decimal_string() == cofins
        assert result["total_tax"] == result["pis_amount"] + result["cofins_amount"]
        assert len(result["property_details"]) == 1

    def test_pis_cofins_unknown_regime(self, db_session, user_id):
        with pytest.raises(ValueError):
            TaxCalculator(db_session).calculate_pis_cofins(user_id, "2025-07", regime="simples")
