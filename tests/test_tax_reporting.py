from datetime import date
from decimal import Decimal

import pytest

from rentbooks.services.distributed_payment_service import DistributedPaymentService
from rentbooks.services.tax_projection_service import TaxProjectionService
from rentbooks.services.tax_reporting import TaxReportingService
from rentbooks.services.tax_reporting.reporting_service import effective_rate
from rentbooks.services.tax_settings_service import TaxSettingsService
from rentbooks.utils.money import Money


@pytest.fixture
def july_confirmed(db_session, user_id, add_revenue):
    """July 2025 revenue of 10000.00 with PIS and COFINS confirmed."""
    TaxSettingsService(db_session).initialize_defaults(user_id)
    add_revenue("10000.00", date(2025, 7, 10))
    service = TaxProjectionService(db_session)
    for projection in service.calculate_tax_projections(user_id, "2025-07"):
        if projection.tax_type in ("PIS", "COFINS"):
            service.confirm_projection(user_id, projection.id)


def test_tax_summary(db_session, user_id, july_confirmed):
    summary = TaxReportingService(db_session).get_tax_summary(user_id, 2025)
    assert summary["total_tax_paid"] == Money.from_decimal("925.00")
    assert summary["total_revenue"] == Money.from_decimal("10000.00")
    assert summary["effective_rate"] == Decimal("9.25")
    assert summary["monthly_breakdown"] == [{"month": "08/2025", "amount": Money.from_decimal("925.00")}]
    assert summary["average_monthly_tax"] == Money.from_decimal("925.00")
    assert summary["projected_outstanding"] == Money.from_decimal("768.00")


def test_monthly_comparison(db_session, user_id, july_confirmed):
    rows = TaxReportingService(db_session).get_monthly_comparison(user_id, 2025)
    assert len(rows) == 12
    july = rows[6]
    assert july["month"] == "2025-07"
    assert july["revenue"] == Money.from_decimal("10000.00")
    assert july["projected_tax"] == Money.from_decimal("768.00")
    assert july["confirmed_tax"] == Money.from_decimal("925.00")
    assert july["effective_rate"] == Decimal("16.93")
    assert rows[0]["effective_rate"] == Decimal("0.00")


def test_composite_tax_payment_counted_once(db_session, user_id, make_property):
    a, b = make_property("A"), make_property("B")
    DistributedPaymentService(db_session).create_distributed_tax_payment(
        user_id, "PIS", "100.00", [a.id, b.id], payment_date=date(2025, 3, 25)
    )
    summary = TaxReportingService(db_session).get_tax_summary(user_id, 2025)
    assert summary["total_tax_paid"] == Money.from_decimal("100.00")
    assert summary["effective_rate"] == Decimal("0.00")


def test_installments_count_as_leaves(db_session, user_id, add_revenue):
    TaxSettingsService(db_session).initialize_defaults(user_id)
    add_revenue("312500.00", date(2025, 7, 1))
    TaxProjectionService(db_session).calculate_tax_projections(user_id, "2025-07")

    summary = TaxReportingService(db_session).get_tax_summary(user_id, 2025)
    # PIS 5156.25 + COFINS 23750.00 + CSLL 9060.00 (3 installments) + IRPJ 24522.40 (3 installments)
    assert summary["projected_outstanding"] == Money.from_decimal("62488.65")


def test_effective_rate_without_revenue():
    assert effective_rate(Money.from_decimal("10"), Money.zero()) == Decimal("0.00")
    assert effective_rate(Money.from_decimal("1"), Money.from_decimal("3")) == Decimal("33.33")
