from datetime import date
from decimal import Decimal

import pytest

from rentbooks.core.exceptions import EmptySelectionError, InvalidAmountError, TaxSettingNotFoundError
from rentbooks.models.ledger_models import LedgerTransaction
from rentbooks.services.distributed_payment_service import DistributedPaymentService
from rentbooks.utils.money import Money, money_sum


@pytest.fixture
def properties(make_property):
    return [make_property(name) for name in ("Apto 101", "Casa Centro", "Loja")]


def _line_amounts(parent):
    return [line.amount.to_decimal_string() for line in parent.lines]


def test_distributed_tax_payment_by_revenue(db_session, user_id, properties):
    a, b, c = properties
    parent = DistributedPaymentService(db_session).create_distributed_tax_payment(
        user_id,
        "irpj",
        "480.00",
        [a.id, b.id, c.id],
        revenue_weights={a.id: Money.from_decimal("6000"), b.id: Money.from_decimal("3000"), c.id: Money.from_decimal("1000")},
        payment_date=date(2025, 8, 29),
        reference_month="2025-07",
    )
    assert parent.category == "taxes"
    assert parent.supplier == "Receita Federal"
    assert parent.description == "IRPJ - Ref: 2025-07"
    assert _line_amounts(parent) == ["288.00", "144.00", "48.00"]
    assert money_sum(line.amount for line in parent.lines) == parent.amount


def test_distributed_tax_payment_without_weights_splits_equally(db_session, user_id, properties):
    parent = DistributedPaymentService(db_session).create_distributed_tax_payment(
        user_id, "PIS", "100.00", [p.id for p in properties], payment_date=date(2025, 8, 25)
    )
    assert _line_amounts(parent) == ["33.33", "33.33", "33.34"]
    assert parent.reference_month == "2025-08"


def test_unknown_tax_type(db_session, user_id, properties):
    with pytest.raises(TaxSettingNotFoundError):
        DistributedPaymentService(db_session).create_distributed_tax_payment(
            user_id, "ISS", "10.00", [properties[0].id]
        )


def test_simple_tax_payment_is_company_level(db_session, user_id):
    tx = DistributedPaymentService(db_session).record_simple_tax_payment(
        user_id, "COFINS", "760,00", date(2025, 8, 25), reference_month="2025-07"
    )
    assert tx.property_id is None and not tx.is_composite_parent
    assert tx.amount == Money.from_decimal("760.00")
    assert tx.description == "COFINS - Ref: 2025-07"


def test_management_expense(db_session, user_id, properties):
    parent = DistributedPaymentService(db_session).create_management_expense(
        user_id, "1.000,00", [p.id for p in properties], date(2025, 7, 5), supplier="Imobiliária Sol"
    )
    assert parent.category == "management"
    assert parent.description == "Gestão - Imobiliária Sol"
    assert _line_amounts(parent) == ["333.33", "333.33", "333.34"]
    assert parent.lines[2].description == "Gestão - Imobiliária Sol - Loja (33.3%)"


def test_management_expense_with_weights(db_session, user_id, properties):
    a, b, _ = properties
    parent = DistributedPaymentService(db_session).create_management_expense(
        user_id, "300.00", [a.id, b.id], date(2025, 7, 5), supplier="Sol", weights={a.id: Decimal("2"), b.id: Decimal("1")}
    )
    assert _line_amounts(parent) == ["200.00", "100.00"]


def test_mauricio_expense_over_five_properties(db_session, user_id, make_property):
    props = [make_property(f"Prop {i}") for i in range(1, 6)]
    parent = DistributedPaymentService(db_session).create_mauricio_expense(
        user_id, "5000.00", [p.id for p in props], date(2025, 7, 10), description="Pintura"
    )
    assert parent.supplier == "Maurício"
    assert _line_amounts(parent) == ["1000.00"] * 5


def test_expense_requires_selection(db_session, user_id):
    with pytest.raises(EmptySelectionError):
        DistributedPaymentService(db_session).create_mauricio_expense(
            user_id, "10.00", [], date(2025, 7, 10), description="Nada"
        )
    assert db_session.query(LedgerTransaction).count() == 0


def test_expense_rejects_zero_total(db_session, user_id, properties):
    with pytest.raises(InvalidAmountError):
        DistributedPaymentService(db_session).create_management_expense(
            user_id, "0,00", [properties[0].id], date(2025, 7, 5), supplier="Sol"
        )


def test_preview_writes_nothing(db_session, user_id, properties):
    preview = DistributedPaymentService(db_session).preview_distribution(
        user_id, "10.00", [p.id for p in properties]
    )
    assert preview["method"] == "equal"
    assert [s["amount"].to_decimal_string() for s in preview["shares"]] == ["3.33", "3.33", "3.34"]
    assert [s["percentage"] for s in preview["shares"]] == [Decimal("33.30"), Decimal("33.30"), Decimal("33.40")]
    assert preview["shares"][0]["property_name"] == "Apto 101"
    assert db_session.query(LedgerTransaction).count() == 0
