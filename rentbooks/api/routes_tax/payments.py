"""
Tax Payment Routes.

Single company-level payments and payments distributed across properties.
"""
from __future__ import annotations

from fastapi import APIRouter

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.models.ledger_schemas import CompositeTransactionOut, TransactionOut
from rentbooks.services.distributed_payment_service import DistributedPaymentService
from .schemas import DistributedTaxPaymentRequest, SimpleTaxPaymentRequest

router = APIRouter(prefix="/payments")


@router.post("/simple", response_model=TransactionOut)
async def record_simple_tax_payment(data: SimpleTaxPaymentRequest, current_user_id: CurrentUserDep, db: DbDep):
    return DistributedPaymentService(db).record_simple_tax_payment(
        current_user_id,
        data.tax_type,
        data.amount,
        data.payment_date,
        reference_month=data.reference_month,
        description=data.description,
    )


@router.post("/distributed", response_model=CompositeTransactionOut)
async def create_distributed_tax_payment(
    data: DistributedTaxPaymentRequest, current_user_id: CurrentUserDep, db: DbDep
):
    """One parent transaction plus one line per property, written together."""
    return DistributedPaymentService(db).create_distributed_tax_payment(
        current_user_id,
        data.tax_type,
        data.total_amount,
        data.property_ids,
        revenue_weights=data.revenue_weights,
        payment_date=data.payment_date,
        reference_month=data.reference_month,
    )
