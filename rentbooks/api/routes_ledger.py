"""
Ledger Routes.

Properties, single transactions and composite (distributed) expenses.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.models.ledger_schemas import (
    CompositeDetailOut,
    CompositeTransactionOut,
    DistributionPreviewOut,
    DistributionPreviewRequest,
    ManagementExpenseCreate,
    MauricioExpenseCreate,
    PropertyCreate,
    PropertyOut,
    TransactionCreate,
    TransactionOut,
)
from rentbooks.services.distributed_payment_service import DistributedPaymentService
from rentbooks.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/properties", response_model=PropertyOut, tags=["ledger"])
async def create_property(data: PropertyCreate, current_user_id: CurrentUserDep, db: DbDep):
    return LedgerService(db).create_property(current_user_id, data.name, data.currency)


@router.get("/properties", response_model=list[PropertyOut], tags=["ledger"])
async def list_properties(current_user_id: CurrentUserDep, db: DbDep):
    return LedgerService(db).list_properties(current_user_id)


@router.post("/transactions", response_model=TransactionOut, tags=["ledger"])
async def create_transaction(data: TransactionCreate, current_user_id: CurrentUserDep, db: DbDep):
    """Record revenue or an expense; revenue triggers recalculation of the month's projections."""
    return LedgerService(db).create_transaction(current_user_id, data.model_dump())


@router.get("/transactions/{transaction_id}", response_model=CompositeTransactionOut, tags=["ledger"])
async def get_transaction(transaction_id: int, current_user_id: CurrentUserDep, db: DbDep):
    return LedgerService(db).get_transaction(current_user_id, transaction_id)


@router.delete("/transactions/{transaction_id}", tags=["ledger"])
async def delete_transaction(transaction_id: int, current_user_id: CurrentUserDep, db: DbDep):
    """Delete a transaction; a composite parent takes all its lines with it."""
    removed = LedgerService(db).delete_transaction(current_user_id, transaction_id)
    return {"deleted": removed}


@router.post("/expenses/management", response_model=CompositeTransactionOut, tags=["expenses"])
async def create_management_expense(data: ManagementExpenseCreate, current_user_id: CurrentUserDep, db: DbDep):
    return DistributedPaymentService(db).create_management_expense(
        current_user_id,
        data.total_amount,
        data.property_ids,
        data.payment_date,
        supplier=data.supplier,
        description=data.description,
        weights=data.weights,
    )


@router.post("/expenses/mauricio", response_model=CompositeTransactionOut, tags=["expenses"])
async def create_mauricio_expense(data: MauricioExpenseCreate, current_user_id: CurrentUserDep, db: DbDep):
    return DistributedPaymentService(db).create_mauricio_expense(
        current_user_id,
        data.total_amount,
        data.selected_property_ids,
        data.date,
        description=data.description,
        supplier=data.supplier,
    )


@router.post("/expenses/distributed/preview", response_model=DistributionPreviewOut, tags=["expenses"])
async def preview_distribution(data: DistributionPreviewRequest, current_user_id: CurrentUserDep, db: DbDep):
    """Shares each property would receive; nothing is written."""
    return DistributedPaymentService(db).preview_distribution(
        current_user_id, data.total_amount, data.property_ids, data.weights
    )


@router.get("/expenses/composite/{transaction_id}", response_model=CompositeDetailOut, tags=["expenses"])
async def get_composite(transaction_id: int, current_user_id: CurrentUserDep, db: DbDep):
    detail = LedgerService(db).get_composite(current_user_id, transaction_id)
    lines = [
        {**TransactionOut.model_validate(line).model_dump(), "percentage": detail["percentages"][line.id]}
        for line in detail["lines"]
    ]
    return {"parent": detail["parent"], "lines": lines, "lines_total": detail["lines_total"]}
