"""
Tax Projection Routes.

Calculate, list, edit, confirm, delete and recalculate tax projections.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.models.tax_models import ProjectionStatus
from rentbooks.models.tax_schemas import RecalculationOut, TaxProjectionOut
from rentbooks.services.tax_projection_service import TaxProjectionService
from .schemas import CalculateRequest, ConfirmRequest, ProjectionUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/projections")


@router.post("/calculate", response_model=list[TaxProjectionOut])
async def calculate_tax_projections(data: CalculateRequest, current_user_id: CurrentUserDep, db: DbDep):
    """Compute and store the month's projections; already projected tax types are skipped."""
    return TaxProjectionService(db).calculate_tax_projections(
        current_user_id, data.reference_month, data.property_ids
    )


@router.post("/recalculate", response_model=RecalculationOut)
async def recalculate_for_month(data: CalculateRequest, current_user_id: CurrentUserDep, db: DbDep):
    """Regenerate untouched projections; confirmed or edited ones are preserved."""
    result = TaxProjectionService(db).recalculate_for_month(
        current_user_id, data.reference_month, data.property_ids
    )
    return {"reference_month": data.reference_month, **result}


@router.get("", response_model=list[TaxProjectionOut])
async def get_tax_projections(
    current_user_id: CurrentUserDep,
    db: DbDep,
    reference_month: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}$"),
    status: Optional[ProjectionStatus] = None,
    tax_type: Optional[str] = None,
    due_from: Optional[date] = None,
    due_to: Optional[date] = None,
):
    return TaxProjectionService(db).get_tax_projections(
        current_user_id,
        reference_month=reference_month,
        status=status.value if status else None,
        tax_type=tax_type,
        due_from=due_from,
        due_to=due_to,
    )


@router.get("/{projection_id}", response_model=TaxProjectionOut)
async def get_projection(projection_id: int, current_user_id: CurrentUserDep, db: DbDep):
    return TaxProjectionService(db).get_projection(current_user_id, projection_id)


@router.patch("/{projection_id}", response_model=TaxProjectionOut)
async def update_projection(projection_id: int, data: ProjectionUpdate, current_user_id: CurrentUserDep, db: DbDep):
    """Manual override; the projection is then exempt from recalculation."""
    return TaxProjectionService(db).update_projection(
        current_user_id, projection_id, total_amount=data.total_amount, notes=data.notes
    )


@router.post("/{projection_id}/confirm", response_model=TaxProjectionOut)
async def confirm_projection(
    projection_id: int,
    current_user_id: CurrentUserDep,
    db: DbDep,
    data: Optional[ConfirmRequest] = None,
):
    """Book the projection in the ledger; fails if it was already confirmed."""
    distribute = data.distribute if data else False
    return TaxProjectionService(db).confirm_projection(current_user_id, projection_id, distribute=distribute)


@router.delete("/{projection_id}")
async def delete_projection(projection_id: int, current_user_id: CurrentUserDep, db: DbDep):
    removed = TaxProjectionService(db).delete_projection(current_user_id, projection_id)
    return {"deleted": removed}
