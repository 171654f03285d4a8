"""
Tax Calculation Routes.

Ad-hoc previews that read revenue but persist nothing.
"""
from __future__ import annotations

from fastapi import APIRouter

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.services.tax_calculator import TaxCalculator
from .schemas import PisCofinsOut, PisCofinsRequest, TaxPreviewOut, TaxPreviewRequest

router = APIRouter()


@router.post("/preview", response_model=TaxPreviewOut)
async def generate_tax_preview(data: TaxPreviewRequest, current_user_id: CurrentUserDep, db: DbDep):
    """Flat-rate tax over one month's revenue, attributed per property."""
    preview = TaxCalculator(db).generate_tax_preview(
        current_user_id, data.reference_month, data.tax_type, data.rate, data.property_ids
    )
    preview["distribution"] = [share.to_dict() for share in preview["distribution"]]
    return preview


@router.post("/pis-cofins", response_model=PisCofinsOut)
async def calculate_pis_cofins(data: PisCofinsRequest, current_user_id: CurrentUserDep, db: DbDep):
    return TaxCalculator(db).calculate_pis_cofins(
        current_user_id, data.reference_month, data.property_ids, data.regime
    )
