"""
Tax Report Routes.

Yearly summary and monthly comparison.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.models.tax_schemas import MonthlyComparisonOut, TaxSummaryOut
from rentbooks.services.tax_reporting import TaxReportingService

router = APIRouter()


@router.get("/summary", response_model=TaxSummaryOut)
async def get_tax_summary(current_user_id: CurrentUserDep, db: DbDep, year: int = Query(..., ge=2000, le=2100)):
    return TaxReportingService(db).get_tax_summary(current_user_id, year)


@router.get("/monthly-comparison", response_model=list[MonthlyComparisonOut])
async def get_monthly_comparison(
    current_user_id: CurrentUserDep, db: DbDep, year: int = Query(..., ge=2000, le=2100)
):
    return TaxReportingService(db).get_monthly_comparison(current_user_id, year)
