"""
Tax API Routes Module.

All routes are prefixed with /tax.

Sub-modules:
- settings: Versioned tax rule set
- projections: Projection lifecycle (calculate, edit, confirm, recalculate)
- calculations: Ad-hoc previews (flat rate, PIS/COFINS)
- payments: Simple and distributed tax payments
- reports: Yearly summary and monthly comparison
"""
from __future__ import annotations

from fastapi import APIRouter

from .settings import router as settings_router
from .projections import router as projections_router
from .calculations import router as calculations_router
from .payments import router as payments_router
from .reports import router as reports_router

# Main router with /tax prefix
router = APIRouter(prefix="/tax", tags=["tax"])

# Include all sub-routers
router.include_router(settings_router)
router.include_router(projections_router)
router.include_router(calculations_router)
router.include_router(payments_router)
router.include_router(reports_router)

__all__ = ["router"]
