"""
Tax Settings Routes.

Versioned tax rule set: provisioning, active settings and history.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter

from rentbooks.api.dependencies import CurrentUserDep, DbDep
from rentbooks.models.tax_schemas import TaxSettingOut
from rentbooks.services.tax_settings_service import TaxSettingsService
from .schemas import TaxSettingsUpdate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/settings/initialize", response_model=list[TaxSettingOut])
async def initialize_tax_settings(current_user_id: CurrentUserDep, db: DbDep):
    """Provision the default rule set; returns only the settings created by this call."""
    return TaxSettingsService(db).initialize_defaults(current_user_id)


@router.get("/settings", response_model=list[TaxSettingOut])
async def get_active_settings(
    current_user_id: CurrentUserDep,
    db: DbDep,
    tax_type: Optional[str] = None,
    reference_date: Optional[date] = None,
):
    """Settings in force on ``reference_date`` (default: today)."""
    return TaxSettingsService(db).get_active_settings(current_user_id, tax_type, reference_date)


@router.get("/settings/{tax_type}/history", response_model=list[TaxSettingOut])
async def get_settings_history(tax_type: str, current_user_id: CurrentUserDep, db: DbDep):
    return TaxSettingsService(db).get_history(current_user_id, tax_type)


@router.put("/settings/{tax_type}", response_model=TaxSettingOut)
async def update_settings(tax_type: str, data: TaxSettingsUpdate, current_user_id: CurrentUserDep, db: DbDep):
    """Close the current version and start a new one."""
    values = data.model_dump(exclude_unset=True, exclude={"effective_date"})
    return TaxSettingsService(db).update_settings(current_user_id, tax_type, values, data.effective_date)
