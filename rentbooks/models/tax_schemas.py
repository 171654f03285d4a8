"""
Pydantic schemas for tax settings and tax projection responses.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from rentbooks.models.schema_fields import MoneyStr, RateStr


class TaxSettingOut(BaseModel):
    id: int
    tax_type: str
    rate: RateStr
    base_rate: Optional[RateStr] = None
    additional_rate: Optional[RateStr] = None
    additional_threshold: Optional[MoneyStr] = None
    payment_frequency: str
    due_day: int
    installment_allowed: bool
    installment_threshold: Optional[MoneyStr] = None
    installment_count: Optional[int] = None
    effective_date: date
    end_date: Optional[date] = None

    model_config = {"from_attributes": True}


class PropertyShareOut(BaseModel):
    """Informational per-property attribution of a tax amount."""
    property_id: Optional[int] = None
    property_name: str
    revenue: MoneyStr
    tax_amount: MoneyStr


class TaxProjectionOut(BaseModel):
    id: int
    tax_type: str
    reference_month: str
    due_date: date
    base_amount: MoneyStr
    tax_amount: MoneyStr
    additional_amount: MoneyStr
    total_amount: MoneyStr
    status: str
    is_installment: bool
    installment_number: Optional[int] = None
    installment_total: Optional[int] = None
    parent_projection_id: Optional[int] = None
    manual_override: bool
    original_amount: Optional[MoneyStr] = None
    notes: Optional[str] = None
    description: Optional[str] = None
    property_distribution: Optional[list[PropertyShareOut]] = None
    transaction_id: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    installments: list[TaxProjectionOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class RecalculationOut(BaseModel):
    reference_month: str
    deleted: int
    preserved: list[TaxProjectionOut]
    created: list[TaxProjectionOut]


class MonthlyAmountOut(BaseModel):
    month: str
    amount: MoneyStr


class TaxSummaryOut(BaseModel):
    year: int
    total_tax_paid: MoneyStr
    total_revenue: MoneyStr
    effective_rate: RateStr
    monthly_breakdown: list[MonthlyAmountOut]
    average_monthly_tax: MoneyStr
    projected_outstanding: MoneyStr


class MonthlyComparisonOut(BaseModel):
    month: str
    revenue: MoneyStr
    projected_tax: MoneyStr
    confirmed_tax: MoneyStr
    effective_rate: RateStr
