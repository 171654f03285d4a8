"""
Shared Pydantic schemas for tax-related routes.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field

from rentbooks.models.schema_fields import MoneyStr, RateStr
from rentbooks.models.tax_schemas import PropertyShareOut

ReferenceMonth = Annotated[str, Field(pattern=r"^\d{4}-\d{2}$", description="Reference month, YYYY-MM")]


class TaxSettingsUpdate(BaseModel):
    """New values for a tax type; omitted fields keep their current value."""

    rate: Optional[Decimal] = Field(None, ge=0)
    base_rate: Optional[Decimal] = Field(None, ge=0)
    additional_rate: Optional[Decimal] = Field(None, ge=0)
    additional_threshold: Optional[str] = None
    payment_frequency: Optional[Literal["monthly", "quarterly"]] = None
    due_day: Optional[int] = Field(None, ge=1, le=31)
    installment_allowed: Optional[bool] = None
    installment_threshold: Optional[str] = None
    installment_count: Optional[int] = Field(None, ge=2, le=12)
    effective_date: Optional[date] = Field(None, description="Defaults to today")


class CalculateRequest(BaseModel):
    reference_month: ReferenceMonth
    property_ids: Optional[list[int]] = None


class ProjectionUpdate(BaseModel):
    total_amount: Optional[str] = Field(None, description="Decimal string, e.g. 1234.56 or 1.234,56")
    notes: Optional[str] = Field(None, max_length=5000)


class ConfirmRequest(BaseModel):
    distribute: bool = Field(False, description="Split the payment across properties by revenue")


class TaxPreviewRequest(BaseModel):
    reference_month: ReferenceMonth
    tax_type: str
    rate: Decimal = Field(..., ge=0)
    property_ids: Optional[list[int]] = None


class TaxPreviewOut(BaseModel):
    reference_month: str
    tax_type: str
    rate: RateStr
    total_revenue: MoneyStr
    tax_amount: MoneyStr
    distribution: list[PropertyShareOut]


class PisCofinsRequest(BaseModel):
    reference_month: ReferenceMonth
    property_ids: Optional[list[int]] = None
    regime: Literal["cumulative", "non-cumulative"] = "cumulative"


class PisCofinsDetailOut(BaseModel):
    property_id: Optional[int] = None
    property_name: str
    revenue: MoneyStr
    pis: MoneyStr
    cofins: MoneyStr
    total: MoneyStr


class PisCofinsOut(BaseModel):
    reference_month: str
    regime: str
    total_revenue: MoneyStr
    pis_rate: RateStr
    cofins_rate: RateStr
    pis_amount: MoneyStr
    cofins_amount: MoneyStr
    total_tax: MoneyStr
    property_details: list[PisCofinsDetailOut]


class SimpleTaxPaymentRequest(BaseModel):
    tax_type: str
    amount: str
    payment_date: date
    reference_month: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")
    description: Optional[str] = Field(None, max_length=500)


class DistributedTaxPaymentRequest(BaseModel):
    tax_type: str
    total_amount: str
    property_ids: list[int]
    revenue_weights: Optional[dict[int, Decimal]] = None
    payment_date: date
    reference_month: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")
