"""
Pydantic schemas for ledger transactions, properties and composite expenses.

Amounts are accepted as strings in either local ("1.234,56") or plain
("1234.56") format and returned as plain decimal strings.
"""
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from rentbooks.models.schema_fields import MoneyStr, RateStr

TransactionTypeLiteral = Literal["revenue", "expense"]


class PropertyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class PropertyOut(BaseModel):
    id: int
    name: str
    currency: str

    model_config = {"from_attributes": True}


class TransactionCreate(BaseModel):
    type: TransactionTypeLiteral
    category: str = Field(..., min_length=1, max_length=50)
    amount: str = Field(..., description="Decimal string, e.g. 1234.56 or 1.234,56")
    date: date
    description: Optional[str] = Field(None, max_length=500)
    supplier: Optional[str] = Field(None, max_length=200)
    property_id: Optional[int] = None
    reference_month: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}$")


class TransactionOut(BaseModel):
    id: int
    type: str
    category: str
    amount: MoneyStr
    date: date
    description: Optional[str] = None
    supplier: Optional[str] = None
    property_id: Optional[int] = None
    reference_month: Optional[str] = None
    is_composite_parent: bool
    parent_transaction_id: Optional[int] = None

    model_config = {"from_attributes": True}


class CompositeTransactionOut(TransactionOut):
    lines: list[TransactionOut] = Field(default_factory=list)


class CompositeLineOut(TransactionOut):
    percentage: RateStr


class CompositeDetailOut(BaseModel):
    parent: TransactionOut
    lines: list[CompositeLineOut]
    lines_total: MoneyStr


class ManagementExpenseCreate(BaseModel):
    total_amount: str
    payment_date: date
    supplier: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    property_ids: list[int]
    # Optional explicit weights per property id; equal split when omitted
    weights: Optional[dict[int, Decimal]] = None


class MauricioExpenseCreate(BaseModel):
    total_amount: str
    date: date
    description: str = Field(..., min_length=1, max_length=1000)
    selected_property_ids: list[int]
    supplier: str = "Maurício"


class DistributionPreviewRequest(BaseModel):
    total_amount: str
    property_ids: list[int]
    weights: Optional[dict[int, Decimal]] = None


class DistributionShareOut(BaseModel):
    property_id: int
    property_name: str
    amount: MoneyStr
    percentage: RateStr


class DistributionPreviewOut(BaseModel):
    total_amount: MoneyStr
    method: str
    shares: list[DistributionShareOut]
