"""
Tax rule set and tax projection models (presumed-profit regime).

Models for:
- Effective-dated tax settings (append-only version sequence per tax type)
- Tax projections and their installment children
"""
from enum import Enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Date, Text, Index
from sqlalchemy.orm import relationship

from rentbooks.db.base_class import Base
from rentbooks.db.types import MoneyType, Rate
from rentbooks.models import ledger_models  # noqa: F401  (ledger_transaction FK target)
from rentbooks.utils.money import Money


class TaxType(str, Enum):
    """Federal taxes owed on rental revenue"""
    PIS = "PIS"        # Flat rate on revenue
    COFINS = "COFINS"  # Flat rate on revenue
    CSLL = "CSLL"      # Presumed profit
    IRPJ = "IRPJ"      # Presumed profit + additional bracket


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class ProjectionStatus(str, Enum):
    PROJECTED = "projected"
    CONFIRMED = "confirmed"


class TaxSetting(Base):
    """
    One version of the rule set for a tax type.

    Versions are never updated in place: a change closes the open row
    (``end_date`` set) and inserts a new one. A version is active on day ``d``
    when ``effective_date <= d < end_date`` (``end_date`` null means open).
    """
    __tablename__ = "tax_setting"
    __table_args__ = (
        Index("ix_tax_setting_user_type_effective", "user_id", "tax_type", "effective_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    tax_type = Column(String(10), nullable=False)

    # Percentages (1.65 means 1.65%)
    rate = Column(Rate, nullable=False)
    base_rate = Column(Rate, nullable=True)          # Presumed profit base
    additional_rate = Column(Rate, nullable=True)    # IRPJ additional
    additional_threshold = Column(MoneyType, nullable=True)

    payment_frequency = Column(String(20), nullable=False, default=PaymentFrequency.MONTHLY.value)
    due_day = Column(Integer, nullable=False, default=25)

    installment_allowed = Column(Boolean, nullable=False, default=False)
    installment_threshold = Column(MoneyType, nullable=True)
    installment_count = Column(Integer, nullable=True)

    effective_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_open(self) -> bool:
        return self.end_date is None

    @property
    def is_presumed_profit(self) -> bool:
        return self.base_rate is not None

    def __repr__(self):
        return f"<TaxSetting {self.tax_type} {self.rate}% from {self.effective_date} to {self.end_date}>"


class TaxProjection(Base):
    """
    A computed, not yet paid tax liability for one reference month.

    A projection whose amount exceeds the installment threshold becomes the
    parent of ``installment_total`` children. The parent keeps the
    undiscounted total; installments 2..n carry the surcharge.
    """
    __tablename__ = "tax_projection"
    __table_args__ = (
        Index("ix_tax_projection_user_month", "user_id", "reference_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    tax_type = Column(String(10), nullable=False, index=True)
    reference_month = Column(String(7), nullable=False)  # YYYY-MM
    due_date = Column(Date, nullable=False, index=True)

    # Revenue the tax was computed on
    base_amount = Column(MoneyType, nullable=False, default=Money.zero)
    tax_amount = Column(MoneyType, nullable=False, default=Money.zero)
    additional_amount = Column(MoneyType, nullable=False, default=Money.zero)
    total_amount = Column(MoneyType, nullable=False)

    status = Column(String(20), nullable=False, default=ProjectionStatus.PROJECTED.value, index=True)

    # Installments
    is_installment = Column(Boolean, nullable=False, default=False)
    installment_number = Column(Integer, nullable=True)
    installment_total = Column(Integer, nullable=True)
    parent_projection_id = Column(
        Integer, ForeignKey("tax_projection.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # Manual edits
    manual_override = Column(Boolean, nullable=False, default=False)
    original_amount = Column(MoneyType, nullable=True)
    notes = Column(Text, nullable=True)
    description = Column(String(200), nullable=True)

    # [{property_id, property_name, revenue, tax_amount}] with decimal strings
    property_distribution = Column(JSON, nullable=True)

    transaction_id = Column(
        Integer, ForeignKey("ledger_transaction.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    confirmed_at = Column(DateTime, nullable=True)

    # Relationships
    installments = relationship(
        "TaxProjection",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TaxProjection.installment_number",
    )
    parent = relationship("TaxProjection", back_populates="installments", remote_side=[id])
    transaction = relationship("LedgerTransaction")

    @property
    def is_confirmed(self) -> bool:
        return self.status == ProjectionStatus.CONFIRMED.value

    @property
    def has_installments(self) -> bool:
        return bool(self.installment_total) and self.parent_projection_id is None

    @property
    def is_leaf(self) -> bool:
        """True for installments and for projections that were not split."""
        return self.parent_projection_id is not None or not self.installment_total

    def __repr__(self):
        return f"<TaxProjection {self.tax_type} {self.reference_month} {self.total_amount} {self.status}>"
