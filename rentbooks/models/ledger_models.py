from __future__ import annotations

import datetime as dt
import enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentbooks.core.config import settings
from rentbooks.db.base_class import Base
from rentbooks.utils.money import Money


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TransactionType(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class TransactionCategory(str, enum.Enum):
    """Categories the tax engine itself writes or reads."""
    RENT = "rent"
    TAXES = "taxes"
    MANAGEMENT = "management"
    MAINTENANCE = "maintenance"
    OTHER = "other"


class Property(Base):
    """A rental property; the cost center revenue and expenses are attributed to."""
    __tablename__ = "property"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(120))
    # Display/tagging only, all arithmetic is single-currency
    currency: Mapped[str] = mapped_column(String(3), default=lambda: settings.CURRENCY_CODE)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class LedgerTransaction(Base):
    """A revenue or expense entry.

    Composite payments are an aggregate: one parent row
    (``is_composite_parent=True``, no property, holds the total) owning its
    ``lines``, one per property. Lines carry ``parent_transaction_id`` and are
    removed together with the parent.
    """
    __tablename__ = "ledger_transaction"
    __table_args__ = (
        Index("ix_ledger_transaction_user_date", "user_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, index=True)
    property_id: Mapped[int | None] = mapped_column(
        ForeignKey("property.id", ondelete="SET NULL"), nullable=True, index=True
    )
    parent_transaction_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_transaction.id", ondelete="CASCADE"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(String(50), index=True)
    amount: Mapped[Money]
    date: Mapped[dt.date] = mapped_column(Date)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reference_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    is_composite_parent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    property: Mapped[Property | None] = relationship("Property", lazy="joined")
    lines: Mapped[list[LedgerTransaction]] = relationship(
        "LedgerTransaction",
        back_populates="parent",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LedgerTransaction.id",
    )
    parent: Mapped[LedgerTransaction | None] = relationship(
        "LedgerTransaction", back_populates="lines", remote_side="LedgerTransaction.id"
    )
