"""
Revenue aggregation over the ledger.

The tax calculator only depends on the ``RevenueSource`` protocol; the
ledger-backed implementation below is what the application wires in.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from rentbooks.models.ledger_models import LedgerTransaction, Property, TransactionType
from rentbooks.utils.money import Money, money_sum

logger = logging.getLogger(__name__)

COMPANY_LEVEL_NAME = "Company"


@dataclass(frozen=True)
class RevenueAggregate:
    """Revenue of one property (or company-level revenue when ``property_id`` is None)."""
    property_id: Optional[int]
    property_name: str
    revenue: Money


def property_order_key(property_id: Optional[int]):
    """Property id ascending, company-level (None) last."""
    return (property_id is None, property_id or 0)


def total_revenue(aggregates: Sequence[RevenueAggregate]) -> Money:
    return money_sum(a.revenue for a in aggregates)


class RevenueSource(Protocol):
    def get_revenue_by_property_and_period(
        self,
        user_id: int,
        start_date: date,
        end_date: date,
        property_ids: Optional[Sequence[int]] = None,
    ) -> List[RevenueAggregate]:
        ...


class LedgerRevenueSource:
    """Aggregates revenue transactions, ignoring composite parents (their lines carry the amounts)."""

    def __init__(self, db: Session):
        self.db = db

    def _revenue_query(self, user_id: int, start_date: date, end_date: date):
        return (
            self.db.query(LedgerTransaction)
            .filter(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.type == TransactionType.REVENUE.value,
                LedgerTransaction.is_composite_parent.is_(False),
                LedgerTransaction.date >= start_date,
                LedgerTransaction.date <= end_date,
            )
        )

    def get_revenue_by_property_and_period(
        self,
        user_id: int,
        start_date: date,
        end_date: date,
        property_ids: Optional[Sequence[int]] = None,
    ) -> List[RevenueAggregate]:
        """
        Revenue per property for an inclusive date range.

        Args:
            user_id: Owner
            start_date: First day (inclusive)
            end_date: Last day (inclusive)
            property_ids: Optional property filter; company-level revenue is
                excluded when a filter is given

        Returns:
            One aggregate per property, ordered by property id with
            company-level revenue last
        """
        query = (
            self.db.query(
                LedgerTransaction.property_id,
                Property.name,
                func.sum(LedgerTransaction.amount),
            )
            .outerjoin(Property, Property.id == LedgerTransaction.property_id)
            .filter(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.type == TransactionType.REVENUE.value,
                LedgerTransaction.is_composite_parent.is_(False),
                LedgerTransaction.date >= start_date,
                LedgerTransaction.date <= end_date,
            )
            .group_by(LedgerTransaction.property_id, Property.name)
        )
        if property_ids:
            query = query.filter(LedgerTransaction.property_id.in_(list(property_ids)))

        rows = [
            RevenueAggregate(
                property_id=property_id,
                property_name=name or COMPANY_LEVEL_NAME,
                revenue=revenue if isinstance(revenue, Money) else Money.from_cents(int(revenue or 0)),
            )
            for property_id, name, revenue in query.all()
        ]
        rows.sort(key=lambda row: property_order_key(row.property_id))
        logger.debug(f"Revenue {start_date}..{end_date} for user {user_id}: {len(rows)} properties")
        return rows

    def get_monthly_revenue(self, user_id: int, year: int) -> Dict[int, Money]:
        """Total revenue per calendar month (1..12) of ``year``."""
        totals: Dict[int, Money] = {month: Money.zero() for month in range(1, 13)}
        for tx in self._revenue_query(user_id, date(year, 1, 1), date(year, 12, 31)):
            totals[tx.date.month] = totals[tx.date.month].add(tx.amount)
        return totals
