"""Tax Reporting Service.

Yearly tax summary and the month-by-month comparison of revenue against
projected and confirmed tax.
"""
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from rentbooks.models.ledger_models import LedgerTransaction, TransactionCategory, TransactionType
from rentbooks.models.tax_models import ProjectionStatus, TaxProjection
from rentbooks.services.revenue_source import LedgerRevenueSource
from rentbooks.utils.money import HUNDRED, Money, money_sum

from .period_utils import format_reference_month

logger = logging.getLogger(__name__)


def effective_rate(tax: Money, revenue: Money) -> Decimal:
    """Tax as a percentage of revenue, two places; zero without revenue."""
    if not revenue.is_positive():
        return Decimal("0.00")
    return (tax.to_decimal() * HUNDRED / revenue.to_decimal()).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TaxReportingService:
    """Service for yearly tax reporting.

    Responsibilities:
    - Tax actually paid (ledger) versus revenue for a year
    - Projected liabilities still outstanding
    - Monthly comparison of revenue, projected and confirmed tax
    """

    def __init__(self, db: Session):
        self.db = db
        self.revenue_source = LedgerRevenueSource(db)

    def _tax_payments(self, user_id: int, year: int) -> List[LedgerTransaction]:
        # Composite lines are excluded, their parent already carries the total
        return (
            self.db.query(LedgerTransaction)
            .filter(
                LedgerTransaction.user_id == user_id,
                LedgerTransaction.type == TransactionType.EXPENSE.value,
                LedgerTransaction.category == TransactionCategory.TAXES.value,
                LedgerTransaction.parent_transaction_id.is_(None),
                LedgerTransaction.date >= date(year, 1, 1),
                LedgerTransaction.date <= date(year, 12, 31),
            )
            .order_by(LedgerTransaction.date, LedgerTransaction.id)
            .all()
        )

    def _leaf_projections(self, user_id: int, year: int) -> List[TaxProjection]:
        projections = (
            self.db.query(TaxProjection)
            .filter(
                TaxProjection.user_id == user_id,
                TaxProjection.reference_month >= format_reference_month(year, 1),
                TaxProjection.reference_month <= format_reference_month(year, 12),
            )
            .all()
        )
        return [p for p in projections if p.is_leaf]

    def get_tax_summary(self, user_id: int, year: int) -> Dict[str, Any]:
        """Summarize the taxes paid in a year.

        Args:
            user_id: Owner
            year: Calendar year

        Returns:
            Totals, effective rate, paid amount per "MM/YYYY" month with
            payments, average per such month and projected tax outstanding
        """
        paid_by_month: Dict[str, Money] = {}
        for tx in self._tax_payments(user_id, year):
            key = tx.date.strftime("%m/%Y")
            paid_by_month[key] = paid_by_month.get(key, Money.zero()).add(tx.amount)

        total_tax_paid = money_sum(paid_by_month.values())
        total_revenue = money_sum(self.revenue_source.get_monthly_revenue(user_id, year).values())
        outstanding = money_sum(
            p.total_amount
            for p in self._leaf_projections(user_id, year)
            if p.status == ProjectionStatus.PROJECTED.value
        )

        return {
            "year": year,
            "total_tax_paid": total_tax_paid,
            "total_revenue": total_revenue,
            "effective_rate": effective_rate(total_tax_paid, total_revenue),
            "monthly_breakdown": [{"month": month, "amount": amount} for month, amount in paid_by_month.items()],
            "average_monthly_tax": total_tax_paid.divide(len(paid_by_month)) if paid_by_month else Money.zero(),
            "projected_outstanding": outstanding,
        }

    def get_monthly_comparison(self, user_id: int, year: int) -> List[Dict[str, Any]]:
        """One row per month of ``year``: revenue, projected and confirmed tax, effective rate."""
        revenue = self.revenue_source.get_monthly_revenue(user_id, year)
        projected: Dict[str, Money] = {}
        confirmed: Dict[str, Money] = {}
        for projection in self._leaf_projections(user_id, year):
            bucket = confirmed if projection.is_confirmed else projected
            bucket[projection.reference_month] = bucket.get(projection.reference_month, Money.zero()).add(
                projection.total_amount
            )

        rows = []
        for month in range(1, 13):
            key = format_reference_month(year, month)
            month_projected = projected.get(key, Money.zero())
            month_confirmed = confirmed.get(key, Money.zero())
            rows.append({
                "month": key,
                "revenue": revenue[month],
                "projected_tax": month_projected,
                "confirmed_tax": month_confirmed,
                "effective_rate": effective_rate(month_projected.add(month_confirmed), revenue[month]),
            })
        return rows
