"""
Tax Calculator.

Applies the tax rule set active for a reference month to the revenue of
that month (or quarter) and returns the resulting liabilities. Nothing is
persisted here; see ``TaxProjectionService`` for that.

Presumed-profit taxes (CSLL, IRPJ) are computed with the combined
effective rate (``rate * base_rate / 100``) and rounded once, so that e.g.
CSLL 9% on a 32% base is exactly ``revenue * 2.88%`` to the cent.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from rentbooks import metrics
from rentbooks.models.tax_models import PaymentFrequency, TaxSetting
from rentbooks.services.distribution import WeightedEntity, distribute_proportionally
from rentbooks.services.revenue_source import (
    LedgerRevenueSource,
    RevenueAggregate,
    RevenueSource,
    total_revenue,
)
from rentbooks.services.tax_reporting.period_utils import (
    is_quarter_end,
    month_bounds,
    monthly_due_date,
    parse_reference_month,
    quarter_bounds,
    quarterly_due_date,
)
from rentbooks.services.tax_settings_service import TaxSettingsService, parse_tax_type
from rentbooks.utils.money import HUNDRED, Money, Scalar, to_scalar

logger = logging.getLogger(__name__)

# PIS/COFINS rates per regime (percent)
PIS_COFINS_RATES: Dict[str, Dict[str, Decimal]] = {
    "cumulative": {"pis": Decimal("0.65"), "cofins": Decimal("3.00")},
    "non-cumulative": {"pis": Decimal("1.65"), "cofins": Decimal("7.60")},
}


@dataclass(frozen=True)
class PropertyTaxShare:
    """Informational attribution of a tax amount to one property."""
    property_id: Optional[int]
    property_name: str
    revenue: Money
    tax_amount: Money

    def to_dict(self) -> Dict[str, Any]:
        return {
            "property_id": self.property_id,
            "property_name": self.property_name,
            "revenue": self.revenue.to_decimal_string(),
            "tax_amount": self.tax_amount.to_decimal_string(),
        }


@dataclass
class TaxComputation:
    """One tax liability for one reference month."""
    tax_type: str
    reference_month: str
    due_date: date
    payment_frequency: str
    base_amount: Money
    rate: Decimal
    tax_amount: Money
    additional_amount: Money
    total_amount: Money
    base_rate: Optional[Decimal] = None
    presumed_profit: Optional[Money] = None
    additional_rate: Optional[Decimal] = None
    setting_id: Optional[int] = None
    installment_allowed: bool = False
    installment_threshold: Optional[Money] = None
    installment_count: Optional[int] = None
    property_distribution: List[PropertyTaxShare] = field(default_factory=list)

    @property
    def effective_rate(self) -> Decimal:
        if self.base_rate is None:
            return self.rate
        return self.rate * self.base_rate / HUNDRED

    def qualifies_for_installments(self) -> bool:
        return bool(
            self.installment_allowed
            and self.installment_count
            and self.installment_count > 1
            and self.installment_threshold is not None
            and self.total_amount.is_greater_than(self.installment_threshold)
        )

    def distribution_as_dicts(self) -> List[Dict[str, Any]]:
        return [share.to_dict() for share in self.property_distribution]


def attribute_to_properties(amount: Money, aggregates: Sequence[RevenueAggregate]) -> List[PropertyTaxShare]:
    """
    Split ``amount`` across properties in proportion to their revenue.

    Properties with no positive revenue get a zero share. Shares sum to
    ``amount`` exactly.
    """
    weighted = [row for row in aggregates if row.revenue.is_positive()]
    if not weighted:
        return []
    shares = distribute_proportionally(
        amount, [WeightedEntity.of(row.property_id, row.revenue) for row in weighted]
    )
    return [
        PropertyTaxShare(
            property_id=row.property_id,
            property_name=row.property_name,
            revenue=row.revenue,
            tax_amount=shares.get(row.property_id, Money.zero()) if row.revenue.is_positive() else Money.zero(),
        )
        for row in aggregates
    ]


class TaxCalculator:
    """
    Compute tax liabilities from aggregated revenue.

    Responsibilities:
    - Resolve the settings active for the reference month
    - Apply flat and presumed-profit rates, plus the additional bracket
    - Compute due dates and per-property attribution
    """

    def __init__(
        self,
        db: Session,
        revenue_source: Optional[RevenueSource] = None,
        settings_service: Optional[TaxSettingsService] = None,
    ):
        self.db = db
        self.revenue_source = revenue_source or LedgerRevenueSource(db)
        self.settings_service = settings_service or TaxSettingsService(db)

    def calculate(
        self,
        user_id: int,
        reference_month: str,
        property_ids: Optional[Sequence[int]] = None,
    ) -> List[TaxComputation]:
        """
        Compute every tax due for a reference month.

        Quarterly taxes are only computed on the last month of a quarter, on
        the revenue of the whole quarter. A month without revenue, or a tax
        whose amount rounds to zero, yields no computation.

        Args:
            user_id: Owner
            reference_month: Month in YYYY-MM format
            property_ids: Optional property filter

        Returns:
            One computation per tax type due for the month
        """
        year, month = parse_reference_month(reference_month)
        month_start, month_end = month_bounds(year, month)

        with metrics.time_tax_calculation():
            active = self._latest_per_type(
                self.settings_service.get_active_settings(user_id, reference_date=month_end)
            )
            if not active:
                logger.warning(f"No active tax settings for user {user_id} in {reference_month}; nothing computed")
                return []

            monthly_rows = self.revenue_source.get_revenue_by_property_and_period(
                user_id, month_start, month_end, property_ids
            )
            quarterly_rows: Optional[List[RevenueAggregate]] = None

            results: List[TaxComputation] = []
            for setting in active:
                if setting.payment_frequency == PaymentFrequency.QUARTERLY.value:
                    if not is_quarter_end(month):
                        continue
                    if quarterly_rows is None:
                        quarter_start, quarter_end = quarter_bounds(year, month)
                        quarterly_rows = self.revenue_source.get_revenue_by_property_and_period(
                            user_id, quarter_start, quarter_end, property_ids
                        )
                    rows = quarterly_rows
                    due = quarterly_due_date(year, month)
                else:
                    rows = monthly_rows
                    due = monthly_due_date(year, month, setting.due_day)

                computation = self._compute(setting, reference_month, rows, due)
                if computation is not None:
                    results.append(computation)

        if not results:
            logger.warning(f"No taxes due for user {user_id} in {reference_month} (no revenue or zero amounts)")
        else:
            logger.info(f"Computed {len(results)} taxes for user {user_id} in {reference_month}")
        return results

    def _compute(
        self,
        setting: TaxSetting,
        reference_month: str,
        rows: Sequence[RevenueAggregate],
        due: date,
    ) -> Optional[TaxComputation]:
        revenue = total_revenue(rows)
        if not revenue.is_positive():
            return None

        rate = to_scalar(setting.rate)
        base_rate = to_scalar(setting.base_rate) if setting.base_rate is not None else None
        additional_rate = to_scalar(setting.additional_rate) if setting.additional_rate is not None else None

        presumed_profit = None
        if base_rate is not None:
            presumed_profit = revenue.percentage(base_rate)
            tax_amount = revenue.percentage(rate * base_rate / HUNDRED)
        else:
            tax_amount = revenue.percentage(rate)

        additional_amount = Money.zero()
        threshold = setting.additional_threshold
        if threshold is not None and additional_rate is not None and revenue.is_greater_than(threshold):
            excess = revenue.subtract(threshold)
            if base_rate is not None:
                additional_amount = excess.percentage(additional_rate * base_rate / HUNDRED)
            else:
                additional_amount = excess.percentage(additional_rate)

        total = tax_amount.add(additional_amount)
        if total.is_zero():
            return None

        return TaxComputation(
            tax_type=setting.tax_type,
            reference_month=reference_month,
            due_date=due,
            payment_frequency=setting.payment_frequency,
            base_amount=revenue,
            rate=rate,
            base_rate=base_rate,
            presumed_profit=presumed_profit,
            additional_rate=additional_rate,
            tax_amount=tax_amount,
            additional_amount=additional_amount,
            total_amount=total,
            setting_id=setting.id,
            installment_allowed=bool(setting.installment_allowed),
            installment_threshold=setting.installment_threshold,
            installment_count=setting.installment_count,
            property_distribution=attribute_to_properties(total, rows),
        )

    @staticmethod
    def _latest_per_type(active: Sequence[TaxSetting]) -> List[TaxSetting]:
        # Input is most recent first
        seen: Dict[str, TaxSetting] = {}
        for setting in active:
            seen.setdefault(setting.tax_type, setting)
        return list(seen.values())

    # ------------------------------------------------------------------
    # Ad-hoc previews (nothing persisted, settings not consulted)
    # ------------------------------------------------------------------

    def generate_tax_preview(
        self,
        user_id: int,
        reference_month: str,
        tax_type: str,
        rate: Scalar,
        property_ids: Optional[Sequence[int]] = None,
    ) -> Dict[str, Any]:
        """Flat-rate preview of a tax over one month's revenue, with per-property breakdown."""
        kind = parse_tax_type(tax_type)
        percent = to_scalar(rate)
        rows = self._month_revenue(user_id, reference_month, property_ids)
        revenue = total_revenue(rows)
        tax_amount = revenue.percentage(percent) if revenue.is_positive() else Money.zero()
        return {
            "reference_month": reference_month,
            "tax_type": kind.value,
            "rate": percent,
            "total_revenue": revenue,
            "tax_amount": tax_amount,
            "distribution": attribute_to_properties(tax_amount, rows),
        }

    def calculate_pis_cofins(
        self,
        user_id: int,
        reference_month: str,
        property_ids: Optional[Sequence[int]] = None,
        regime: str = "cumulative",
    ) -> Dict[str, Any]:
        """
        PIS and COFINS for a month under the cumulative or non-cumulative regime.

        Returns:
            Totals plus per-property detail; per-property amounts sum to the totals
        """
        if regime not in PIS_COFINS_RATES:
            raise ValueError(f"Unknown PIS/COFINS regime: {regime}")
        rates = PIS_COFINS_RATES[regime]
        rows = self._month_revenue(user_id, reference_month, property_ids)
        revenue = total_revenue(rows)
        positive = revenue.is_positive()
        pis_amount = revenue.percentage(rates["pis"]) if positive else Money.zero()
        cofins_amount = revenue.percentage(rates["cofins"]) if positive else Money.zero()

        pis_shares = {s.property_id: s.tax_amount for s in attribute_to_properties(pis_amount, rows)}
        cofins_shares = {s.property_id: s.tax_amount for s in attribute_to_properties(cofins_amount, rows)}
        details = []
        for row in rows:
            pis = pis_shares.get(row.property_id, Money.zero())
            cofins = cofins_shares.get(row.property_id, Money.zero())
            details.append({
                "property_id": row.property_id,
                "property_name": row.property_name,
                "revenue": row.revenue,
                "pis": pis,
                "cofins": cofins,
                "total": pis.add(cofins),
            })

        return {
            "reference_month": reference_month,
            "regime": regime,
            "total_revenue": revenue,
            "pis_rate": rates["pis"],
            "cofins_rate": rates["cofins"],
            "pis_amount": pis_amount,
            "cofins_amount": cofins_amount,
            "total_tax": pis_amount.add(cofins_amount),
            "property_details": details,
        }

    def _month_revenue(
        self, user_id: int, reference_month: str, property_ids: Optional[Sequence[int]]
    ) -> List[RevenueAggregate]:
        year, month = parse_reference_month(reference_month)
        start, end = month_bounds(year, month)
        return self.revenue_source.get_revenue_by_property_and_period(user_id, start, end, property_ids)
