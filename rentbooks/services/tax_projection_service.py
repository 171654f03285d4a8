"""
Tax Projection Service.

Lifecycle of computed tax liabilities: ``projected`` -> ``confirmed``.

- Calculation persists one projection family per tax type and month; a
  family is a projection plus, above the installment threshold, its
  installment children.
- Recalculation replaces only families nobody touched: a family with a
  confirmed or manually edited member survives as is.
- Confirmation books the liability in the ledger and is not repeatable.

Two recalculations of the same month running at the same time are not
guarded against; callers serialize per user.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from rentbooks import metrics
from rentbooks.core.audit import log_audit_event
from rentbooks.core.config import settings
from rentbooks.core.exceptions import AlreadyConfirmedError, InvalidStateError, TaxProjectionNotFoundError
from rentbooks.db.session import atomic
from rentbooks.models.ledger_models import TransactionCategory, TransactionType
from rentbooks.models.tax_models import ProjectionStatus, TaxProjection
from rentbooks.services.distributed_payment_service import DistributedPaymentService
from rentbooks.services.ledger_service import LedgerService
from rentbooks.services.revenue_source import RevenueAggregate
from rentbooks.services.tax_calculator import TaxCalculator, TaxComputation, attribute_to_properties
from rentbooks.services.tax_reporting.period_utils import add_months, parse_reference_month
from rentbooks.services.tax_settings_service import parse_tax_type
from rentbooks.utils.money import HUNDRED, Money, validate_amount

logger = logging.getLogger(__name__)


def installment_amounts(total: Money, count: int, surcharge_percent: Decimal) -> List[Money]:
    """
    Installment schedule for a tax paid in ``count`` parts.

    The first installment is the first share of ``total.split(count)``;
    every later installment is that same share plus the surcharge, so the
    schedule sums to more than ``total`` by the accrued interest.
    """
    base = total.split(count)[0]
    later = base.multiply(1 + surcharge_percent / HUNDRED)
    return [base] + [later] * (count - 1)


class TaxProjectionService:
    """
    Create, recalculate, edit, confirm and delete tax projections.
    """

    def __init__(
        self,
        db: Session,
        calculator: Optional[TaxCalculator] = None,
        ledger: Optional[LedgerService] = None,
        payments: Optional[DistributedPaymentService] = None,
    ):
        self.db = db
        self.calculator = calculator or TaxCalculator(db)
        self.ledger = ledger or LedgerService(db)
        self.payments = payments or DistributedPaymentService(db, ledger=self.ledger)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate_tax_projections(
        self,
        user_id: int,
        reference_month: str,
        property_ids: Optional[Sequence[int]] = None,
    ) -> List[TaxProjection]:
        """
        Compute and store the projections of a month.

        Tax types that already have a projection family for the month are
        left alone, so calling this twice creates nothing the second time.

        Returns:
            Top-level projections created by this call (installments reachable via ``installments``)
        """
        with atomic(self.db):
            created = self._generate(user_id, reference_month, property_ids)
        self._created(user_id, reference_month, created)
        return created

    def recalculate_for_month(
        self,
        user_id: int,
        reference_month: str,
        property_ids: Optional[Sequence[int]] = None,
    ) -> Dict[str, Any]:
        """
        Replace the untouched projections of a month with freshly computed ones.

        Families with a confirmed or manually overridden member are kept.
        Deletion and regeneration happen in one unit.

        Returns:
            ``{"deleted": int, "preserved": [TaxProjection], "created": [TaxProjection]}``
        """
        parse_reference_month(reference_month)
        deleted = 0
        preserved: List[TaxProjection] = []
        with atomic(self.db):
            for root in self._roots_for_month(user_id, reference_month):
                if self._is_protected(root):
                    preserved.append(root)
                    continue
                deleted += 1 + len(root.installments)
                self.db.delete(root)
            self.db.flush()
            created = self._generate(user_id, reference_month, property_ids)

        metrics.tax_recalculation()
        self._created(user_id, reference_month, created)
        logger.info(
            f"Recalculated {reference_month} for user {user_id}: {deleted} deleted, "
            f"{len(preserved)} preserved, {len(created)} created"
        )
        return {"deleted": deleted, "preserved": preserved, "created": created}

    def _generate(
        self,
        user_id: int,
        reference_month: str,
        property_ids: Optional[Sequence[int]],
    ) -> List[TaxProjection]:
        computations = self.calculator.calculate(user_id, reference_month, property_ids)
        existing = {root.tax_type for root in self._roots_for_month(user_id, reference_month)}

        created: List[TaxProjection] = []
        for computation in computations:
            if computation.tax_type in existing:
                logger.debug(f"{computation.tax_type} {reference_month} already projected for user {user_id}; skipped")
                continue
            projection = self._projection_from(user_id, computation)
            if computation.qualifies_for_installments():
                self._expand_installments(projection, computation)
            self.db.add(projection)
            created.append(projection)
        self.db.flush()
        return created

    def _projection_from(self, user_id: int, computation: TaxComputation) -> TaxProjection:
        return TaxProjection(
            user_id=user_id,
            tax_type=computation.tax_type,
            reference_month=computation.reference_month,
            due_date=computation.due_date,
            base_amount=computation.base_amount,
            tax_amount=computation.tax_amount,
            additional_amount=computation.additional_amount,
            total_amount=computation.total_amount,
            status=ProjectionStatus.PROJECTED.value,
            is_installment=False,
            manual_override=False,
            description=f"{computation.tax_type} - Ref: {computation.reference_month}",
            property_distribution=computation.distribution_as_dicts(),
        )

    def _expand_installments(self, parent: TaxProjection, computation: TaxComputation) -> None:
        count = int(computation.installment_count)
        amounts = installment_amounts(parent.total_amount, count, settings.INSTALLMENT_SURCHARGE_PERCENT)
        revenue_rows = [
            RevenueAggregate(share.property_id, share.property_name, share.revenue)
            for share in computation.property_distribution
        ]
        parent.installment_total = count
        for number, amount in enumerate(amounts, start=1):
            parent.installments.append(TaxProjection(
                user_id=parent.user_id,
                tax_type=parent.tax_type,
                reference_month=parent.reference_month,
                due_date=add_months(parent.due_date, number - 1),
                base_amount=parent.base_amount,
                tax_amount=amount,
                additional_amount=Money.zero(),
                total_amount=amount,
                status=ProjectionStatus.PROJECTED.value,
                is_installment=True,
                installment_number=number,
                installment_total=count,
                manual_override=False,
                description=f"{parent.tax_type} - Ref: {parent.reference_month} - Parcela {number}/{count}",
                property_distribution=[s.to_dict() for s in attribute_to_properties(amount, revenue_rows)],
            ))

    def _created(self, user_id: int, reference_month: str, created: Sequence[TaxProjection]) -> None:
        for projection in created:
            metrics.tax_projection_created(projection.tax_type)
            logger.info(
                f"Projected {projection.tax_type} {reference_month} = {projection.total_amount} "
                f"due {projection.due_date} for user {user_id}"
                + (f" in {projection.installment_total} installments" if projection.installment_total else "")
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tax_projections(
        self,
        user_id: int,
        reference_month: Optional[str] = None,
        status: Optional[str] = None,
        tax_type: Optional[str] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
    ) -> List[TaxProjection]:
        """Projections matching the filters, by due date then tax type."""
        query = self.db.query(TaxProjection).filter(TaxProjection.user_id == user_id)
        if reference_month:
            parse_reference_month(reference_month)
            query = query.filter(TaxProjection.reference_month == reference_month)
        if status:
            query = query.filter(TaxProjection.status == ProjectionStatus(status).value)
        if tax_type:
            query = query.filter(TaxProjection.tax_type == parse_tax_type(tax_type).value)
        if due_from:
            query = query.filter(TaxProjection.due_date >= due_from)
        if due_to:
            query = query.filter(TaxProjection.due_date <= due_to)
        return query.order_by(
            TaxProjection.due_date,
            TaxProjection.tax_type,
            TaxProjection.installment_number,
            TaxProjection.id,
        ).all()

    def get_projection(self, user_id: int, projection_id: int) -> TaxProjection:
        projection = self.db.query(TaxProjection).filter(
            TaxProjection.id == projection_id,
            TaxProjection.user_id == user_id,
        ).first()
        if not projection:
            raise TaxProjectionNotFoundError(projection_id)
        return projection

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update_projection(
        self,
        user_id: int,
        projection_id: int,
        total_amount: Any = None,
        notes: Optional[str] = None,
    ) -> TaxProjection:
        """
        Manually edit a projection; it is then exempt from recalculation.

        The computed amount is kept in ``original_amount`` on the first edit.

        Raises:
            TaxProjectionNotFoundError: Unknown id or another owner's projection
            InvalidStateError: Projection is confirmed, or is split into installments and the amount changes
        """
        projection = self.get_projection(user_id, projection_id)
        if projection.is_confirmed:
            raise InvalidStateError(
                "Confirmed projections cannot be edited",
                projection_id=projection.id,
            )

        new_amount = None
        if total_amount is not None:
            new_amount = validate_amount(Money.parse_user_input(total_amount), allow_zero=True)
            if projection.has_installments:
                raise InvalidStateError(
                    "Edit the installments of a split projection, not its total",
                    projection_id=projection.id,
                )

        if not projection.manual_override:
            projection.original_amount = projection.total_amount
        projection.manual_override = True
        if new_amount is not None:
            projection.total_amount = new_amount
        if notes is not None:
            projection.notes = notes
        self.db.commit()
        self.db.refresh(projection)

        logger.info(f"Projection #{projection.id} overridden by user {user_id}: {projection.original_amount} -> {projection.total_amount}")
        log_audit_event(
            "tax.projection.override",
            user_id=user_id,
            projection_id=projection.id,
            original_amount=projection.original_amount.to_decimal_string() if projection.original_amount else None,
            total_amount=projection.total_amount.to_decimal_string(),
        )
        return projection

    def confirm_projection(self, user_id: int, projection_id: int, distribute: bool = False) -> TaxProjection:
        """
        Book a projection in the ledger and mark it confirmed, as one unit.

        Args:
            user_id: Owner
            projection_id: Projection to confirm
            distribute: Split the payment across properties by the revenue
                stored on the projection instead of booking one company-level expense

        Raises:
            TaxProjectionNotFoundError: Unknown id or another owner's projection
            AlreadyConfirmedError: Projection was confirmed before
            InvalidStateError: Projection is split into installments, or has no per-property revenue to distribute by
        """
        projection = self.get_projection(user_id, projection_id)
        if projection.is_confirmed:
            raise AlreadyConfirmedError(projection.id, projection.transaction_id)
        if projection.has_installments:
            raise InvalidStateError(
                "Confirm the installments of a split projection individually",
                projection_id=projection.id,
                installments=[child.id for child in projection.installments],
            )

        with atomic(self.db):
            if distribute:
                weights = self._revenue_weights(projection)
                transaction = self.payments.stage_distributed_tax_payment(
                    user_id,
                    projection.tax_type,
                    projection.total_amount,
                    list(weights),
                    revenue_weights=weights,
                    payment_date=projection.due_date,
                    reference_month=projection.reference_month,
                )
            else:
                transaction = self.ledger.stage_transaction(user_id, {
                    "type": TransactionType.EXPENSE.value,
                    "category": TransactionCategory.TAXES.value,
                    "amount": projection.total_amount,
                    "date": projection.due_date,
                    "description": projection.description or f"{projection.tax_type} - Ref: {projection.reference_month}",
                    "supplier": settings.TAX_AUTHORITY_SUPPLIER,
                    "reference_month": projection.reference_month,
                })
            projection.status = ProjectionStatus.CONFIRMED.value
            projection.transaction_id = transaction.id
            projection.confirmed_at = datetime.now(timezone.utc)
        self.db.refresh(projection)

        metrics.tax_projection_confirmed()
        if distribute:
            metrics.composite_transaction_created(TransactionCategory.TAXES.value)
        logger.info(f"Projection #{projection.id} confirmed as transaction #{projection.transaction_id} for user {user_id}")
        log_audit_event(
            "tax.projection.confirm",
            user_id=user_id,
            projection_id=projection.id,
            transaction_id=projection.transaction_id,
            amount=projection.total_amount.to_decimal_string(),
            distributed=distribute,
        )
        return projection

    def delete_projection(self, user_id: int, projection_id: int) -> int:
        """
        Delete a projection together with its installments.

        Returns:
            Number of projections removed

        Raises:
            TaxProjectionNotFoundError: Unknown id or another owner's projection
            InvalidStateError: The projection or one of its installments is
                confirmed, or the projection is a single installment
        """
        projection = self.get_projection(user_id, projection_id)
        if projection.parent_projection_id is not None:
            raise InvalidStateError(
                "Installments cannot be deleted on their own; delete the parent projection",
                projection_id=projection.id,
                parent_projection_id=projection.parent_projection_id,
            )
        confirmed = [p.id for p in [projection, *projection.installments] if p.is_confirmed]
        if confirmed:
            raise InvalidStateError(
                "Confirmed projections cannot be deleted",
                projection_id=projection.id,
                confirmed=confirmed,
            )

        removed = 1 + len(projection.installments)
        with atomic(self.db):
            self.db.delete(projection)
        logger.info(f"Deleted projection #{projection_id} ({removed} rows) for user {user_id}")
        log_audit_event("tax.projection.delete", user_id=user_id, projection_id=projection_id, rows=removed)
        return removed

    # ------------------------------------------------------------------

    def _roots_for_month(self, user_id: int, reference_month: str) -> List[TaxProjection]:
        return (
            self.db.query(TaxProjection)
            .filter(
                TaxProjection.user_id == user_id,
                TaxProjection.reference_month == reference_month,
                TaxProjection.parent_projection_id.is_(None),
            )
            .order_by(TaxProjection.id)
            .all()
        )

    @staticmethod
    def _is_protected(root: TaxProjection) -> bool:
        return any(p.is_confirmed or p.manual_override for p in [root, *root.installments])

    @staticmethod
    def _revenue_weights(projection: TaxProjection) -> Dict[int, Money]:
        weights = {
            int(row["property_id"]): Money.from_decimal(row["revenue"])
            for row in projection.property_distribution or []
            if row.get("property_id") is not None and Money.from_decimal(row["revenue"]).is_positive()
        }
        if not weights:
            raise InvalidStateError(
                "Projection has no per-property revenue to distribute the payment by",
                projection_id=projection.id,
            )
        return weights
