"""
Ledger (transaction store) service.

Plain revenue/expense entries plus composite transactions: a parent that
holds the total and one line per property. A composite is written as one
unit and deleted as one unit.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from rentbooks import metrics
from rentbooks.core.audit import log_audit_event
from rentbooks.core.config import settings
from rentbooks.core.exceptions import (
    DuplicateSelectionError,
    EmptySelectionError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    TransactionNotFoundError,
)
from rentbooks.db.session import atomic
from rentbooks.models.ledger_models import LedgerTransaction, Property, TransactionType
from rentbooks.models.tax_models import ProjectionStatus, TaxProjection
from rentbooks.services.distribution import shares_by_percentage
from rentbooks.services.tax_reporting.period_utils import is_quarter_end, quarter_bounds, reference_month_of
from rentbooks.utils.money import Money, money_sum, validate_amount

logger = logging.getLogger(__name__)

_WRITABLE_FIELDS = ("type", "category", "amount", "date", "description", "supplier", "property_id", "reference_month")


class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def create_property(self, user_id: int, name: str, currency: Optional[str] = None) -> Property:
        prop = Property(user_id=user_id, name=name.strip(), currency=(currency or settings.CURRENCY_CODE).upper())
        self.db.add(prop)
        self.db.commit()
        self.db.refresh(prop)
        return prop

    def list_properties(self, user_id: int) -> List[Property]:
        return self.db.query(Property).filter(Property.user_id == user_id).order_by(Property.id).all()

    def get_properties(self, user_id: int, property_ids: Sequence[int]) -> List[Property]:
        """
        Load properties in the order given.

        Raises:
            EmptySelectionError: No ids given
            NotFoundError: An id is unknown or belongs to another owner
        """
        if not property_ids:
            raise EmptySelectionError()
        if len(set(property_ids)) != len(property_ids):
            duplicate = next(pid for pid in property_ids if list(property_ids).count(pid) > 1)
            raise DuplicateSelectionError(duplicate)
        found = {
            p.id: p
            for p in self.db.query(Property).filter(Property.user_id == user_id, Property.id.in_(list(property_ids)))
        }
        for property_id in property_ids:
            if property_id not in found:
                raise NotFoundError("Property", property_id, code="LED002")
        return [found[property_id] for property_id in property_ids]

    # ------------------------------------------------------------------
    # Single transactions
    # ------------------------------------------------------------------

    def create_transaction(self, user_id: int, fields: Dict[str, Any]) -> LedgerTransaction:
        """
        Write one revenue or expense entry.

        Args:
            user_id: Owner
            fields: type, category, amount, date and optionally description,
                supplier, property_id, reference_month

        Returns:
            The stored transaction

        Raises:
            InvalidAmountError: Amount missing, zero, negative or out of range
            NotFoundError: property_id unknown
        """
        with atomic(self.db):
            tx = self.stage_transaction(user_id, fields)
        self.db.refresh(tx)
        logger.info(f"Recorded {tx.type} #{tx.id} of {tx.amount} for user {user_id}")

        if tx.type == TransactionType.REVENUE.value:
            self._revenue_changed(user_id, tx.date)
        return tx

    def stage_transaction(self, user_id: int, fields: Dict[str, Any]) -> LedgerTransaction:
        """Add a transaction to the session and flush it, without committing."""
        values = self._clean_fields(user_id, fields)
        tx = LedgerTransaction(user_id=user_id, is_composite_parent=False, **values)
        self.db.add(tx)
        self.db.flush()
        return tx

    def record_revenue(
        self,
        user_id: int,
        amount: Any,
        on: date,
        property_id: Optional[int] = None,
        description: Optional[str] = None,
        category: str = "rent",
    ) -> LedgerTransaction:
        return self.create_transaction(user_id, {
            "type": TransactionType.REVENUE.value,
            "category": category,
            "amount": amount,
            "date": on,
            "property_id": property_id,
            "description": description,
        })

    def get_transaction(self, user_id: int, transaction_id: int) -> LedgerTransaction:
        tx = self.db.query(LedgerTransaction).filter(
            LedgerTransaction.id == transaction_id,
            LedgerTransaction.user_id == user_id,
        ).first()
        if not tx:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def delete_transaction(self, user_id: int, transaction_id: int) -> int:
        """
        Delete a transaction; a composite parent takes all its lines with it.

        Returns:
            Number of rows removed

        Raises:
            TransactionNotFoundError: Unknown id
            InvalidStateError: The row is a composite line, or books a confirmed tax projection
        """
        tx = self.get_transaction(user_id, transaction_id)
        if tx.parent_transaction_id is not None:
            raise InvalidStateError(
                "Composite lines cannot be deleted on their own; delete the parent transaction",
                transaction_id=tx.id,
                parent_transaction_id=tx.parent_transaction_id,
            )
        booked = self.db.query(TaxProjection).filter(
            TaxProjection.user_id == user_id,
            TaxProjection.transaction_id == tx.id,
            TaxProjection.status == ProjectionStatus.CONFIRMED.value,
        ).first()
        if booked:
            raise InvalidStateError(
                "Transaction books a confirmed tax projection and cannot be deleted",
                transaction_id=tx.id,
                projection_id=booked.id,
            )

        removed = 1 + len(tx.lines)
        was_revenue = tx.type == TransactionType.REVENUE.value
        tx_date = tx.date
        with atomic(self.db):
            self.db.delete(tx)
        logger.info(f"Deleted transaction #{transaction_id} ({removed} rows) for user {user_id}")
        log_audit_event("ledger.transaction.delete", user_id=user_id, transaction_id=transaction_id, rows=removed)

        if was_revenue:
            self._revenue_changed(user_id, tx_date)
        return removed

    # ------------------------------------------------------------------
    # Composite transactions
    # ------------------------------------------------------------------

    def create_composite(
        self,
        user_id: int,
        parent_fields: Dict[str, Any],
        lines: Sequence[Tuple[int, Money]],
    ) -> LedgerTransaction:
        """
        Write a parent transaction and one line per property as one unit.

        Args:
            user_id: Owner
            parent_fields: Fields shared by parent and lines (type, category,
                amount, date, description, supplier, reference_month)
            lines: (property_id, amount) pairs in display order

        Returns:
            The parent, with ``lines`` loaded

        Raises:
            EmptySelectionError: No lines
            InvalidAmountError: Lines do not sum to the parent amount
        """
        with atomic(self.db):
            parent = self.stage_composite(user_id, parent_fields, lines)
        self.db.refresh(parent)

        metrics.composite_transaction_created(parent.category)
        logger.info(f"Composite #{parent.id} of {parent.amount} written with {len(parent.lines)} lines for user {user_id}")
        log_audit_event(
            "ledger.composite.create",
            user_id=user_id,
            transaction_id=parent.id,
            amount=parent.amount.to_decimal_string(),
            lines=len(parent.lines),
        )
        if parent.type == TransactionType.REVENUE.value:
            self._revenue_changed(user_id, parent.date)
        return parent

    def stage_composite(
        self,
        user_id: int,
        parent_fields: Dict[str, Any],
        lines: Sequence[Tuple[int, Money]],
    ) -> LedgerTransaction:
        """Add a composite (parent + lines) to the session and flush it, without committing."""
        if not lines:
            raise EmptySelectionError()
        values = self._clean_fields(user_id, {**parent_fields, "property_id": None})
        line_total = money_sum(amount for _, amount in lines)
        if line_total != values["amount"]:
            raise InvalidAmountError(
                line_total.to_decimal_string(),
                f"lines must sum to the parent amount {values['amount'].to_decimal_string()}",
            )
        properties = self.get_properties(user_id, [property_id for property_id, _ in lines])
        percentages = shares_by_percentage({p.id: amount for p, (_, amount) in zip(properties, lines)}, values["amount"])
        base_description = values.get("description") or values["category"]

        parent = LedgerTransaction(user_id=user_id, is_composite_parent=True, **values)
        for prop, (_, amount) in zip(properties, lines):
            parent.lines.append(LedgerTransaction(
                user_id=user_id,
                is_composite_parent=False,
                **{
                    **values,
                    "property_id": prop.id,
                    "amount": amount,
                    "description": f"{base_description} - {prop.name} ({percentages[prop.id]:.1f}%)",
                },
            ))
        self.db.add(parent)
        self.db.flush()
        return parent

    def get_composite(self, user_id: int, parent_id: int) -> Dict[str, Any]:
        """Parent, its lines and each line's share of the total."""
        parent = self.get_transaction(user_id, parent_id)
        if not parent.is_composite_parent:
            raise InvalidStateError("Transaction is not a composite parent", transaction_id=parent_id)
        percentages = shares_by_percentage({line.id: line.amount for line in parent.lines}, parent.amount)
        return {
            "parent": parent,
            "lines": list(parent.lines),
            "percentages": percentages,
            "lines_total": money_sum(line.amount for line in parent.lines),
        }

    # ------------------------------------------------------------------

    def _clean_fields(self, user_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: fields.get(key) for key in _WRITABLE_FIELDS}
        if values["type"] not in {t.value for t in TransactionType}:
            raise InvalidStateError(f"Unknown transaction type: {values['type']}", type=values["type"])
        if not values["category"]:
            raise InvalidStateError("Transaction category is required")
        if not isinstance(values["date"], date):
            raise InvalidStateError("Transaction date is required")
        values["amount"] = validate_amount(Money.parse_user_input(values["amount"]))
        if values["property_id"] is not None:
            self.get_properties(user_id, [values["property_id"]])
        return values

    def _revenue_changed(self, user_id: int, on: date) -> None:
        if not settings.RECALCULATE_ON_REVENUE_CHANGE:
            return
        # Late import: the projection service books confirmations through this service
        from rentbooks.services.tax_projection_service import TaxProjectionService

        projections = TaxProjectionService(self.db)
        projections.recalculate_for_month(user_id, reference_month_of(on))
        if not is_quarter_end(on.month):
            # Quarterly taxes are projected in the quarter-end month over the whole quarter
            _, quarter_end = quarter_bounds(on.year, on.month)
            projections.recalculate_for_month(user_id, reference_month_of(quarter_end))
