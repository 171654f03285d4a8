"""
Distributed Payment Service.

Books one payment across several properties as a composite transaction:
the total is split with the distribution engine (by revenue when weights are
available, equally otherwise) and written as parent + lines in one unit.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from rentbooks import metrics
from rentbooks.core.audit import log_audit_event
from rentbooks.core.config import settings
from rentbooks.db.session import atomic
from rentbooks.models.ledger_models import LedgerTransaction, TransactionCategory, TransactionType
from rentbooks.services.distribution import distribute, shares_by_percentage
from rentbooks.services.ledger_service import LedgerService
from rentbooks.services.tax_reporting.period_utils import parse_reference_month, reference_month_of
from rentbooks.services.tax_settings_service import parse_tax_type
from rentbooks.utils.money import Money, Scalar, validate_amount

logger = logging.getLogger(__name__)

MAURICIO_SUPPLIER = "Maurício"


class DistributedPaymentService:
    """
    Build parent/line transactions from a computed distribution.

    Responsibilities:
    - Distributed tax payments (weighted by revenue when known)
    - Management and Maurício expenses (equal split by default)
    - Single company-level tax payments
    - Side-effect free previews
    """

    def __init__(self, db: Session, ledger: Optional[LedgerService] = None):
        self.db = db
        self.ledger = ledger or LedgerService(db)

    # ------------------------------------------------------------------
    # Tax payments
    # ------------------------------------------------------------------

    def create_distributed_tax_payment(
        self,
        user_id: int,
        tax_type: str,
        total_amount: Any,
        property_ids: Sequence[int],
        revenue_weights: Optional[Mapping[int, Scalar | Money]] = None,
        payment_date: Optional[date] = None,
        reference_month: Optional[str] = None,
    ) -> LedgerTransaction:
        """
        Book a tax payment split across properties.

        Args:
            user_id: Owner
            tax_type: PIS, COFINS, CSLL or IRPJ
            total_amount: Amount paid
            property_ids: Properties to charge, in the order that decides who absorbs rounding
            revenue_weights: Revenue per property; proportional split when their sum is positive
            payment_date: Transaction date (default: today)
            reference_month: Month the tax refers to (default: month of payment)

        Returns:
            Composite parent with its lines

        Raises:
            EmptySelectionError: No properties given
            InvalidAmountError: Total is not a positive amount
        """
        with atomic(self.db):
            parent = self.stage_distributed_tax_payment(
                user_id, tax_type, total_amount, property_ids, revenue_weights, payment_date, reference_month
            )
        self.db.refresh(parent)
        self._written(user_id, parent, "tax.payment.distributed", tax_type=parse_tax_type(tax_type).value)
        return parent

    def stage_distributed_tax_payment(
        self,
        user_id: int,
        tax_type: str,
        total_amount: Any,
        property_ids: Sequence[int],
        revenue_weights: Optional[Mapping[int, Scalar | Money]] = None,
        payment_date: Optional[date] = None,
        reference_month: Optional[str] = None,
    ) -> LedgerTransaction:
        """Same as ``create_distributed_tax_payment`` but leaves the commit to the caller."""
        kind = parse_tax_type(tax_type)
        paid_on = payment_date or date.today()
        month = reference_month or reference_month_of(paid_on)
        parse_reference_month(month)
        total = validate_amount(Money.parse_user_input(total_amount))

        distribution, method = distribute(total, list(property_ids), revenue_weights)
        logger.info(f"{kind.value} payment of {total} split {method}ly over {len(distribution)} properties")
        return self.ledger.stage_composite(
            user_id,
            {
                "type": TransactionType.EXPENSE.value,
                "category": TransactionCategory.TAXES.value,
                "amount": total,
                "date": paid_on,
                "description": f"{kind.value} - Ref: {month}",
                "supplier": settings.TAX_AUTHORITY_SUPPLIER,
                "reference_month": month,
            },
            list(distribution.items()),
        )

    def record_simple_tax_payment(
        self,
        user_id: int,
        tax_type: str,
        amount: Any,
        payment_date: date,
        reference_month: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LedgerTransaction:
        """Book a tax payment as a single company-level expense (no property)."""
        kind = parse_tax_type(tax_type)
        month = reference_month or reference_month_of(payment_date)
        parse_reference_month(month)
        tx = self.ledger.create_transaction(user_id, {
            "type": TransactionType.EXPENSE.value,
            "category": TransactionCategory.TAXES.value,
            "amount": amount,
            "date": payment_date,
            "description": description or f"{kind.value} - Ref: {month}",
            "supplier": settings.TAX_AUTHORITY_SUPPLIER,
            "reference_month": month,
        })
        log_audit_event(
            "tax.payment.simple",
            user_id=user_id,
            transaction_id=tx.id,
            tax_type=kind.value,
            amount=tx.amount.to_decimal_string(),
        )
        return tx

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def create_management_expense(
        self,
        user_id: int,
        total_amount: Any,
        property_ids: Sequence[int],
        payment_date: date,
        supplier: str,
        description: Optional[str] = None,
        weights: Optional[Mapping[int, Scalar | Money]] = None,
    ) -> LedgerTransaction:
        """Management fee split equally, or by explicit per-property weights."""
        return self._create_expense(
            user_id,
            total_amount,
            property_ids,
            payment_date,
            category=TransactionCategory.MANAGEMENT.value,
            supplier=supplier,
            description=description or f"Gestão - {supplier}",
            weights=weights,
        )

    def create_mauricio_expense(
        self,
        user_id: int,
        total_amount: Any,
        property_ids: Sequence[int],
        payment_date: date,
        description: str,
        supplier: str = MAURICIO_SUPPLIER,
    ) -> LedgerTransaction:
        """Services billed by one supplier for the selected properties, split equally."""
        return self._create_expense(
            user_id,
            total_amount,
            property_ids,
            payment_date,
            category=TransactionCategory.MANAGEMENT.value,
            supplier=supplier or MAURICIO_SUPPLIER,
            description=description,
        )

    def preview_distribution(
        self,
        user_id: int,
        total_amount: Any,
        property_ids: Sequence[int],
        weights: Optional[Mapping[int, Scalar | Money]] = None,
    ) -> Dict[str, Any]:
        """Shares each property would receive, without writing anything."""
        total = validate_amount(Money.parse_user_input(total_amount))
        properties = self.ledger.get_properties(user_id, list(property_ids))
        distribution, method = distribute(total, [p.id for p in properties], weights)
        percentages = shares_by_percentage(distribution, total)
        shares: List[Dict[str, Any]] = [
            {
                "property_id": prop.id,
                "property_name": prop.name,
                "amount": distribution[prop.id],
                "percentage": percentages[prop.id],
            }
            for prop in properties
        ]
        return {"total_amount": total, "method": method, "shares": shares}

    # ------------------------------------------------------------------

    def _create_expense(
        self,
        user_id: int,
        total_amount: Any,
        property_ids: Sequence[int],
        payment_date: date,
        category: str,
        supplier: str,
        description: str,
        weights: Optional[Mapping[int, Scalar | Money]] = None,
    ) -> LedgerTransaction:
        total = validate_amount(Money.parse_user_input(total_amount))
        distribution, method = distribute(total, list(property_ids), weights)
        with atomic(self.db):
            parent = self.ledger.stage_composite(
                user_id,
                {
                    "type": TransactionType.EXPENSE.value,
                    "category": category,
                    "amount": total,
                    "date": payment_date,
                    "description": description,
                    "supplier": supplier,
                    "reference_month": reference_month_of(payment_date),
                },
                list(distribution.items()),
            )
        self.db.refresh(parent)
        self._written(user_id, parent, f"ledger.expense.{category}", method=method)
        return parent

    def _written(self, user_id: int, parent: LedgerTransaction, action: str, **extra: Any) -> None:
        metrics.composite_transaction_created(parent.category)
        logger.info(f"Composite #{parent.id} ({parent.category}) of {parent.amount} with {len(parent.lines)} lines for user {user_id}")
        log_audit_event(
            action,
            user_id=user_id,
            transaction_id=parent.id,
            amount=parent.amount.to_decimal_string(),
            lines=len(parent.lines),
            **extra,
        )
