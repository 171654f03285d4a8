"""
Tax Rule Set Service.

Effective-dated tax settings per user and tax type. Settings are an
append-only sequence: changing a rate closes the open version and inserts a
new one, so past computations can always be reproduced with the rules that
applied at the time.

Writers must be serialized per (user, tax type); two concurrent updates can
both see the same open version and leave two open rows behind.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from rentbooks.core.audit import log_audit_event
from rentbooks.core.config import settings
from rentbooks.core.exceptions import ConflictError, InvalidAmountError, InvalidStateError, TaxSettingNotFoundError
from rentbooks.db.session import atomic
from rentbooks.models.tax_models import PaymentFrequency, TaxSetting, TaxType
from rentbooks.utils.money import Money, to_scalar

logger = logging.getLogger(__name__)


# Presumed-profit regime defaults
DEFAULT_TAX_SETTINGS: Dict[TaxType, Dict[str, Any]] = {
    TaxType.PIS: {
        "rate": Decimal("1.65"),
        "payment_frequency": PaymentFrequency.MONTHLY.value,
        "due_day": 25,
        "installment_allowed": False,
    },
    TaxType.COFINS: {
        "rate": Decimal("7.60"),
        "payment_frequency": PaymentFrequency.MONTHLY.value,
        "due_day": 25,
        "installment_allowed": False,
    },
    TaxType.CSLL: {
        "rate": Decimal("9.00"),
        "base_rate": Decimal("32.00"),
        "payment_frequency": PaymentFrequency.MONTHLY.value,
        "due_day": 30,
        "installment_allowed": True,
        "installment_threshold": Money.from_decimal("1000.00"),
        "installment_count": 3,
    },
    TaxType.IRPJ: {
        "rate": Decimal("15.00"),
        "base_rate": Decimal("32.00"),
        "additional_rate": Decimal("10.00"),
        "additional_threshold": Money.from_decimal("20000.00"),
        "payment_frequency": PaymentFrequency.MONTHLY.value,
        "due_day": 30,
        "installment_allowed": True,
        "installment_threshold": Money.from_decimal("1000.00"),
        "installment_count": 3,
    },
}

_RATE_FIELDS = ("rate", "base_rate", "additional_rate")
_MONEY_FIELDS = ("additional_threshold", "installment_threshold")
_UPDATABLE_FIELDS = _RATE_FIELDS + _MONEY_FIELDS + (
    "payment_frequency",
    "due_day",
    "installment_allowed",
    "installment_count",
)


def parse_tax_type(value: Any) -> TaxType:
    try:
        return TaxType(str(value).upper())
    except ValueError as exc:
        raise TaxSettingNotFoundError(str(value)) from exc


class TaxSettingsService:
    """
    Versioned tax rule set.

    Responsibilities:
    - Resolve the settings active on a given day
    - Version settings on change (close + insert, never update in place)
    - Provision the default rule set for a new account
    """

    def __init__(self, db: Session):
        self.db = db

    def get_active_settings(
        self,
        user_id: int,
        tax_type: Optional[str] = None,
        reference_date: Optional[date] = None,
    ) -> List[TaxSetting]:
        """
        Settings whose ``[effective_date, end_date)`` interval contains the date.

        Args:
            user_id: Owner
            tax_type: Restrict to one tax type
            reference_date: Day to resolve for (default: today)

        Returns:
            Matching settings, most recent first
        """
        day = reference_date or date.today()
        query = self.db.query(TaxSetting).filter(
            TaxSetting.user_id == user_id,
            TaxSetting.effective_date <= day,
            or_(TaxSetting.end_date.is_(None), TaxSetting.end_date > day),
        )
        if tax_type is not None:
            query = query.filter(TaxSetting.tax_type == parse_tax_type(tax_type).value)
        return query.order_by(TaxSetting.effective_date.desc(), TaxSetting.id.desc()).all()

    def get_open_setting(self, user_id: int, tax_type: str) -> Optional[TaxSetting]:
        """The current (open-ended) version for a tax type, if any."""
        return (
            self.db.query(TaxSetting)
            .filter(
                TaxSetting.user_id == user_id,
                TaxSetting.tax_type == parse_tax_type(tax_type).value,
                TaxSetting.end_date.is_(None),
            )
            .order_by(TaxSetting.effective_date.desc(), TaxSetting.id.desc())
            .first()
        )

    def get_history(self, user_id: int, tax_type: str) -> List[TaxSetting]:
        return (
            self.db.query(TaxSetting)
            .filter(
                TaxSetting.user_id == user_id,
                TaxSetting.tax_type == parse_tax_type(tax_type).value,
            )
            .order_by(TaxSetting.effective_date.asc(), TaxSetting.id.asc())
            .all()
        )

    def update_settings(
        self,
        user_id: int,
        tax_type: str,
        new_values: Dict[str, Any],
        effective_date: Optional[date] = None,
    ) -> TaxSetting:
        """
        Create a new version of a tax setting.

        The open version is closed at ``effective_date`` (default: today) and
        a new version starting that day is inserted with the old values
        overlaid by ``new_values``.

        Raises:
            ConflictError: No open version exists (defaults not provisioned)
            InvalidStateError: ``effective_date`` precedes the open version
            InvalidAmountError: A rate or amount is malformed or negative
        """
        kind = parse_tax_type(tax_type)
        current = self.get_open_setting(user_id, kind.value)
        if current is None:
            raise ConflictError(kind.value)

        starts = effective_date or date.today()
        if starts < current.effective_date:
            raise InvalidStateError(
                f"New {kind.value} settings cannot start before the current version "
                f"({current.effective_date.isoformat()})",
                tax_type=kind.value,
                effective_date=starts.isoformat(),
            )

        values = {field: getattr(current, field) for field in _UPDATABLE_FIELDS}
        values.update(self._clean_values(new_values))
        self._validate(values)

        with atomic(self.db):
            current.end_date = starts
            version = TaxSetting(
                user_id=user_id,
                tax_type=kind.value,
                effective_date=starts,
                end_date=None,
                **values,
            )
            self.db.add(version)
        self.db.refresh(version)

        logger.info(f"Versioned {kind.value} settings for user {user_id}: #{current.id} closed, #{version.id} effective {starts}")
        log_audit_event(
            "tax_settings.update",
            user_id=user_id,
            tax_type=kind.value,
            closed_setting_id=current.id,
            setting_id=version.id,
            changed_fields=sorted(new_values),
        )
        return version

    def initialize_defaults(self, user_id: int, effective_date: Optional[date] = None) -> List[TaxSetting]:
        """
        Provision the default rule set; only tax types without an open version get one.

        Returns:
            Settings created by this call (empty when already provisioned)
        """
        starts = effective_date or settings.DEFAULT_TAX_EFFECTIVE_DATE
        created: List[TaxSetting] = []
        with atomic(self.db):
            for kind, defaults in DEFAULT_TAX_SETTINGS.items():
                if self.get_open_setting(user_id, kind.value) is not None:
                    continue
                setting = TaxSetting(user_id=user_id, tax_type=kind.value, effective_date=starts, **defaults)
                self.db.add(setting)
                created.append(setting)
            self.db.flush()

        if created:
            logger.info(f"Provisioned default tax settings for user {user_id}: {[s.tax_type for s in created]}")
            log_audit_event("tax_settings.initialize", user_id=user_id, tax_types=[s.tax_type for s in created])
        return created

    # ------------------------------------------------------------------

    @staticmethod
    def _clean_values(new_values: Dict[str, Any]) -> Dict[str, Any]:
        cleaned: Dict[str, Any] = {}
        for field, value in new_values.items():
            if field not in _UPDATABLE_FIELDS:
                continue
            if value is None:
                cleaned[field] = None
            elif field in _RATE_FIELDS:
                cleaned[field] = to_scalar(value)
            elif field in _MONEY_FIELDS:
                cleaned[field] = Money.parse_user_input(value)
            elif field == "payment_frequency":
                try:
                    cleaned[field] = PaymentFrequency(str(value).lower()).value
                except ValueError as exc:
                    raise InvalidStateError(f"Unknown payment frequency: {value}", payment_frequency=value) from exc
            elif field == "installment_allowed":
                cleaned[field] = bool(value)
            else:
                cleaned[field] = int(value)
        return cleaned

    @staticmethod
    def _validate(values: Dict[str, Any]) -> None:
        if values.get("rate") is None:
            raise InvalidAmountError(None, "rate is required")
        for field in _RATE_FIELDS:
            if values.get(field) is not None and values[field] < 0:
                raise InvalidAmountError(str(values[field]), f"{field} cannot be negative")
        for field in _MONEY_FIELDS:
            if values.get(field) is not None and values[field].is_negative():
                raise InvalidAmountError(values[field].to_decimal_string(), f"{field} cannot be negative")
        if not 1 <= int(values.get("due_day") or 0) <= 31:
            raise InvalidAmountError(values.get("due_day"), "due_day must be between 1 and 31")
        if values.get("installment_allowed"):
            count = values.get("installment_count")
            if not count or count < 2:
                raise InvalidAmountError(count, "installment_count must be at least 2 when installments are allowed")
            if values.get("installment_threshold") is None:
                raise InvalidAmountError(None, "installment_threshold is required when installments are allowed")
