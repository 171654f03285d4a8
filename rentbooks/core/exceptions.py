"""Custom exception hierarchy for RentBooks.

Every validation failure raised by the tax and distribution engine derives
from ``RentBooksException`` so the API layer can render it verbatim, while
infrastructure failures derive from ``InfrastructureError`` and map to a "try again
later" response instead of a "fix your input" one.

Error codes follow pattern: [CATEGORY][NUMBER]
- MNY: Money / amount errors (001-099)
- DST: Distribution errors (001-099)
- LED: Ledger transaction errors (001-099)
- TAX: Tax settings / projection errors (300-399)
- SYS: System errors (400-499)
"""

from __future__ import annotations

from typing import Any


class RentBooksException(Exception):
    """Base exception for all RentBooks application errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with user-facing message and metadata.

        Args:
            message: Human-readable error message
            code: Unique error code (e.g., "TAX302")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


# ============================================================================
# MONEY ERRORS (MNY001-099)
# ============================================================================

class MoneyError(RentBooksException):
    """Base class for monetary value errors."""
    pass


class InvalidAmountError(MoneyError):
    """Monetary input could not be parsed or is outside the accepted range."""

    def __init__(self, value: Any = None, reason: str | None = None):
        message = f"Invalid monetary amount: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message=message,
            code="MNY001",
            status_code=422,
            details={"value": str(value), "reason": reason},
        )


class DivisionByZeroError(MoneyError):
    """Division by zero or a degenerate (zero-sum) set of weights."""

    def __init__(self, operation: str = "divide"):
        super().__init__(
            message=f"Division by zero in {operation}",
            code="MNY002",
            status_code=422,
            details={"operation": operation},
        )


# ============================================================================
# DISTRIBUTION ERRORS (DST001-099)
# ============================================================================

class DistributionError(RentBooksException):
    """Base class for distribution / cost-center split errors."""
    pass


class EmptySelectionError(DistributionError):
    """A distribution was requested without any target entity."""

    def __init__(self, what: str = "properties"):
        super().__init__(
            message=f"Select at least one of the {what} to distribute the amount across",
            code="DST001",
            status_code=422,
            details={"selection": what},
        )


class DuplicateSelectionError(DistributionError):
    """The same entity appears more than once in a distribution."""

    def __init__(self, entity_id: Any):
        super().__init__(
            message=f"Entity {entity_id!r} was selected more than once",
            code="DST002",
            status_code=422,
            details={"entity_id": entity_id},
        )


# ============================================================================
# TAX ERRORS (TAX300-399)
# ============================================================================

class TaxError(RentBooksException):
    """Base class for tax settings and projection errors."""
    pass


class NotFoundError(TaxError):
    """Requested record does not exist or belongs to another owner."""

    def __init__(self, resource: str, identifier: Any = None, code: str = "TAX300"):
        message = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(
            message=message,
            code=code,
            status_code=404,
            details={"resource": resource, "id": identifier} if identifier is not None else {"resource": resource},
        )


class TaxProjectionNotFoundError(NotFoundError):
    def __init__(self, projection_id: int):
        super().__init__("Tax projection", projection_id, code="TAX300")


class TaxSettingNotFoundError(NotFoundError):
    def __init__(self, tax_type: str):
        super().__init__("Tax setting", tax_type, code="TAX301")


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: int):
        super().__init__("Transaction", transaction_id, code="LED001")


class AlreadyConfirmedError(TaxError):
    """Projection was already confirmed and booked in the ledger."""

    def __init__(self, projection_id: int, transaction_id: int | None = None):
        super().__init__(
            message=f"Tax projection {projection_id} is already confirmed",
            code="TAX302",
            status_code=409,
            details={"projection_id": projection_id, "transaction_id": transaction_id},
        )


class InvalidStateError(TaxError):
    """Operation is not allowed in the record's current state."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            code="TAX303",
            status_code=409,
            details=details,
        )


class ConflictError(TaxError):
    """Settings update attempted without an open (current) version."""

    def __init__(self, tax_type: str):
        super().__init__(
            message=(
                f"No open tax setting exists for {tax_type}. "
                "Initialize the default tax settings before updating them."
            ),
            code="TAX304",
            status_code=409,
            details={"tax_type": tax_type},
        )


class InvalidReferenceMonthError(TaxError):
    """Reference month is not in YYYY-MM format."""

    def __init__(self, value: str):
        super().__init__(
            message=f"Invalid reference month: {value!r}. Expected format YYYY-MM",
            code="TAX305",
            status_code=422,
            details={"reference_month": value},
        )


# ============================================================================
# SYSTEM ERRORS (SYS400-499)
# ============================================================================

class InfrastructureError(RentBooksException):
    """Base class for system/infrastructure errors."""
    pass


class PersistenceUnavailableError(InfrastructureError):
    """The database could not complete the operation."""

    def __init__(self, reason: str | None = None):
        super().__init__(
            message="The ledger database is currently unavailable. Please try again later.",
            code="SYS400",
            status_code=503,
            details={"reason": reason} if reason else {},
        )
