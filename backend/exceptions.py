"""
Domain exceptions for the back-office.

Services raise these; the handlers registered in main.py turn them into
JSON responses with the matching HTTP status code.
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Optional


def _plain_amount(value) -> str:
    """Quantity without trailing zeros or exponent, e.g. 5.0000 -> 5."""
    return f"{Decimal(str(value)).normalize():f}"


class LedgerError(Exception):
    """Base exception for all domain errors."""

    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "message": self.message,
            "errors": {"code": self.code, **self.details},
        }


class NotFoundError(LedgerError):
    """A referenced record does not exist for the tenant."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} with ID {entity_id} not found",
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id},
        )


class InvalidQuantityError(LedgerError):
    """Quantity argument rejected by the inventory ledger."""

    status_code = 422


class InsufficientInventoryError(LedgerError):
    """Subtraction would drive a balance below zero."""

    status_code = 422

    def __init__(self, available, required, item_id: Optional[int] = None, warehouse_id: Optional[int] = None):
        available, required = _plain_amount(available), _plain_amount(required)
        super().__init__(
            f"Insufficient inventory. Available: {available}, Required: {required}",
            code="INSUFFICIENT_INVENTORY",
            details={
                "item_id": item_id,
                "warehouse_id": warehouse_id,
                "available": available,
                "required": required,
            },
        )


class BusinessRuleError(LedgerError):
    """The operation is valid input but breaks a business rule."""

    status_code = 422


class ConflictError(LedgerError):
    """Duplicate code, name or other unique value."""

    status_code = 409


class OperationFailedError(LedgerError):
    """Unexpected failure inside a multi-step operation; the transaction was rolled back."""

    status_code = 500

    def __init__(self, action: str, cause: Exception):
        super().__init__(
            f"Failed to {action}: {cause}. All changes have been rolled back.",
            code="OPERATION_FAILED",
        )
        self.__cause__ = cause


@contextmanager
def service_errors(logger, action: str):
    """
    Log and translate failures of a multi-step service call.

    Domain errors already carry a user-facing message: they are logged as
    warnings and re-raised untouched. Anything else is logged with its
    traceback and wrapped in ``OperationFailedError``.
    """
    try:
        yield
    except LedgerError as e:
        logger.warning(f"{action} rejected: {e.message}")
        raise
    except Exception as e:
        logger.exception(f"Failed to {action}")
        raise OperationFailedError(action, e)
