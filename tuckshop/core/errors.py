"""
Domain exceptions raised by the service layer.

The API layer does not translate these by hand: each carries the error code
and HTTP status that the registered exception handler renders.
"""
from typing import Any, List, Optional


class TuckshopError(Exception):
    code = "tuckshop_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class OrderValidationError(TuckshopError):
    """Malformed or incomplete order input, rejected before any store access."""
    code = "validation_error"
    status_code = 400


class OrderNotFound(TuckshopError):
    code = "not-found"
    status_code = 404


class OrderForbidden(TuckshopError):
    """The caller exists but may not act on this order (or resource)."""
    code = "forbidden"
    status_code = 403


class InvalidTransition(TuckshopError):
    code = "invalid-transition"
    status_code = 409


class StockUnavailable(TuckshopError):
    """
    One or more order lines could not be deducted.

    `details` holds the structured stock errors so callers can render them
    line by line; the message is the joined human-readable summary.
    """
    code = "stock_unavailable"
    status_code = 400

    def __init__(self, message: str, errors: List[Any]):
        super().__init__(message, details=[e.model_dump(mode="json", exclude_none=True) for e in errors])
        self.errors = errors


class OrderProcessingError(TuckshopError):
    """Store unavailable or contention beyond the retry budget. Safe to retry."""
    code = "processing_error"
    status_code = 503


class InventoryItemNotFound(TuckshopError):
    code = "not-found"
    status_code = 404


class InventoryValidationError(TuckshopError):
    code = "validation_error"
    status_code = 400
