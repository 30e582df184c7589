# cartstore/domain/errors.py
"""
Cart domain errors.

Each error carries the HTTP status and machine-readable code the API layer
answers with, so routers never compare error messages.
"""


class CartError(Exception):
    status_code = 500
    code = "CART_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CartValidationError(CartError, ValueError):
    """Bad input, rejected before the store is touched."""

    status_code = 400
    code = "VALIDATION_ERROR"


class CartNotFoundError(CartError, LookupError):
    status_code = 404
    code = "CART_NOT_FOUND"


class CartItemNotFoundError(CartNotFoundError):
    code = "ITEM_NOT_FOUND"


class CartConflictError(CartError):
    status_code = 409
    code = "CONFLICT"


class InsufficientStockError(CartConflictError):
    code = "INSUFFICIENT_STOCK"


class InvalidStatusTransitionError(CartConflictError):
    code = "INVALID_STATUS_TRANSITION"


class CartStoreError(CartError):
    """Redis unreachable or returned an error. Not retried here."""

    code = "STORE_ERROR"


class CartDecodeError(CartStoreError):
    """Stored payload could not be turned back into a Cart."""

    code = "CORRUPTED_CART"


class ProductNotFoundError(CartError, LookupError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"


class OwnerRequiredError(CartValidationError):
    code = "USER_ID_OR_SESSION_REQUIRED"
