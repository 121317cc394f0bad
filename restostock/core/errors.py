"""Typed errors raised by the stock service.

Each class carries a machine-readable ``code``, the HTTP ``status_code`` the
API maps it to, and the ``error`` label used in the response envelope.

    StockError
    +-- ValidationError     400  VALIDATION_ERROR
    +-- NotFoundError       404  NOT_FOUND
    +-- InvalidStateError   400  INVALID_STATE
    +-- ConflictError       409  CONFLICT
    +-- StorageFailure      500  STORAGE_FAILURE
"""


class StockError(Exception):
    code: str = "STOCK_ERROR"
    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StockError):
    code = "VALIDATION_ERROR"
    status_code = 400
    error = "Validation error"


class NotFoundError(StockError):
    code = "NOT_FOUND"
    status_code = 404
    error = "Not found"

    def __init__(self, message: str = "Product not found", resource_id=None):
        super().__init__(message)
        self.resource_id = resource_id


class InvalidStateError(StockError):
    """The change would drive a product's quantity below zero."""

    code = "INVALID_STATE"
    status_code = 400
    error = "Validation error"

    def __init__(
        self,
        message: str = "Cannot reduce quantity below zero",
        product_id=None,
        current_quantity=None,
        quantity_change=None,
    ):
        super().__init__(message)
        self.product_id = product_id
        self.current_quantity = current_quantity
        self.quantity_change = quantity_change


class ConflictError(StockError):
    code = "CONFLICT"
    status_code = 409
    error = "Conflict"


class StorageFailure(StockError):
    """The backing store was unreachable, timed out or rejected the write."""

    code = "STORAGE_FAILURE"
    status_code = 500
    error = "Internal server error"
