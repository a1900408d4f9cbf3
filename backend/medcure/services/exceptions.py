"""
Service-level exceptions.

Raised by the batch ledger and mapped to HTTP errors by the API layer.
"""


class MedcureError(Exception):
    """Base exception for inventory core errors."""

    def __init__(self, message=None, code=None, details=None):
        """Initialize the exception.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message or "An error occurred in the inventory core"
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self):
        """Convert the exception to a dictionary."""
        error_dict = {
            'error': self.__class__.__name__,
            'message': self.message,
        }

        if self.code:
            error_dict['code'] = self.code

        if self.details:
            error_dict['details'] = self.details

        return error_dict


class InvalidQuantityError(MedcureError):
    """Requested quantity is zero or negative. Caller bug."""

    def __init__(self, quantity, message=None):
        message = message or f"Quantity must be greater than 0, got {quantity}"
        super().__init__(message, "INVALID_QUANTITY", {'quantity': quantity})


class InsufficientStockError(MedcureError):
    """Active batches cannot cover the requested quantity. Nothing was mutated."""

    def __init__(self, product_id, requested, available):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        message = f"Insufficient stock for product {product_id}. Available: {available}, Requested: {requested}"
        super().__init__(message, "INSUFFICIENT_STOCK", {
            'product_id': product_id,
            'requested': requested,
            'available': available,
        })


class ProductNotFoundError(MedcureError):
    """Product does not exist."""

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(
            f"Product with ID {product_id} does not exist",
            "PRODUCT_NOT_FOUND",
            {'product_id': product_id}
        )
