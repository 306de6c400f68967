"""Storefront error types.

Remote failures are caught where the remote call is made, recorded as
state on the owning service, and re-raised as one of these for the caller.
"""

from typing import Iterable, Optional

class StorefrontError(Exception):
    """Base class for storefront errors."""

    retryable = False

class CatalogUnavailableError(StorefrontError):
    """Catalog is still loading or the last fetch failed."""

    retryable = True

    def __init__(self, message: str, state: str):
        self.state = state
        super().__init__(message)

class ProductNotFoundError(StorefrontError):
    """Product id is not present in the cached catalog."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")

class InvalidSelectionError(StorefrontError):
    """Size or color was not chosen, or is not offered by the product."""

    def __init__(self, field: str, value: Optional[str]):
        self.field = field
        self.value = value
        if value is None:
            super().__init__(f"No {field} selected")
        else:
            super().__init__(f"Invalid {field}: {value}")

class OutOfStockError(StorefrontError):
    """Requested quantity is more than the product has in stock."""

    def __init__(self, product_id: str, stock: int, requested: int):
        self.product_id = product_id
        self.stock = stock
        self.requested = requested
        if stock <= 0:
            super().__init__("Out of stock")
        else:
            super().__init__(f"Only {stock} left in stock")

class FieldValidationError(StorefrontError):
    """Required form fields are missing or invalid. No remote call was made."""

    def __init__(self, message: str, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(message)

class CheckoutError(StorefrontError):
    pass

class EmptyCartError(CheckoutError):
    """Checkout was reached with nothing in the cart."""

    def __init__(self):
        super().__init__("Your cart is empty")

class CheckoutValidationError(FieldValidationError, CheckoutError):
    def __init__(self, fields: Iterable[str]):
        super().__init__("Please fill in all required fields", fields)

class OrderAlreadyPlacedError(CheckoutError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} has already been placed")

class CheckoutInProgressError(CheckoutError):
    def __init__(self):
        super().__init__("Order submission already in progress")

class OrderSubmissionError(CheckoutError):
    """The order store rejected or failed the create. Cart and form are kept."""

    retryable = True

class CustomOrderValidationError(FieldValidationError):
    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        super().__init__(message or "Please complete the custom order form", fields)

class CustomOrderSubmissionError(StorefrontError):
    retryable = True

class UploadError(StorefrontError):
    """Upload rejected locally (size, type) or failed in transit (transport)."""

    SIZE = "size"
    TYPE = "type"
    TRANSPORT = "transport"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        self.retryable = reason == self.TRANSPORT
        super().__init__(message)
