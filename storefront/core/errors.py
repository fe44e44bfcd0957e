"""
Error taxonomy for the cart and checkout flows.

Services raise these; the API routers translate them into HTTP responses.
Lookup failures (stock, SKU) are not represented here because they never
propagate: the catalog client logs them and callers fall back to defaults.
"""
from typing import Optional


class StorefrontError(Exception):
    """Base class for user-visible storefront failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QuantityCeilingExceeded(StorefrontError):
    """An add would push a line item past the per-item ceiling.

    CartStore never raises this; it clamps and flags ``error_id`` instead.
    The cart view builds one from the flag to render the notice.
    """

    def __init__(self, product_id: str, title: str):
        super().__init__(f'We\'re sorry! You\'ve reached the maximum allowed stock for "{title}".')
        self.product_id = product_id


class StockError(StorefrontError):
    def __init__(self, product_id: str, stock: int, message: str):
        super().__init__(message)
        self.product_id = product_id
        self.stock = stock


class StockUnavailable(StockError):
    def __init__(self, product_id: str, title: str):
        super().__init__(product_id, 0, f'"{title}" is currently out of stock.')


class StockInsufficient(StockError):
    def __init__(self, product_id: str, title: str, stock: int):
        units = "unit" if stock == 1 else "units"
        super().__init__(product_id, stock, f'Only {stock} {units} available in stock for "{title}".')


class BillingValidationError(StorefrontError, ValueError):
    def __init__(self, field: str):
        super().__init__(f"Please fill in the required field: {field}")
        self.field = field


class PersistenceFailure(StorefrontError):
    pass


class PaymentGatewayFailure(StorefrontError):
    def __init__(self, message: str, payment_id: Optional[str] = None):
        super().__init__(message)
        self.payment_id = payment_id


class CheckoutStateError(StorefrontError):
    pass
