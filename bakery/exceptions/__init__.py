"""Custom exceptions for the bakery ordering backend."""


class BakeryError(Exception):
    """Base exception for all application errors."""
    # Infrastructure failures are worth retrying, validation failures are not
    retryable = False

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['retryable'] = self.retryable
        return rv


class BusinessLogicError(BakeryError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(BakeryError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class IdentityError(BusinessLogicError):
    """Raised when an operation cannot be tied to exactly one customer identity."""
    def __init__(self, message="Either a user id or a guest session is required"):
        super().__init__(message, status_code=400)


class EmptyCartError(BusinessLogicError):
    """Raised when checking out a cart with no lines."""
    def __init__(self, message="Cannot create order with empty cart"):
        super().__init__(message, status_code=400)


class CartItemNotFoundError(NotFoundError):
    """Raised when a cart line cannot be addressed."""
    def __init__(self, message="Item not found in cart"):
        super().__init__(message)


class ProductNotFoundError(NotFoundError):
    """Raised when a product is missing from the catalog."""
    def __init__(self, product_id):
        super().__init__(f"Product not found: {product_id}", payload={'product_id': str(product_id)})
        self.product_id = product_id


class OutOfStockError(BusinessLogicError):
    """Raised when adding a product that has no stock at all."""
    def __init__(self, product_name):
        super().__init__(f"{product_name} is out of stock", status_code=409)
        self.product_name = product_name


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        message = f"Insufficient stock for {product_name}. Available: {available}, Requested: {required}"
        super().__init__(message, status_code=409)
        self.product_name = product_name
        self.required = required
        self.available = available


class InvalidPromoError(BusinessLogicError):
    """Raised when a promo code cannot be applied and soft-fail is disabled."""
    def __init__(self, code, reason):
        super().__init__(f"Promo code {code} rejected: {reason}", status_code=400)
        self.code = code
        self.reason = reason


class InvalidStateTransitionError(BusinessLogicError):
    """Raised when an order status change is not in the transition table."""
    def __init__(self, current, requested):
        super().__init__(
            f"Invalid status transition from {current} to {requested}",
            status_code=409
        )
        self.current = current
        self.requested = requested


class OrderCreationError(BakeryError):
    """Raised when the order store fails while committing; nothing was written."""
    retryable = True

    def __init__(self, message="Order could not be created, please try again"):
        super().__init__(message, status_code=500)
