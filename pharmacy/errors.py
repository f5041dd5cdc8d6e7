"""
Error taxonomy for the order fulfillment core.

Every failure a use case reports to its caller is one of the typed errors
below. The API layer maps them onto HTTP status codes; nothing in the core
retries them except ``OrderNumberConflictError``, which the order creation
use case retries internally before surfacing ``ConflictError``.
"""

from typing import Iterable, Optional


class FulfillmentError(Exception):
    """Base class for all errors raised by the fulfillment core"""

    pass


class NotFoundError(FulfillmentError):
    """Raised when a referenced request, order or stock record is absent"""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class ForbiddenError(FulfillmentError):
    """Raised when the acting user lacks ownership or role"""

    pass


class InvalidStateError(FulfillmentError):
    """Raised when an operation is not permitted in the current state"""

    pass


class InvalidOperationError(InvalidStateError):
    """Raised when an operation targets an entity in a terminal state"""

    pass


class InvalidTransitionError(FulfillmentError):
    """Raised when a status is not reachable from the current status"""

    def __init__(
        self, current: str, requested: str, allowed: Iterable[str]
    ) -> None:
        self.current = current
        self.requested = requested
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none"
        super().__init__(
            f"Invalid status transition from '{current}' to "
            f"'{requested}'. Allowed: {allowed_text}"
        )


class InsufficientStockError(FulfillmentError):
    """Raised when a stock decrement would drive quantity below zero"""

    def __init__(
        self,
        medication_id: str,
        available: int,
        requested: int,
        name: Optional[str] = None,
    ) -> None:
        self.medication_id = medication_id
        self.available = available
        self.requested = requested
        self.name = name
        label = name or medication_id
        super().__init__(
            f"Insufficient stock for '{label}'. Available: {available}, "
            f"Requested: {requested}"
        )


class PaymentFailedError(FulfillmentError):
    """Raised when a payment or refund could not be completed"""

    pass


class ConflictError(FulfillmentError):
    """Raised when a write collides with an existing order"""

    pass


class OrderNumberConflictError(Exception):
    """Raised by order stores when an order number is already taken.

    This is an internal signal: the creating use case restarts its
    transaction and only reports ``ConflictError`` once its retry budget is
    exhausted.
    """

    def __init__(self, order_number: str) -> None:
        self.order_number = order_number
        super().__init__(f"Order number '{order_number}' already allocated")


class PaymentGatewayError(Exception):
    """Raised by payment gateway clients for any failed gateway call"""

    pass
