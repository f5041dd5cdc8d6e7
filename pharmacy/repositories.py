"""
Repository interfaces defined as Protocols.

All store operations in this module follow these principles:

- **Explicit Unit of Work**: Every store call receives the ``UnitOfWork``
  handle of the operation it belongs to. The handle is opened once by the
  use case (``async with uow_factory() as uow``) and commits on a clean exit
  or rolls back when an exception escapes, so the atomicity of each use case
  is visible in its code instead of being implied by a framework session.

- **Guarded Writes**: Stock adjustments are conditional writes enforced by
  the storage primitive itself. Application code never reads a quantity,
  checks it and writes it back.

- **Domain Objects**: Methods accept and return domain objects or
  primitives, never framework-specific types.

- **External Side Effects**: The payment gateway and notification
  interfaces are not transactional. Their calls are never rolled back with
  a unit of work; compensations are the caller's responsibility.

Architectural Notes:

- These are pure interfaces with no implementation details
- Use case classes depend on these protocols, not concrete implementations
- Implementations live under ``pharmacy.repos`` (memory, postgresql,
  minio, temporal)
"""

from decimal import Decimal
from types import TracebackType
from typing import Dict, List, Optional, Protocol, Type, runtime_checkable

from pharmacy.domain import (
    MedicationRequest,
    NotificationEvent,
    Order,
    OrderStatus,
    PaymentIntent,
    PaymentStatus,
    Refund,
    RequestStatus,
    StockRecord,
    UrgencyLevel,
)


@runtime_checkable
class UnitOfWork(Protocol):
    """One atomic transaction against the local store.

    Used as an async context manager. Leaving the block normally commits;
    leaving it with an exception rolls back every write made through the
    handle, so none of them is observable afterwards.

    Concurrency Contract:

    - Isolation is at least read-committed
    - Rows read through ``get_for_update`` stay locked until the unit of
      work ends, which serializes concurrent writers of the same request or
      order
    """

    async def __aenter__(self) -> "UnitOfWork": ...

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None: ...


@runtime_checkable
class UnitOfWorkFactory(Protocol):
    """Creates a fresh, not yet started unit of work."""

    def __call__(self) -> UnitOfWork: ...


@runtime_checkable
class RequestRepository(Protocol):
    """Stores medication requests."""

    async def generate_request_id(self) -> str:
        """Generate a unique request identifier."""
        ...

    async def get(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        """Retrieve a request without locking it.

        Returns:
            The request if found, None otherwise
        """
        ...

    async def get_for_update(
        self, uow: UnitOfWork, request_id: str
    ) -> Optional[MedicationRequest]:
        """Retrieve a request and lock it for the rest of the unit of work.

        Every status-changing operation must read through this method so
        that its precondition check and its write are atomic together.
        """
        ...

    async def save(self, uow: UnitOfWork, request: MedicationRequest) -> None:
        """Insert or update a request."""
        ...

    async def list_requests(
        self,
        uow: UnitOfWork,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        urgency: Optional[UrgencyLevel] = None,
    ) -> List[MedicationRequest]:
        """List requests matching every given filter, newest first."""
        ...


@runtime_checkable
class OrderRepository(Protocol):
    """Stores orders and backs the order number sequence."""

    async def generate_order_id(self) -> str:
        """Generate a unique order identifier."""
        ...

    async def get(self, uow: UnitOfWork, order_id: str) -> Optional[Order]:
        """Retrieve an order without locking it."""
        ...

    async def get_for_update(
        self, uow: UnitOfWork, order_id: str
    ) -> Optional[Order]:
        """Retrieve an order and lock it for the rest of the unit of work."""
        ...

    async def latest_order_number(
        self, uow: UnitOfWork, year: int
    ) -> Optional[str]:
        """Return the greatest order number allocated in ``year``.

        Implementation Notes:

        - Must serialize concurrent allocators for the same year for the
          rest of the unit of work (lock, or serializable isolation)
        - Order numbers are zero-padded, so lexicographic order is numeric
          order within a year
        """
        ...

    async def create(self, uow: UnitOfWork, order: Order) -> None:
        """Insert a new order.

        Raises:
            OrderNumberConflictError: If ``order.order_number`` is taken
        """
        ...

    async def save(self, uow: UnitOfWork, order: Order) -> None:
        """Persist the full state of an existing order."""
        ...

    async def list_orders(
        self,
        uow: UnitOfWork,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        delivery_partner_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> List[Order]:
        """List orders matching every given filter, newest first."""
        ...


@runtime_checkable
class StockRepository(Protocol):
    """Per-medication stock counters (one record per medication per
    pharmacy).
    """

    async def get(
        self, uow: UnitOfWork, medication_id: str
    ) -> Optional[StockRecord]:
        """Retrieve a stock record."""
        ...

    async def adjust_quantity(
        self, uow: UnitOfWork, medication_id: str, delta: int
    ) -> StockRecord:
        """Atomically add ``delta`` (which may be negative) to the quantity.

        The write only happens when the resulting quantity is >= 0; the
        check and the write are a single storage operation.

        Returns:
            The stock record after the adjustment

        Raises:
            NotFoundError: If the record does not exist
            InsufficientStockError: If the result would be negative
        """
        ...

    async def save(self, uow: UnitOfWork, record: StockRecord) -> None:
        """Insert or replace a stock record (inventory administration)."""
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    """External payment gateway client.

    None of these calls take part in a unit of work. Every failure is
    reported as ``PaymentGatewayError``.
    """

    async def create_intent(
        self, amount: Decimal, currency: str, metadata: Dict[str, str]
    ) -> PaymentIntent:
        """Create a payment intent for ``amount`` (major units)."""
        ...

    async def confirm_intent(self, intent_id: str) -> PaymentIntent:
        """Confirm (capture) a previously created intent."""
        ...

    async def create_refund(
        self, intent_id: str, amount: Optional[int] = None
    ) -> Refund:
        """Refund a succeeded intent, fully unless ``amount`` (cents) is
        given.
        """
        ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget notification dispatch.

    Callers never wait for delivery. Implementations may still raise when
    the dispatch itself cannot be handed off; use cases log and swallow
    those errors.
    """

    async def notify(self, event: NotificationEvent) -> None: ...


@runtime_checkable
class NotificationSender(Protocol):
    """Delivers a notification over one channel each.

    Runs as Temporal activities behind the dispatch workflow.
    """

    async def send_email(self, event: NotificationEvent) -> None:
        """Send the event to the recipient's email address."""
        ...

    async def send_sms(self, event: NotificationEvent) -> None:
        """Send the event to the recipient's phone number."""
        ...
