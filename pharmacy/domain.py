"""
Domain models defined as Pydantic models.

Besides the plain data structures this module owns the two lifecycle state
machines (medication requests and orders), the order pricing rules and the
order number format, since all of them are pure functions of domain data.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple
import uuid

from pydantic import (
    BaseModel,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from pharmacy.errors import InvalidTransitionError

TAX_RATE = Decimal("0.05")
CENTS = Decimal("0.01")
ORDER_NUMBER_PREFIX = "ORD"
ORDER_SEQUENCE_WIDTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to whole cents."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


# --- Enums ---


class RequestStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class UrgencyLevel(str, Enum):
    URGENT = "urgent"
    NORMAL = "normal"
    LOW = "low"


class OrderStatus(str, Enum):
    CONFIRMED = "confirmed"
    PACKED = "packed"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    ONLINE = "online"


class Role(str, Enum):
    PATIENT = "patient"
    PHARMACY_STAFF = "pharmacy_staff"
    SYSTEM_ADMIN = "system_admin"
    DELIVERY_PARTNER = "delivery_partner"


ELEVATED_ROLES: FrozenSet[Role] = frozenset(
    {Role.PHARMACY_STAFF, Role.SYSTEM_ADMIN}
)


class NotificationKind(str, Enum):
    REQUEST_CREATED = "request_created"
    REQUEST_STATUS_CHANGED = "request_status_changed"
    REQUEST_CANCELLED = "request_cancelled"
    REQUEST_FULFILLED = "request_fulfilled"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_CANCELLED = "order_cancelled"
    PAYMENT_FAILED = "payment_failed"


# --- State machines ---

REQUEST_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset(
        {
            RequestStatus.PROCESSING,
            RequestStatus.UNAVAILABLE,
            RequestStatus.CANCELLED,
        }
    ),
    RequestStatus.PROCESSING: frozenset(
        {
            RequestStatus.AVAILABLE,
            RequestStatus.UNAVAILABLE,
            RequestStatus.CANCELLED,
        }
    ),
    RequestStatus.AVAILABLE: frozenset(
        {RequestStatus.FULFILLED, RequestStatus.CANCELLED}
    ),
    RequestStatus.UNAVAILABLE: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.FULFILLED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
}

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PACKED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PACKED: frozenset(
        {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}
    ),
    OrderStatus.OUT_FOR_DELIVERY: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    ),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_REQUEST_STATUSES = frozenset(
    status for status, targets in REQUEST_TRANSITIONS.items() if not targets
)
TERMINAL_ORDER_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)


def ensure_request_transition(
    current: RequestStatus, target: RequestStatus
) -> None:
    """Raise InvalidTransitionError unless current -> target is an edge."""
    allowed = REQUEST_TRANSITIONS[current]
    if target not in allowed:
        raise InvalidTransitionError(
            current.value, target.value, [s.value for s in allowed]
        )


def ensure_order_transition(
    current: OrderStatus, target: OrderStatus
) -> None:
    """Raise InvalidTransitionError unless current -> target is an edge."""
    allowed = ORDER_TRANSITIONS[current]
    if target not in allowed:
        raise InvalidTransitionError(
            current.value, target.value, [s.value for s in allowed]
        )


# --- Order numbers ---


def order_number_prefix(year: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{year}-"


def format_order_number(year: int, sequence: int) -> str:
    return f"{order_number_prefix(year)}{sequence:0{ORDER_SEQUENCE_WIDTH}d}"


def next_order_number(latest: Optional[str], year: int) -> str:
    """
    Derive the next order number for ``year`` from the greatest number
    already allocated that year. Starts at 1 when none exists.
    """
    if not latest:
        return format_order_number(year, 1)

    prefix = order_number_prefix(year)
    if not latest.startswith(prefix):
        raise ValueError(
            f"Order number '{latest}' does not belong to year {year}"
        )
    return format_order_number(year, int(latest[len(prefix):]) + 1)


# --- Identity ---


class Actor(BaseModel):
    """The already-authenticated caller of a use case."""

    user_id: str
    role: Role
    pharmacy_id: Optional[str] = None

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


# --- Medication requests ---


class CreateMedicationRequest(BaseModel):
    """Input for submitting a new medication request."""

    pharmacy_id: str
    medication_name: str
    quantity: int
    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    prescription_required: bool = False
    notes: Optional[str] = None
    estimated_availability: Optional[datetime] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be at least 1")
        return v

    @field_validator("medication_name")
    @classmethod
    def medication_name_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Medication name is required")
        return v.strip()


class UpdateMedicationRequest(BaseModel):
    """Editable fields of a request that is still pending."""

    quantity: Optional[int] = None
    urgency: Optional[UrgencyLevel] = None
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Quantity must be at least 1")
        return v


class MedicationRequest(BaseModel):
    request_id: str
    user_id: str
    pharmacy_id: str
    medication_name: str
    quantity: int
    urgency: UrgencyLevel = UrgencyLevel.NORMAL
    status: RequestStatus = RequestStatus.PENDING
    prescription_required: bool = False
    notes: Optional[str] = None
    requested_at: datetime = Field(default_factory=utcnow)
    responded_at: Optional[datetime] = None
    estimated_availability: Optional[datetime] = None

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be at least 1")
        return v

    def transition_to(self, target: RequestStatus) -> None:
        ensure_request_transition(self.status, target)
        self.status = target

    def revert_to_available(self) -> None:
        """
        Compensating edge taken when the order that consumed this request
        is cancelled. It deliberately bypasses REQUEST_TRANSITIONS, where
        ``fulfilled`` is terminal.
        """
        self.status = RequestStatus.AVAILABLE


# --- Orders ---


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class DeliveryAddress(BaseModel):
    street: str
    city: str
    postal_code: str
    phone_number: str
    coordinates: Optional[Coordinates] = None

    @field_validator("street", "city", "postal_code", "phone_number")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Address fields must not be blank")
        return v.strip()


class LineItemRequest(BaseModel):
    """Caller-supplied order line; trusted against live stock records."""

    medication_id: str
    name: str
    quantity: int
    unit_price: Decimal

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @field_validator("unit_price")
    @classmethod
    def unit_price_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Unit price cannot be negative")
        return v


class OrderLineItem(BaseModel):
    medication_id: str
    name: str
    quantity: int
    unit_price: Decimal

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Quantity must be positive")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


class TrackingEvent(BaseModel):
    # OrderStatus values plus "delivery_partner_assigned"
    status: str
    timestamp: datetime = Field(default_factory=utcnow)
    location: Optional[str] = None
    notes: Optional[str] = None


DELIVERY_PARTNER_ASSIGNED = "delivery_partner_assigned"


class CreateOrderRequest(BaseModel):
    """Input for creating an order from an available medication request."""

    request_id: str
    delivery_address: DeliveryAddress
    items: List[LineItemRequest]
    delivery_fee: Decimal = Decimal("0")
    payment_method: Optional[PaymentMethod] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[LineItemRequest]
    ) -> List[LineItemRequest]:
        if not v:
            raise ValueError("Order must contain at least one item")
        return v

    @field_validator("delivery_fee")
    @classmethod
    def delivery_fee_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Delivery fee cannot be negative")
        return v


class UpdateOrderDetails(BaseModel):
    delivery_address: Optional[DeliveryAddress] = None
    delivery_fee: Optional[Decimal] = None
    estimated_delivery: Optional[datetime] = None

    @field_validator("delivery_fee")
    @classmethod
    def delivery_fee_must_not_be_negative(
        cls, v: Optional[Decimal]
    ) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("Delivery fee cannot be negative")
        return v


def compute_totals(
    items: List[OrderLineItem], delivery_fee: Decimal
) -> Tuple[Decimal, Decimal, Decimal]:
    """Return (subtotal, tax, total_amount) for the given lines and fee."""
    subtotal = money(sum((item.line_total for item in items), Decimal("0")))
    tax = money(subtotal * TAX_RATE)
    total_amount = money(subtotal + money(delivery_fee) + tax)
    return subtotal, tax, total_amount


class Order(BaseModel):
    order_id: str
    order_number: str
    request_id: str
    user_id: str
    pharmacy_id: str
    items: List[OrderLineItem]
    subtotal: Decimal
    delivery_fee: Decimal = Decimal("0")
    tax: Decimal
    total_amount: Decimal
    delivery_address: DeliveryAddress
    status: OrderStatus = OrderStatus.CONFIRMED
    delivery_partner_id: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    payment_intent_id: Optional[str] = None
    tracking: List[TrackingEvent] = Field(default_factory=list)
    invoice_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[OrderLineItem]
    ) -> List[OrderLineItem]:
        if not v:
            raise ValueError("Order must contain at least one item")
        return v

    @model_validator(mode="after")
    def totals_must_be_consistent(self) -> "Order":
        if money(self.subtotal + self.delivery_fee + self.tax) != money(
            self.total_amount
        ):
            raise ValueError(
                "Total amount must equal subtotal + delivery fee + tax"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def record(
        self,
        status: str,
        at: datetime,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        self.tracking.append(
            TrackingEvent(
                status=status, timestamp=at, location=location, notes=notes
            )
        )
        self.updated_at = at

    def advance_to(
        self,
        target: OrderStatus,
        at: datetime,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        ensure_order_transition(self.status, target)
        self.status = target
        if target == OrderStatus.DELIVERED:
            self.actual_delivery = at
        self.record(target.value, at, location=location, notes=notes)

    def change_delivery_fee(self, delivery_fee: Decimal) -> None:
        if delivery_fee < 0:
            raise ValueError("Delivery fee cannot be negative")
        self.delivery_fee = money(delivery_fee)
        self.total_amount = money(self.subtotal + self.delivery_fee + self.tax)


class OrderTracking(BaseModel):
    """Delivery progress of one order as shown to its viewers."""

    order_id: str
    order_number: str
    status: OrderStatus
    delivery_partner_id: Optional[str] = None
    tracking: List[TrackingEvent]


def new_order_id() -> str:
    return str(uuid.uuid4())


# --- Inventory ---


class StockRecord(BaseModel):
    medication_id: str
    pharmacy_id: str
    medication_name: str
    quantity: int
    unit_price: Decimal = Decimal("0")
    low_stock_threshold: int = 10

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Quantity cannot be negative")
        return v

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.low_stock_threshold


# --- Payment gateway ---


class PaymentIntent(BaseModel):
    """Gateway-side record of an attempted charge. Amounts are in cents."""

    id: str
    amount: int
    currency: str = "usd"
    status: str = "requires_confirmation"
    metadata: Dict[str, str] = Field(default_factory=dict)
    client_secret: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Refund(BaseModel):
    id: str
    payment_intent_id: str
    amount: int
    status: str = "succeeded"
    created_at: datetime = Field(default_factory=utcnow)


def to_minor_units(amount: Decimal) -> int:
    return int(money(amount) * 100)


# --- Notifications ---


class NotificationEvent(BaseModel):
    """Fire-and-forget message addressed to the owner of a request/order."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: NotificationKind
    recipient_id: str
    subject: str
    body: str
    request_id: Optional[str] = None
    order_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
