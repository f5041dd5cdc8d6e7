"""
usecase logic must be clean, without direct dependencies.
dependencies are injected via repository instances.

Every use case opens its own unit of work (``async with
self.uow_factory() as uow``) and passes the handle to each store call, so
the atomic boundary of an operation is exactly the ``async with`` block.
Payment gateway and notification calls are external side effects: they are
never rolled back, and notifications are only sent after a successful
commit.
"""

from datetime import datetime
import logging
from typing import Callable, List, Optional

from pharmacy.domain import (
    Actor,
    CreateMedicationRequest,
    CreateOrderRequest,
    MedicationRequest,
    NotificationEvent,
    NotificationKind,
    Order,
    OrderLineItem,
    OrderStatus,
    OrderTracking,
    PaymentMethod,
    PaymentStatus,
    RequestStatus,
    Role,
    TERMINAL_REQUEST_STATUSES,
    TrackingEvent,
    DELIVERY_PARTNER_ASSIGNED,
    UpdateMedicationRequest,
    UpdateOrderDetails,
    UrgencyLevel,
    compute_totals,
    money,
    next_order_number,
    utcnow,
)
from pharmacy.errors import (
    ConflictError,
    ForbiddenError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
    OrderNumberConflictError,
    PaymentFailedError,
    PaymentGatewayError,
)
from pharmacy.repositories import (
    Notifier,
    OrderRepository,
    PaymentGateway,
    RequestRepository,
    StockRepository,
    UnitOfWork,
    UnitOfWorkFactory,
)
from pharmacy.validation import (
    ensure_can_view_order,
    ensure_elevated,
    ensure_notifier,
    ensure_order_repository,
    ensure_owner_or_elevated,
    ensure_payment_gateway,
    ensure_request_repository,
    ensure_stock_repository,
    ensure_unit_of_work_factory,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ORDER_CREATED_NOTE = "Order created from approved medication request"
DEFAULT_CANCEL_REASON = "Order cancelled"
MAX_ORDER_NUMBER_ATTEMPTS = 3


async def _dispatch_notification(
    notifier: Notifier, event: NotificationEvent
) -> None:
    """Hand an event to the notifier; failures are logged and swallowed."""
    try:
        await notifier.notify(event)
    except Exception as e:
        logger.error(
            "Notification dispatch failed",
            extra={
                "event_id": event.event_id,
                "kind": event.kind.value,
                "recipient_id": event.recipient_id,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )


def _request_event(
    kind: NotificationKind, request: MedicationRequest, subject: str, body: str
) -> NotificationEvent:
    return NotificationEvent(
        kind=kind,
        recipient_id=request.user_id,
        subject=subject,
        body=body,
        request_id=request.request_id,
    )


def _order_event(
    kind: NotificationKind, order: Order, subject: str, body: str
) -> NotificationEvent:
    return NotificationEvent(
        kind=kind,
        recipient_id=order.user_id,
        subject=subject,
        body=body,
        request_id=order.request_id,
        order_id=order.order_id,
    )


async def _load_order_for_update(
    order_repo: OrderRepository, uow: UnitOfWork, order_id: str
) -> Order:
    order = await order_repo.get_for_update(uow, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


class CreateOrderUseCase:
    """
    Turns an ``available`` medication request into a confirmed order.

    One unit of work covers the whole operation: the request row lock, the
    guarded stock decrements, the order number allocation, the order insert
    and the request moving to ``fulfilled``. Any failure leaves none of
    them behind.

    Order numbers are derived from the greatest number of the current year.
    When a concurrent transaction allocated the same number first the store
    raises OrderNumberConflictError, and the whole unit of work is retried
    from scratch, up to ``max_attempts`` times.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        request_repo: RequestRepository,
        order_repo: OrderRepository,
        stock_repo: StockRepository,
        notifier: Notifier,
        now: Clock = utcnow,
        max_attempts: int = MAX_ORDER_NUMBER_ATTEMPTS,
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.request_repo = ensure_request_repository(request_repo)
        self.order_repo = ensure_order_repository(order_repo)
        self.stock_repo = ensure_stock_repository(stock_repo)
        self.notifier = ensure_notifier(notifier)
        self.now = now
        self.max_attempts = max_attempts

    async def create_order(
        self, actor: Actor, data: CreateOrderRequest
    ) -> Order:
        logger.debug(
            "Starting order creation",
            extra={
                "request_id": data.request_id,
                "actor_id": actor.user_id,
                "item_count": len(data.items),
            },
        )

        last_conflict: Optional[OrderNumberConflictError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                order = await self._create_once(actor, data)
            except OrderNumberConflictError as e:
                last_conflict = e
                logger.warning(
                    "Order number already allocated, retrying",
                    extra={
                        "request_id": data.request_id,
                        "order_number": e.order_number,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                    },
                )
                continue

            logger.info(
                "Order created",
                extra={
                    "order_id": order.order_id,
                    "order_number": order.order_number,
                    "request_id": order.request_id,
                    "user_id": order.user_id,
                    "total_amount": str(order.total_amount),
                    "attempt": attempt,
                },
            )
            await _dispatch_notification(
                self.notifier,
                _order_event(
                    NotificationKind.REQUEST_FULFILLED,
                    order,
                    "Order Confirmed",
                    f"Your order {order.order_number} has been confirmed. "
                    f"Total: {order.total_amount}",
                ),
            )
            return order

        logger.error(
            "Giving up on order number allocation",
            extra={
                "request_id": data.request_id,
                "attempts": self.max_attempts,
            },
        )
        raise ConflictError(
            "Could not allocate an order number, please retry"
        ) from last_conflict

    async def _create_once(
        self, actor: Actor, data: CreateOrderRequest
    ) -> Order:
        async with self.uow_factory() as uow:
            request = await self.request_repo.get_for_update(
                uow, data.request_id
            )
            if request is None:
                raise NotFoundError("Medication request", data.request_id)

            if request.status != RequestStatus.AVAILABLE:
                raise InvalidStateError(
                    f"Request must be in '{RequestStatus.AVAILABLE.value}' "
                    "status to create an order. Current: "
                    f"'{request.status.value}'"
                )

            if request.user_id != actor.user_id:
                raise ForbiddenError(
                    "You can only create orders for your own requests"
                )

            # Sorted so concurrent orders lock stock rows in the same order.
            for line in sorted(data.items, key=lambda i: i.medication_id):
                record = await self.stock_repo.adjust_quantity(
                    uow, line.medication_id, -line.quantity
                )
                if record.is_low_stock:
                    logger.warning(
                        "Stock is running low",
                        extra={
                            "medication_id": record.medication_id,
                            "pharmacy_id": record.pharmacy_id,
                            "quantity": record.quantity,
                            "threshold": record.low_stock_threshold,
                        },
                    )

            items = [
                OrderLineItem(
                    medication_id=line.medication_id,
                    name=line.name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in data.items
            ]
            delivery_fee = money(data.delivery_fee)
            subtotal, tax, total_amount = compute_totals(items, delivery_fee)

            at = self.now()
            latest = await self.order_repo.latest_order_number(uow, at.year)
            order = Order(
                order_id=await self.order_repo.generate_order_id(),
                order_number=next_order_number(latest, at.year),
                request_id=request.request_id,
                user_id=request.user_id,
                pharmacy_id=request.pharmacy_id,
                items=items,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                tax=tax,
                total_amount=total_amount,
                delivery_address=data.delivery_address,
                status=OrderStatus.CONFIRMED,
                payment_status=PaymentStatus.PENDING,
                payment_method=data.payment_method,
                tracking=[
                    TrackingEvent(
                        status=OrderStatus.CONFIRMED.value,
                        timestamp=at,
                        notes=ORDER_CREATED_NOTE,
                    )
                ],
                created_at=at,
                updated_at=at,
            )
            await self.order_repo.create(uow, order)

            request.transition_to(RequestStatus.FULFILLED)
            request.responded_at = at
            await self.request_repo.save(uow, request)

        return order


class ProcessPaymentUseCase:
    """
    Charges an order through the payment gateway.

    The order row stays locked while the gateway is called, so two
    concurrent payment attempts for the same order cannot both charge it.
    A gateway failure is recorded as ``payment_status = failed`` and that
    write is committed before PaymentFailedError reaches the caller.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        order_repo: OrderRepository,
        payment_gateway: PaymentGateway,
        notifier: Notifier,
        now: Clock = utcnow,
        currency: str = "usd",
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.order_repo = ensure_order_repository(order_repo)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)
        self.notifier = ensure_notifier(notifier)
        self.now = now
        self.currency = currency

    async def process_payment(
        self, actor: Actor, order_id: str, payment_method: PaymentMethod
    ) -> Order:
        failure: Optional[PaymentGatewayError] = None

        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )
            ensure_owner_or_elevated(actor, order.user_id)

            if order.payment_status == PaymentStatus.PAID:
                raise InvalidStateError("Order is already paid")
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("Cannot pay a cancelled order")

            try:
                intent = await self.payment_gateway.create_intent(
                    order.total_amount,
                    self.currency,
                    {
                        "order_id": order.order_id,
                        "order_number": order.order_number,
                    },
                )
                confirmed = await self.payment_gateway.confirm_intent(
                    intent.id
                )
            except PaymentGatewayError as e:
                failure = e
                order.payment_status = PaymentStatus.FAILED
                logger.error(
                    "Payment failed",
                    extra={
                        "order_id": order.order_id,
                        "order_number": order.order_number,
                        "error": str(e),
                    },
                    exc_info=True,
                )
            else:
                order.payment_status = PaymentStatus.PAID
                order.payment_method = payment_method
                order.payment_intent_id = confirmed.id
                logger.info(
                    "Payment processed",
                    extra={
                        "order_id": order.order_id,
                        "order_number": order.order_number,
                        "intent_id": confirmed.id,
                        "amount": str(order.total_amount),
                    },
                )

            order.updated_at = self.now()
            await self.order_repo.save(uow, order)

        if failure is not None:
            await _dispatch_notification(
                self.notifier,
                _order_event(
                    NotificationKind.PAYMENT_FAILED,
                    order,
                    "Payment Failed",
                    f"Payment for order {order.order_number} could not be "
                    "processed. Please try again.",
                ),
            )
            raise PaymentFailedError(
                "Payment processing failed. Please try again."
            ) from failure

        return order


class CancelOrderUseCase:
    """
    Cancels an order and compensates everything it consumed.

    Inside one unit of work the recorded line quantities go back to stock,
    a paid order is refunded, the order moves to ``cancelled`` and its
    request returns to ``available`` so it can be ordered again.

    The refund is an external call made before the commit. If it fails the
    unit of work rolls back and nothing changes locally; if the commit fails
    after a successful refund the refund stands on its own.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        order_repo: OrderRepository,
        request_repo: RequestRepository,
        stock_repo: StockRepository,
        payment_gateway: PaymentGateway,
        notifier: Notifier,
        now: Clock = utcnow,
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.order_repo = ensure_order_repository(order_repo)
        self.request_repo = ensure_request_repository(request_repo)
        self.stock_repo = ensure_stock_repository(stock_repo)
        self.payment_gateway = ensure_payment_gateway(payment_gateway)
        self.notifier = ensure_notifier(notifier)
        self.now = now

    async def cancel_order(
        self,
        actor: Actor,
        order_id: str,
        reason: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Order:
        logger.debug(
            "Starting order cancellation",
            extra={
                "order_id": order_id,
                "actor_id": actor.user_id,
                "actor_role": actor.role.value,
            },
        )

        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )

            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("Order is already cancelled")
            if order.status == OrderStatus.DELIVERED:
                raise InvalidStateError("Cannot cancel a delivered order")

            ensure_owner_or_elevated(actor, order.user_id)

            request = await self.request_repo.get_for_update(
                uow, order.request_id
            )
            if request is None:
                raise NotFoundError("Medication request", order.request_id)

            for item in sorted(order.items, key=lambda i: i.medication_id):
                await self.stock_repo.adjust_quantity(
                    uow, item.medication_id, item.quantity
                )

            if (
                order.payment_status == PaymentStatus.PAID
                and order.payment_intent_id
            ):
                try:
                    refund = await self.payment_gateway.create_refund(
                        order.payment_intent_id
                    )
                except PaymentGatewayError as e:
                    logger.error(
                        "Refund failed, order left unchanged",
                        extra={
                            "order_id": order.order_id,
                            "intent_id": order.payment_intent_id,
                            "error": str(e),
                        },
                        exc_info=True,
                    )
                    raise PaymentFailedError(
                        "Refund failed, the order was not cancelled"
                    ) from e
                order.payment_status = PaymentStatus.REFUNDED
                logger.info(
                    "Payment refunded",
                    extra={
                        "order_id": order.order_id,
                        "refund_id": refund.id,
                        "amount": refund.amount,
                    },
                )

            order.advance_to(
                OrderStatus.CANCELLED,
                self.now(),
                location=location,
                notes=reason or DEFAULT_CANCEL_REASON,
            )
            await self.order_repo.save(uow, order)

            request.revert_to_available()
            await self.request_repo.save(uow, request)

        logger.info(
            "Order cancelled",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
                "actor_id": actor.user_id,
                "payment_status": order.payment_status.value,
            },
        )
        await _dispatch_notification(
            self.notifier,
            _order_event(
                NotificationKind.ORDER_CANCELLED,
                order,
                "Order Cancelled",
                f"Your order {order.order_number} has been cancelled.",
            ),
        )
        return order


class AdvanceOrderStatusUseCase:
    """
    Moves an order along confirmed -> packed -> out_for_delivery ->
    delivered. A ``cancelled`` target is handed to CancelOrderUseCase so
    that cancellation always restores stock and refunds payment.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        order_repo: OrderRepository,
        cancel_order: CancelOrderUseCase,
        notifier: Notifier,
        now: Clock = utcnow,
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.order_repo = ensure_order_repository(order_repo)
        self.cancel_order = cancel_order
        self.notifier = ensure_notifier(notifier)
        self.now = now

    async def advance_order_status(
        self,
        actor: Actor,
        order_id: str,
        status: OrderStatus,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )
            self._authorize(actor, order)

            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("Cannot update a cancelled order")
            if order.status == OrderStatus.DELIVERED:
                raise InvalidStateError("Order is already delivered")

            if status != OrderStatus.CANCELLED:
                previous = order.status
                order.advance_to(
                    status, self.now(), location=location, notes=notes
                )
                await self.order_repo.save(uow, order)

        if status == OrderStatus.CANCELLED:
            return await self.cancel_order.cancel_order(
                actor, order_id, reason=notes, location=location
            )

        logger.info(
            "Order status updated",
            extra={
                "order_id": order.order_id,
                "from_status": previous.value,
                "to_status": status.value,
                "actor_id": actor.user_id,
            },
        )
        await _dispatch_notification(
            self.notifier,
            _order_event(
                NotificationKind.ORDER_STATUS_CHANGED,
                order,
                f"Order Update: {status.value.upper()}",
                f"Your order {order.order_number} is now {status.value}.",
            ),
        )
        return order

    @staticmethod
    def _authorize(actor: Actor, order: Order) -> None:
        if actor.role == Role.DELIVERY_PARTNER:
            if order.delivery_partner_id != actor.user_id:
                raise ForbiddenError(
                    "This order is not assigned to you for delivery"
                )
            return
        ensure_elevated(actor, "update order status")


class OrderMaintenanceUseCase:
    """Staff-side edits that do not move the order state machine."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        order_repo: OrderRepository,
        now: Clock = utcnow,
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.order_repo = ensure_order_repository(order_repo)
        self.now = now

    async def update_order_details(
        self, actor: Actor, order_id: str, changes: UpdateOrderDetails
    ) -> Order:
        ensure_elevated(actor, "update orders")
        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )
            if order.is_terminal:
                raise InvalidStateError(
                    "Cannot update an order with status "
                    f"'{order.status.value}'"
                )

            if changes.delivery_address is not None:
                order.delivery_address = changes.delivery_address
            if changes.delivery_fee is not None:
                order.change_delivery_fee(changes.delivery_fee)
            if changes.estimated_delivery is not None:
                order.estimated_delivery = changes.estimated_delivery
            order.updated_at = self.now()
            await self.order_repo.save(uow, order)

        logger.info(
            "Order details updated",
            extra={
                "order_id": order_id,
                "fields": sorted(changes.model_dump(exclude_none=True)),
            },
        )
        return order

    async def assign_delivery_partner(
        self, actor: Actor, order_id: str, delivery_partner_id: str
    ) -> Order:
        ensure_elevated(actor, "assign delivery partners")
        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )
            if order.is_terminal:
                raise InvalidStateError(
                    "Cannot assign delivery partner to a "
                    f"'{order.status.value}' order"
                )

            order.delivery_partner_id = delivery_partner_id
            order.record(
                DELIVERY_PARTNER_ASSIGNED,
                self.now(),
                notes=f"Delivery partner {delivery_partner_id} assigned",
            )
            await self.order_repo.save(uow, order)

        logger.info(
            "Delivery partner assigned",
            extra={
                "order_id": order_id,
                "delivery_partner_id": delivery_partner_id,
            },
        )
        return order

    async def generate_invoice(self, actor: Actor, order_id: str) -> Order:
        async with self.uow_factory() as uow:
            order = await _load_order_for_update(
                self.order_repo, uow, order_id
            )
            ensure_owner_or_elevated(actor, order.user_id)
            order.invoice_url = f"/invoices/{order.order_number}.pdf"
            order.updated_at = self.now()
            await self.order_repo.save(uow, order)
        return order


class GetOrderUseCase:
    def __init__(
        self, uow_factory: UnitOfWorkFactory, order_repo: OrderRepository
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.order_repo = ensure_order_repository(order_repo)

    async def get_order(self, actor: Actor, order_id: str) -> Order:
        async with self.uow_factory() as uow:
            order = await self.order_repo.get(uow, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        ensure_can_view_order(actor, order.user_id, order.delivery_partner_id)
        return order

    async def get_tracking(
        self, actor: Actor, order_id: str
    ) -> OrderTracking:
        order = await self.get_order(actor, order_id)
        return OrderTracking(
            order_id=order.order_id,
            order_number=order.order_number,
            status=order.status,
            delivery_partner_id=order.delivery_partner_id,
            tracking=list(order.tracking),
        )

    async def list_orders(
        self,
        actor: Actor,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        delivery_partner_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> List[Order]:
        """
        Patients only ever see their own orders and delivery partners only
        the orders assigned to them, whatever filters they pass.
        """
        if actor.role == Role.PATIENT:
            user_id = actor.user_id
        elif actor.role == Role.DELIVERY_PARTNER:
            delivery_partner_id = actor.user_id

        async with self.uow_factory() as uow:
            return await self.order_repo.list_orders(
                uow,
                user_id=user_id,
                pharmacy_id=pharmacy_id,
                delivery_partner_id=delivery_partner_id,
                status=status,
                payment_status=payment_status,
            )


class MedicationRequestUseCase:
    """
    Lifecycle of medication requests outside of order creation: patients
    submit, edit and cancel them, pharmacy staff move them through
    processing to available or unavailable.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        request_repo: RequestRepository,
        notifier: Notifier,
        now: Clock = utcnow,
    ) -> None:
        self.uow_factory = ensure_unit_of_work_factory(uow_factory)
        self.request_repo = ensure_request_repository(request_repo)
        self.notifier = ensure_notifier(notifier)
        self.now = now

    async def submit_request(
        self, actor: Actor, data: CreateMedicationRequest
    ) -> MedicationRequest:
        if actor.role != Role.PATIENT:
            raise ForbiddenError("Only patients may submit medication requests")

        request = MedicationRequest(
            request_id=await self.request_repo.generate_request_id(),
            user_id=actor.user_id,
            pharmacy_id=data.pharmacy_id,
            medication_name=data.medication_name,
            quantity=data.quantity,
            urgency=data.urgency,
            prescription_required=data.prescription_required,
            notes=data.notes,
            estimated_availability=data.estimated_availability,
            requested_at=self.now(),
        )
        async with self.uow_factory() as uow:
            await self.request_repo.save(uow, request)

        logger.info(
            "Medication request created",
            extra={
                "request_id": request.request_id,
                "user_id": request.user_id,
                "pharmacy_id": request.pharmacy_id,
                "urgency": request.urgency.value,
            },
        )
        await _dispatch_notification(
            self.notifier,
            _request_event(
                NotificationKind.REQUEST_CREATED,
                request,
                "Medication Request Received",
                f'Your request for "{request.medication_name}" (ID: '
                f"{request.request_id}) has been received and is pending "
                "review.",
            ),
        )
        return request

    async def update_request(
        self, actor: Actor, request_id: str, changes: UpdateMedicationRequest
    ) -> MedicationRequest:
        async with self.uow_factory() as uow:
            request = await self._load_for_update(uow, request_id)
            if request.user_id != actor.user_id:
                raise ForbiddenError("You can only update your own requests")
            if request.status != RequestStatus.PENDING:
                raise InvalidStateError(
                    "Only pending requests can be edited. Current status: "
                    f"'{request.status.value}'"
                )

            if changes.quantity is not None:
                request.quantity = changes.quantity
            if changes.urgency is not None:
                request.urgency = changes.urgency
            if changes.notes is not None:
                request.notes = changes.notes
            await self.request_repo.save(uow, request)

        logger.info(
            "Medication request updated",
            extra={"request_id": request_id, "user_id": actor.user_id},
        )
        return request

    async def update_request_status(
        self,
        actor: Actor,
        request_id: str,
        status: RequestStatus,
        notes: Optional[str] = None,
        estimated_availability: Optional[datetime] = None,
    ) -> MedicationRequest:
        ensure_elevated(actor, "change request status")
        if status == RequestStatus.FULFILLED:
            raise InvalidStateError(
                "Requests are fulfilled by creating an order"
            )

        async with self.uow_factory() as uow:
            request = await self._load_for_update(uow, request_id)
            if (
                actor.role == Role.PHARMACY_STAFF
                and actor.pharmacy_id
                and request.pharmacy_id != actor.pharmacy_id
            ):
                raise ForbiddenError(
                    "This request does not belong to your pharmacy"
                )

            previous = request.status
            request.transition_to(status)
            request.responded_at = self.now()
            if notes:
                request.notes = notes
            if estimated_availability is not None:
                request.estimated_availability = estimated_availability
            await self.request_repo.save(uow, request)

        logger.info(
            "Medication request status changed",
            extra={
                "request_id": request_id,
                "from_status": previous.value,
                "to_status": status.value,
                "actor_id": actor.user_id,
            },
        )
        body = (
            f'Your request for "{request.medication_name}" (ID: '
            f"{request.request_id}) has been updated to: "
            f"{status.value.upper()}."
        )
        if notes:
            body += f" Notes: {notes}"
        await _dispatch_notification(
            self.notifier,
            _request_event(
                NotificationKind.REQUEST_STATUS_CHANGED,
                request,
                f"Medication Request Update: {status.value.upper()}",
                body,
            ),
        )
        return request

    async def cancel_request(
        self, actor: Actor, request_id: str
    ) -> MedicationRequest:
        async with self.uow_factory() as uow:
            request = await self._load_for_update(uow, request_id)
            ensure_owner_or_elevated(actor, request.user_id)

            if request.status in TERMINAL_REQUEST_STATUSES:
                raise InvalidOperationError(
                    "Cannot cancel a request with status "
                    f"'{request.status.value}'"
                )

            request.transition_to(RequestStatus.CANCELLED)
            request.responded_at = self.now()
            await self.request_repo.save(uow, request)

        logger.info(
            "Medication request cancelled",
            extra={"request_id": request_id, "actor_id": actor.user_id},
        )
        await _dispatch_notification(
            self.notifier,
            _request_event(
                NotificationKind.REQUEST_CANCELLED,
                request,
                "Medication Request Cancelled",
                f'Your request for "{request.medication_name}" (ID: '
                f"{request.request_id}) has been cancelled.",
            ),
        )
        return request

    async def get_request(
        self, actor: Actor, request_id: str
    ) -> MedicationRequest:
        async with self.uow_factory() as uow:
            request = await self.request_repo.get(uow, request_id)
        if request is None:
            raise NotFoundError("Medication request", request_id)
        ensure_owner_or_elevated(actor, request.user_id)
        return request

    async def list_requests(
        self,
        actor: Actor,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
        urgency: Optional[UrgencyLevel] = None,
    ) -> List[MedicationRequest]:
        if actor.role == Role.PATIENT:
            user_id = actor.user_id
        elif not actor.is_elevated:
            raise ForbiddenError("Not authorized to list medication requests")

        async with self.uow_factory() as uow:
            return await self.request_repo.list_requests(
                uow,
                user_id=user_id,
                pharmacy_id=pharmacy_id,
                status=status,
                urgency=urgency,
            )

    async def _load_for_update(
        self, uow: UnitOfWork, request_id: str
    ) -> MedicationRequest:
        request = await self.request_repo.get_for_update(uow, request_id)
        if request is None:
            raise NotFoundError("Medication request", request_id)
        return request
