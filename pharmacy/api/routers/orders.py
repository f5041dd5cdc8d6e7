"""
Orders API router.

Routes defined at root level, mounted with the '/orders' prefix:

- POST / - create an order from an available request
- GET / - list orders visible to the caller (paginated)
- GET /{order_id} - fetch one order
- PATCH /{order_id} - update delivery details (staff)
- PATCH /{order_id}/status - advance the delivery status
- POST /{order_id}/payment - charge the order
- POST /{order_id}/cancel - cancel and compensate
- POST /{order_id}/delivery-partner - assign a delivery partner (staff)
- GET /{order_id}/tracking - tracking history
- POST /{order_id}/invoice - generate the invoice link

Domain errors propagate to the application's exception handler.
"""

import logging
from typing import Optional, cast

from fastapi import APIRouter, Depends
from fastapi_pagination import Page, paginate

from pharmacy.api.dependencies import (
    get_actor,
    get_advance_order_status_use_case,
    get_cancel_order_use_case,
    get_create_order_use_case,
    get_get_order_use_case,
    get_order_maintenance_use_case,
    get_process_payment_use_case,
)
from pharmacy.api.requests import (
    AssignDeliveryPartnerRequest,
    CancelOrderRequest,
    ProcessPaymentRequest,
    UpdateOrderStatusRequest,
)
from pharmacy.api.responses import InvoiceResponse
from pharmacy.domain import (
    Actor,
    CreateOrderRequest,
    Order,
    OrderStatus,
    OrderTracking,
    PaymentStatus,
    UpdateOrderDetails,
)
from pharmacy.usecase import (
    AdvanceOrderStatusUseCase,
    CancelOrderUseCase,
    CreateOrderUseCase,
    GetOrderUseCase,
    OrderMaintenanceUseCase,
    ProcessPaymentUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=Order, status_code=201)
async def create_order(
    body: CreateOrderRequest,
    actor: Actor = Depends(get_actor),
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case),
) -> Order:
    logger.info(
        "Order creation requested",
        extra={
            "request_id": body.request_id,
            "actor_id": actor.user_id,
            "item_count": len(body.items),
        },
    )
    return await use_case.create_order(actor, body)


@router.get("", response_model=Page[Order])
async def list_orders(
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    user_id: Optional[str] = None,
    pharmacy_id: Optional[str] = None,
    delivery_partner_id: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case),
) -> Page[Order]:
    orders = await use_case.list_orders(
        actor,
        user_id=user_id,
        pharmacy_id=pharmacy_id,
        delivery_partner_id=delivery_partner_id,
        status=status,
        payment_status=payment_status,
    )
    logger.debug("Orders listed", extra={"count": len(orders)})
    return cast(Page[Order], paginate(orders))


@router.get("/{order_id}", response_model=Order)
async def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case),
) -> Order:
    return await use_case.get_order(actor, order_id)


@router.patch("/{order_id}", response_model=Order)
async def update_order(
    order_id: str,
    body: UpdateOrderDetails,
    actor: Actor = Depends(get_actor),
    use_case: OrderMaintenanceUseCase = Depends(
        get_order_maintenance_use_case
    ),
) -> Order:
    return await use_case.update_order_details(actor, order_id, body)


@router.patch("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    actor: Actor = Depends(get_actor),
    use_case: AdvanceOrderStatusUseCase = Depends(
        get_advance_order_status_use_case
    ),
) -> Order:
    return await use_case.advance_order_status(
        actor,
        order_id,
        body.status,
        location=body.location,
        notes=body.notes,
    )


@router.post("/{order_id}/payment", response_model=Order)
async def process_payment(
    order_id: str,
    body: ProcessPaymentRequest,
    actor: Actor = Depends(get_actor),
    use_case: ProcessPaymentUseCase = Depends(get_process_payment_use_case),
) -> Order:
    return await use_case.process_payment(
        actor, order_id, body.payment_method
    )


@router.post("/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str,
    body: Optional[CancelOrderRequest] = None,
    actor: Actor = Depends(get_actor),
    use_case: CancelOrderUseCase = Depends(get_cancel_order_use_case),
) -> Order:
    reason = body.reason if body else None
    return await use_case.cancel_order(actor, order_id, reason=reason)


@router.post("/{order_id}/delivery-partner", response_model=Order)
async def assign_delivery_partner(
    order_id: str,
    body: AssignDeliveryPartnerRequest,
    actor: Actor = Depends(get_actor),
    use_case: OrderMaintenanceUseCase = Depends(
        get_order_maintenance_use_case
    ),
) -> Order:
    return await use_case.assign_delivery_partner(
        actor, order_id, body.delivery_partner_id
    )


@router.get("/{order_id}/tracking", response_model=OrderTracking)
async def get_tracking(
    order_id: str,
    actor: Actor = Depends(get_actor),
    use_case: GetOrderUseCase = Depends(get_get_order_use_case),
) -> OrderTracking:
    return await use_case.get_tracking(actor, order_id)


@router.post("/{order_id}/invoice", response_model=InvoiceResponse)
async def generate_invoice(
    order_id: str,
    actor: Actor = Depends(get_actor),
    use_case: OrderMaintenanceUseCase = Depends(
        get_order_maintenance_use_case
    ),
) -> InvoiceResponse:
    order = await use_case.generate_invoice(actor, order_id)
    return InvoiceResponse(
        order_id=order.order_id,
        order_number=order.order_number,
        invoice_url=order.invoice_url or "",
    )
