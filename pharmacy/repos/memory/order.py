"""
In-memory implementation of OrderRepository.
"""

import logging
from typing import List, Optional

from pharmacy.domain import (
    Order,
    OrderStatus,
    PaymentStatus,
    new_order_id,
    order_number_prefix,
)
from pharmacy.errors import OrderNumberConflictError
from pharmacy.repositories import OrderRepository, UnitOfWork

from .unit_of_work import active_tables

logger = logging.getLogger(__name__)


class MemoryOrderRepository(OrderRepository):
    async def generate_order_id(self) -> str:
        return new_order_id()

    async def get(self, uow: UnitOfWork, order_id: str) -> Optional[Order]:
        order = active_tables(uow).orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def get_for_update(
        self, uow: UnitOfWork, order_id: str
    ) -> Optional[Order]:
        return await self.get(uow, order_id)

    async def latest_order_number(
        self, uow: UnitOfWork, year: int
    ) -> Optional[str]:
        prefix = order_number_prefix(year)
        numbers = [
            order.order_number
            for order in active_tables(uow).orders.values()
            if order.order_number.startswith(prefix)
        ]
        return max(numbers) if numbers else None

    async def create(self, uow: UnitOfWork, order: Order) -> None:
        orders = active_tables(uow).orders
        if any(o.order_number == order.order_number for o in orders.values()):
            raise OrderNumberConflictError(order.order_number)
        orders[order.order_id] = order.model_copy(deep=True)
        logger.debug(
            "Created order in memory",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
            },
        )

    async def save(self, uow: UnitOfWork, order: Order) -> None:
        active_tables(uow).orders[order.order_id] = order.model_copy(
            deep=True
        )

    async def list_orders(
        self,
        uow: UnitOfWork,
        user_id: Optional[str] = None,
        pharmacy_id: Optional[str] = None,
        delivery_partner_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> List[Order]:
        matches = [
            order.model_copy(deep=True)
            for order in active_tables(uow).orders.values()
            if (user_id is None or order.user_id == user_id)
            and (pharmacy_id is None or order.pharmacy_id == pharmacy_id)
            and (
                delivery_partner_id is None
                or order.delivery_partner_id == delivery_partner_id
            )
            and (status is None or order.status == status)
            and (
                payment_status is None
                or order.payment_status == payment_status
            )
        ]
        return sorted(matches, key=lambda o: o.created_at, reverse=True)
