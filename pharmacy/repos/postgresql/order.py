"""
PostgreSQL implementation of OrderRepository.
"""

import logging
from typing import Any, List, Optional

from asyncpg.exceptions import UniqueViolationError

from pharmacy.domain import (
    Order,
    OrderStatus,
    PaymentStatus,
    new_order_id,
    order_number_prefix,
)
from pharmacy.errors import ConflictError, OrderNumberConflictError
from pharmacy.repositories import OrderRepository, UnitOfWork

from .schema import (
    LIVE_REQUEST_CONSTRAINT,
    ORDER_NUMBER_CONSTRAINT,
    ORDER_NUMBER_LOCK_CLASS,
)
from .unit_of_work import active_connection

logger = logging.getLogger(__name__)


class PostgreSQLOrderRepository(OrderRepository):
    """
    PostgreSQL implementation of OrderRepository.

    Order number allocation is serialized per year with a
    transaction-scoped advisory lock; the unique constraint on
    ``order_number`` backs it up against writers that skip the lock.
    """

    async def generate_order_id(self) -> str:
        return new_order_id()

    async def get(self, uow: UnitOfWork, order_id: str) -> Optional[Order]:
        row = await active_connection(uow).fetchrow(
            "SELECT order_data FROM orders WHERE order_id = $1", order_id
        )
        return Order.model_validate_json(row["order_data"]) if row else None

    async def get_for_update(
        self, uow: UnitOfWork, order_id: str
    ) -> Optional[Order]:
        row = await active_connection(uow).fetchrow(
            "SELECT order_data FROM orders WHERE order_id = $1 FOR UPDATE",
            order_id,
        )
        return Order.model_validate_json(row["order_data"]) if row else None

    async def latest_order_number(
        self, uow: UnitOfWork, year: int
    ) -> Optional[str]:
        conn = active_connection(uow)
        await conn.execute(
            "SELECT pg_advisory_xact_lock($1, $2)",
            ORDER_NUMBER_LOCK_CLASS,
            year,
        )
        return await conn.fetchval(
            "SELECT max(order_number) FROM orders WHERE order_number LIKE $1",
            f"{order_number_prefix(year)}%",
        )

    async def create(self, uow: UnitOfWork, order: Order) -> None:
        query = """
            INSERT INTO orders (
                order_id, order_number, request_id, user_id, pharmacy_id,
                delivery_partner_id, status, payment_status, created_at,
                updated_at, order_data
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
        """
        try:
            await active_connection(uow).execute(
                query,
                order.order_id,
                order.order_number,
                order.request_id,
                order.user_id,
                order.pharmacy_id,
                order.delivery_partner_id,
                order.status.value,
                order.payment_status.value,
                order.created_at,
                order.updated_at,
                order.model_dump_json(),
            )
        except UniqueViolationError as e:
            if e.constraint_name == ORDER_NUMBER_CONSTRAINT:
                raise OrderNumberConflictError(order.order_number) from e
            if e.constraint_name == LIVE_REQUEST_CONSTRAINT:
                raise ConflictError(
                    f"Request '{order.request_id}' already has a live order"
                ) from e
            logger.error(
                "Order insert violated an unexpected unique constraint",
                extra={
                    "order_id": order.order_id,
                    "request_id": order.request_id,
                    "constraint": e.constraint_name,
                },
            )
            raise

        logger.info(
            "Created order in PostgreSQL",
            extra={
                "order_id": order.order_id,
                "order_number": order.order_number,
            },
        )

    async def save(self, uow: UnitOfWork, order: Order) -> None:
        await active_connection(uow).execute(
            """
            UPDATE orders SET
                delivery_partner_id = $2,
                status = $3,
                payment_status = $4,
                updated_at = $5,
                order_data = $6
            WHERE order_id = $1
            """,
            order.order_id,
            order.delivery_partner_id,
            order.status.value,
            order.payment_status.value,
            order.updated_at,
            order.model_dump_json(),
        )
        logger.debug(
            "Saved order to PostgreSQL",
            extra={
                "order_id": order.order_id,
                "status": order.status.value,
                "payment_status": order.payment_status.value,
            },
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
        conditions: List[str] = []
        params: List[Any] = []
        for column, value in (
            ("user_id", user_id),
            ("pharmacy_id", pharmacy_id),
            ("delivery_partner_id", delivery_partner_id),
            ("status", status.value if status else None),
            ("payment_status", payment_status.value if payment_status else None),
        ):
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await active_connection(uow).fetch(
            f"SELECT order_data FROM orders {where} ORDER BY created_at DESC",
            *params,
        )
        return [Order.model_validate_json(row["order_data"]) for row in rows]
