"""
PostgreSQL implementation of StockRepository.
"""

import logging
from typing import Optional

from asyncpg import Record

from pharmacy.domain import StockRecord
from pharmacy.errors import InsufficientStockError, NotFoundError
from pharmacy.repositories import StockRepository, UnitOfWork

from .unit_of_work import active_connection

logger = logging.getLogger(__name__)

STOCK_COLUMNS = (
    "medication_id, pharmacy_id, medication_name, quantity, unit_price, "
    "low_stock_threshold"
)


def _to_record(row: Record) -> StockRecord:
    return StockRecord(**dict(row))


class PostgreSQLStockRepository(StockRepository):
    async def get(
        self, uow: UnitOfWork, medication_id: str
    ) -> Optional[StockRecord]:
        row = await active_connection(uow).fetchrow(
            f"SELECT {STOCK_COLUMNS} FROM stock WHERE medication_id = $1",
            medication_id,
        )
        return _to_record(row) if row else None

    async def adjust_quantity(
        self, uow: UnitOfWork, medication_id: str, delta: int
    ) -> StockRecord:
        conn = active_connection(uow)
        row = await conn.fetchrow(
            f"""
            UPDATE stock
            SET quantity = quantity + $2
            WHERE medication_id = $1 AND quantity + $2 >= 0
            RETURNING {STOCK_COLUMNS}
            """,
            medication_id,
            delta,
        )
        if row is not None:
            return _to_record(row)

        current = await conn.fetchrow(
            "SELECT quantity, medication_name FROM stock "
            "WHERE medication_id = $1",
            medication_id,
        )
        if current is None:
            raise NotFoundError("Medication", medication_id)
        logger.info(
            "Stock adjustment refused",
            extra={
                "medication_id": medication_id,
                "available": current["quantity"],
                "delta": delta,
            },
        )
        raise InsufficientStockError(
            medication_id,
            available=current["quantity"],
            requested=-delta,
            name=current["medication_name"],
        )

    async def save(self, uow: UnitOfWork, record: StockRecord) -> None:
        await active_connection(uow).execute(
            f"""
            INSERT INTO stock ({STOCK_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (medication_id)
            DO UPDATE SET
                pharmacy_id = EXCLUDED.pharmacy_id,
                medication_name = EXCLUDED.medication_name,
                quantity = EXCLUDED.quantity,
                unit_price = EXCLUDED.unit_price,
                low_stock_threshold = EXCLUDED.low_stock_threshold
            """,
            record.medication_id,
            record.pharmacy_id,
            record.medication_name,
            record.quantity,
            record.unit_price,
            record.low_stock_threshold,
        )
