"""
In-memory implementation of StockRepository.
"""

import logging
from typing import Optional

from pharmacy.domain import StockRecord
from pharmacy.errors import InsufficientStockError, NotFoundError
from pharmacy.repositories import StockRepository, UnitOfWork

from .unit_of_work import active_tables

logger = logging.getLogger(__name__)


class MemoryStockRepository(StockRepository):
    async def get(
        self, uow: UnitOfWork, medication_id: str
    ) -> Optional[StockRecord]:
        record = active_tables(uow).stock.get(medication_id)
        return record.model_copy() if record else None

    async def adjust_quantity(
        self, uow: UnitOfWork, medication_id: str, delta: int
    ) -> StockRecord:
        stock = active_tables(uow).stock
        record = stock.get(medication_id)
        if record is None:
            raise NotFoundError("Medication", medication_id)

        quantity = record.quantity + delta
        if quantity < 0:
            raise InsufficientStockError(
                medication_id,
                available=record.quantity,
                requested=-delta,
                name=record.medication_name,
            )

        updated = record.model_copy(update={"quantity": quantity})
        stock[medication_id] = updated
        logger.debug(
            "Adjusted stock in memory",
            extra={
                "medication_id": medication_id,
                "delta": delta,
                "quantity": quantity,
            },
        )
        return updated.model_copy()

    async def save(self, uow: UnitOfWork, record: StockRecord) -> None:
        active_tables(uow).stock[record.medication_id] = record.model_copy()
