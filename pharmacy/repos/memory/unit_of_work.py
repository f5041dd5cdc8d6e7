"""
In-memory unit of work.

The whole database is a set of dictionaries guarded by one asyncio lock.
Entering a unit of work takes the lock and works on a deep copy of the
tables; a clean exit swaps the copy in, an exception simply drops it. Units
of work are therefore fully serialized, which is stronger than the
read-committed isolation the PostgreSQL backend provides.
"""

import asyncio
import copy
import logging
from types import TracebackType
from typing import Dict, Optional, Type

from pharmacy.domain import MedicationRequest, Order, StockRecord
from pharmacy.repositories import UnitOfWork

logger = logging.getLogger(__name__)


class MemoryTables:
    def __init__(self) -> None:
        self.requests: Dict[str, MedicationRequest] = {}
        self.orders: Dict[str, Order] = {}
        self.stock: Dict[str, StockRecord] = {}

    def snapshot(self) -> "MemoryTables":
        return copy.deepcopy(self)


class MemoryDatabase:
    """Process-local database shared by the memory repositories."""

    def __init__(self) -> None:
        self.tables = MemoryTables()
        self.lock = asyncio.Lock()
        self.commits = 0
        self.rollbacks = 0


class MemoryUnitOfWork(UnitOfWork):
    def __init__(self, database: MemoryDatabase) -> None:
        self.database = database
        self.tables: Optional[MemoryTables] = None

    async def __aenter__(self) -> "MemoryUnitOfWork":
        if self.tables is not None:
            raise RuntimeError("Unit of work already started")
        await self.database.lock.acquire()
        self.tables = self.database.tables.snapshot()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        try:
            if exc_type is None and self.tables is not None:
                self.database.tables = self.tables
                self.database.commits += 1
                logger.debug("Memory unit of work committed")
            else:
                self.database.rollbacks += 1
                logger.debug(
                    "Memory unit of work rolled back",
                    extra={
                        "error_type": (
                            exc_type.__name__ if exc_type else None
                        )
                    },
                )
        finally:
            self.tables = None
            self.database.lock.release()


class MemoryUnitOfWorkFactory:
    def __init__(self, database: MemoryDatabase) -> None:
        self.database = database

    def __call__(self) -> MemoryUnitOfWork:
        return MemoryUnitOfWork(self.database)


def active_tables(uow: UnitOfWork) -> MemoryTables:
    """Return the working tables of a started memory unit of work."""
    if not isinstance(uow, MemoryUnitOfWork) or uow.tables is None:
        raise RuntimeError(
            "Memory repositories need a started MemoryUnitOfWork, got "
            f"{type(uow).__name__}"
        )
    return uow.tables
