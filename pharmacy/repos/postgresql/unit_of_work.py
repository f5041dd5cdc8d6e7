"""
PostgreSQL unit of work: one pooled connection running one read-committed
transaction.
"""

import logging
from types import TracebackType
from typing import Optional, Type

from asyncpg import Connection, Pool
from asyncpg.transaction import Transaction

from pharmacy.repositories import UnitOfWork

logger = logging.getLogger(__name__)


class PostgreSQLUnitOfWork(UnitOfWork):
    def __init__(self, pool: Pool):
        self.pool = pool
        self._connection: Optional[Connection] = None
        self._transaction: Optional[Transaction] = None

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise RuntimeError("Unit of work has not been started")
        return self._connection

    async def __aenter__(self) -> "PostgreSQLUnitOfWork":
        if self._connection is not None:
            raise RuntimeError("Unit of work already started")
        self._connection = await self.pool.acquire()
        try:
            self._transaction = self._connection.transaction(
                isolation="read_committed"
            )
            await self._transaction.start()
        except Exception:
            await self.pool.release(self._connection)
            self._connection = None
            raise
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._connection is None or self._transaction is None:
            return
        try:
            if exc_type is None:
                await self._transaction.commit()
                logger.debug("PostgreSQL transaction committed")
            else:
                await self._transaction.rollback()
                logger.debug(
                    "PostgreSQL transaction rolled back",
                    extra={"error_type": exc_type.__name__},
                )
        finally:
            await self.pool.release(self._connection)
            self._connection = None
            self._transaction = None


class PostgreSQLUnitOfWorkFactory:
    def __init__(self, pool: Pool):
        self.pool = pool

    def __call__(self) -> PostgreSQLUnitOfWork:
        return PostgreSQLUnitOfWork(self.pool)


def active_connection(uow: UnitOfWork) -> Connection:
    if not isinstance(uow, PostgreSQLUnitOfWork):
        raise RuntimeError(
            "PostgreSQL repositories need a PostgreSQLUnitOfWork, got "
            f"{type(uow).__name__}"
        )
    return uow.connection
