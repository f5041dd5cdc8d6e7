"""PostgreSQL implementations of the fulfillment stores."""

from .order import PostgreSQLOrderRepository
from .request import PostgreSQLRequestRepository
from .schema import apply_schema, create_pool
from .stock import PostgreSQLStockRepository
from .unit_of_work import PostgreSQLUnitOfWork, PostgreSQLUnitOfWorkFactory

__all__ = [
    "PostgreSQLOrderRepository",
    "PostgreSQLRequestRepository",
    "PostgreSQLStockRepository",
    "PostgreSQLUnitOfWork",
    "PostgreSQLUnitOfWorkFactory",
    "apply_schema",
    "create_pool",
]
