"""In-memory implementations used for tests and local development."""

from .notifier import LoggingNotifier, RecordingNotifier
from .order import MemoryOrderRepository
from .payment_gateway import MemoryPaymentGateway
from .request import MemoryRequestRepository
from .stock import MemoryStockRepository
from .unit_of_work import (
    MemoryDatabase,
    MemoryUnitOfWork,
    MemoryUnitOfWorkFactory,
)

__all__ = [
    "LoggingNotifier",
    "RecordingNotifier",
    "MemoryDatabase",
    "MemoryOrderRepository",
    "MemoryPaymentGateway",
    "MemoryRequestRepository",
    "MemoryStockRepository",
    "MemoryUnitOfWork",
    "MemoryUnitOfWorkFactory",
]
