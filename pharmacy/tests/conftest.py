"""
Shared fixtures: a seeded in-memory store, a recording notifier, a
scriptable payment gateway, a fixed clock and every use case wired to
them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

import pytest
import pytest_asyncio

from pharmacy.domain import Actor, Order, Role, StockRecord
from pharmacy.repos.memory import (
    MemoryDatabase,
    MemoryOrderRepository,
    MemoryPaymentGateway,
    MemoryRequestRepository,
    MemoryStockRepository,
    MemoryUnitOfWorkFactory,
    RecordingNotifier,
)
from pharmacy.usecase import (
    AdvanceOrderStatusUseCase,
    CancelOrderUseCase,
    CreateOrderUseCase,
    GetOrderUseCase,
    MedicationRequestUseCase,
    OrderMaintenanceUseCase,
    ProcessPaymentUseCase,
)

from .factories import (
    PATIENT_ID,
    PHARMACY_ID,
    CreateOrderRequestFactory,
    MedicationRequestFactory,
)

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def now() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def database() -> MemoryDatabase:
    """Memory database seeded with two stock records and one available
    request (``req-1``) owned by ``patient-1``."""
    database = MemoryDatabase()
    database.tables.stock["med-a"] = StockRecord(
        medication_id="med-a",
        pharmacy_id=PHARMACY_ID,
        medication_name="Amoxicillin 500mg",
        quantity=50,
        unit_price=Decimal("5.99"),
    )
    database.tables.stock["med-b"] = StockRecord(
        medication_id="med-b",
        pharmacy_id=PHARMACY_ID,
        medication_name="Ibuprofen 200mg",
        quantity=12,
        unit_price=Decimal("2.50"),
    )
    database.tables.requests["req-1"] = MedicationRequestFactory.build(
        request_id="req-1"
    )
    return database


@pytest.fixture
def uow_factory(database: MemoryDatabase) -> MemoryUnitOfWorkFactory:
    return MemoryUnitOfWorkFactory(database)


@pytest.fixture
def request_repo() -> MemoryRequestRepository:
    return MemoryRequestRepository()


@pytest.fixture
def order_repo() -> MemoryOrderRepository:
    return MemoryOrderRepository()


@pytest.fixture
def stock_repo() -> MemoryStockRepository:
    return MemoryStockRepository()


@pytest.fixture
def payment_gateway() -> MemoryPaymentGateway:
    return MemoryPaymentGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# --- Actors ---


@pytest.fixture
def patient() -> Actor:
    return Actor(user_id=PATIENT_ID, role=Role.PATIENT)


@pytest.fixture
def other_patient() -> Actor:
    return Actor(user_id="patient-2", role=Role.PATIENT)


@pytest.fixture
def staff() -> Actor:
    return Actor(
        user_id="staff-1", role=Role.PHARMACY_STAFF, pharmacy_id=PHARMACY_ID
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=Role.SYSTEM_ADMIN)


@pytest.fixture
def courier() -> Actor:
    return Actor(user_id="courier-1", role=Role.DELIVERY_PARTNER)


# --- Use cases ---


@pytest.fixture
def create_order_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    request_repo: MemoryRequestRepository,
    order_repo: MemoryOrderRepository,
    stock_repo: MemoryStockRepository,
    notifier: RecordingNotifier,
    now: Callable[[], datetime],
) -> CreateOrderUseCase:
    return CreateOrderUseCase(
        uow_factory=uow_factory,
        request_repo=request_repo,
        order_repo=order_repo,
        stock_repo=stock_repo,
        notifier=notifier,
        now=now,
    )


@pytest.fixture
def process_payment_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    order_repo: MemoryOrderRepository,
    payment_gateway: MemoryPaymentGateway,
    notifier: RecordingNotifier,
    now: Callable[[], datetime],
) -> ProcessPaymentUseCase:
    return ProcessPaymentUseCase(
        uow_factory=uow_factory,
        order_repo=order_repo,
        payment_gateway=payment_gateway,
        notifier=notifier,
        now=now,
    )


@pytest.fixture
def cancel_order_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    order_repo: MemoryOrderRepository,
    request_repo: MemoryRequestRepository,
    stock_repo: MemoryStockRepository,
    payment_gateway: MemoryPaymentGateway,
    notifier: RecordingNotifier,
    now: Callable[[], datetime],
) -> CancelOrderUseCase:
    return CancelOrderUseCase(
        uow_factory=uow_factory,
        order_repo=order_repo,
        request_repo=request_repo,
        stock_repo=stock_repo,
        payment_gateway=payment_gateway,
        notifier=notifier,
        now=now,
    )


@pytest.fixture
def advance_order_status_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    order_repo: MemoryOrderRepository,
    cancel_order_use_case: CancelOrderUseCase,
    notifier: RecordingNotifier,
    now: Callable[[], datetime],
) -> AdvanceOrderStatusUseCase:
    return AdvanceOrderStatusUseCase(
        uow_factory=uow_factory,
        order_repo=order_repo,
        cancel_order=cancel_order_use_case,
        notifier=notifier,
        now=now,
    )


@pytest.fixture
def order_maintenance_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    order_repo: MemoryOrderRepository,
    now: Callable[[], datetime],
) -> OrderMaintenanceUseCase:
    return OrderMaintenanceUseCase(
        uow_factory=uow_factory, order_repo=order_repo, now=now
    )


@pytest.fixture
def get_order_use_case(
    uow_factory: MemoryUnitOfWorkFactory, order_repo: MemoryOrderRepository
) -> GetOrderUseCase:
    return GetOrderUseCase(uow_factory=uow_factory, order_repo=order_repo)


@pytest.fixture
def medication_request_use_case(
    uow_factory: MemoryUnitOfWorkFactory,
    request_repo: MemoryRequestRepository,
    notifier: RecordingNotifier,
    now: Callable[[], datetime],
) -> MedicationRequestUseCase:
    return MedicationRequestUseCase(
        uow_factory=uow_factory,
        request_repo=request_repo,
        notifier=notifier,
        now=now,
    )


@pytest_asyncio.fixture
async def order(
    create_order_use_case: CreateOrderUseCase, patient: Actor
) -> Order:
    """Order ``ORD-2025-000001`` for ``req-1``: two units of med-a at 5.99
    with a 3.00 delivery fee (total 15.58)."""
    return await create_order_use_case.create_order(
        patient, CreateOrderRequestFactory.build(request_id="req-1")
    )
