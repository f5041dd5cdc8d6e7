"""
API test fixtures: the real application with its component dependencies
overridden by the in-memory backends from the parent conftest.
"""

from typing import Dict, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pharmacy.api.app import app as application
from pharmacy.api.dependencies import (
    get_notifier,
    get_order_repository,
    get_payment_gateway,
    get_request_repository,
    get_stock_repository,
    get_unit_of_work_factory,
)
from pharmacy.repos.memory import (
    MemoryOrderRepository,
    MemoryPaymentGateway,
    MemoryRequestRepository,
    MemoryStockRepository,
    MemoryUnitOfWorkFactory,
    RecordingNotifier,
)


@pytest.fixture
def app(
    uow_factory: MemoryUnitOfWorkFactory,
    request_repo: MemoryRequestRepository,
    order_repo: MemoryOrderRepository,
    stock_repo: MemoryStockRepository,
    payment_gateway: MemoryPaymentGateway,
    notifier: RecordingNotifier,
) -> Generator[FastAPI, None, None]:
    application.dependency_overrides[get_unit_of_work_factory] = (
        lambda: uow_factory
    )
    application.dependency_overrides[get_request_repository] = (
        lambda: request_repo
    )
    application.dependency_overrides[get_order_repository] = (
        lambda: order_repo
    )
    application.dependency_overrides[get_stock_repository] = (
        lambda: stock_repo
    )
    application.dependency_overrides[get_payment_gateway] = (
        lambda: payment_gateway
    )
    application.dependency_overrides[get_notifier] = lambda: notifier
    yield application
    # Clean up dependency overrides
    application.dependency_overrides = {}


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


def actor_headers(
    user_id: str, role: str, pharmacy_id: str = ""
) -> Dict[str, str]:
    headers = {"X-User-Id": user_id, "X-User-Role": role}
    if pharmacy_id:
        headers["X-Pharmacy-Id"] = pharmacy_id
    return headers


PATIENT = actor_headers("patient-1", "patient")
OTHER_PATIENT = actor_headers("patient-2", "patient")
STAFF = actor_headers("staff-1", "pharmacy_staff", "pharmacy-1")
COURIER = actor_headers("courier-1", "delivery_partner")
