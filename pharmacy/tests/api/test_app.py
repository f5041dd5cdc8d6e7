"""
Tests for application-level behavior: health check and the mapping of
fulfillment errors onto HTTP status codes.
"""

from fastapi.testclient import TestClient

from pharmacy.api.app import status_code_for
from pharmacy.errors import (
    ConflictError,
    ForbiddenError,
    FulfillmentError,
    InsufficientStockError,
    InvalidOperationError,
    InvalidTransitionError,
    NotFoundError,
    PaymentFailedError,
)


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "timestamp" in body


def test_error_status_codes() -> None:
    assert status_code_for(NotFoundError("Order", "o-1")) == 404
    assert status_code_for(ForbiddenError("no")) == 403
    assert status_code_for(ConflictError("again")) == 409
    assert status_code_for(InvalidOperationError("terminal")) == 400
    assert status_code_for(InvalidTransitionError("a", "b", [])) == 400
    assert status_code_for(InsufficientStockError("m", 1, 2)) == 400
    assert status_code_for(PaymentFailedError("declined")) == 400
    assert status_code_for(FulfillmentError("unknown")) == 500


def test_missing_identity_headers_are_rejected(client: TestClient) -> None:
    response = client.get("/orders")

    assert response.status_code == 422
