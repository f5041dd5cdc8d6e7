"""
Tests for ProcessPaymentUseCase: charging through the simulated gateway,
recording failures durably and refusing double charges.
"""

import pytest

from pharmacy.domain import (
    Actor,
    NotificationKind,
    Order,
    PaymentMethod,
    PaymentStatus,
)
from pharmacy.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PaymentFailedError,
)
from pharmacy.repos.memory import (
    MemoryDatabase,
    MemoryPaymentGateway,
    RecordingNotifier,
)
from pharmacy.usecase import CancelOrderUseCase, ProcessPaymentUseCase


@pytest.mark.asyncio
async def test_successful_payment(
    process_payment_use_case: ProcessPaymentUseCase,
    payment_gateway: MemoryPaymentGateway,
    database: MemoryDatabase,
    order: Order,
    patient: Actor,
) -> None:
    paid = await process_payment_use_case.process_payment(
        patient, order.order_id, PaymentMethod.CARD
    )

    assert paid.payment_status == PaymentStatus.PAID
    assert paid.payment_method == PaymentMethod.CARD
    assert paid.payment_intent_id is not None

    intent = payment_gateway.intents[paid.payment_intent_id]
    assert intent.amount == 1558
    assert intent.currency == "usd"
    assert intent.status == "succeeded"
    assert intent.metadata == {
        "order_id": order.order_id,
        "order_number": "ORD-2025-000001",
    }
    assert payment_gateway.calls == ["create_intent", "confirm_intent"]

    stored = database.tables.orders[order.order_id]
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.payment_intent_id == paid.payment_intent_id


@pytest.mark.asyncio
async def test_staff_can_take_payment(
    process_payment_use_case: ProcessPaymentUseCase,
    order: Order,
    staff: Actor,
) -> None:
    paid = await process_payment_use_case.process_payment(
        staff, order.order_id, PaymentMethod.CASH
    )

    assert paid.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_already_paid_order_is_not_charged_again(
    process_payment_use_case: ProcessPaymentUseCase,
    payment_gateway: MemoryPaymentGateway,
    order: Order,
    patient: Actor,
) -> None:
    await process_payment_use_case.process_payment(
        patient, order.order_id, PaymentMethod.CARD
    )

    with pytest.raises(InvalidStateError, match="already paid"):
        await process_payment_use_case.process_payment(
            patient, order.order_id, PaymentMethod.CARD
        )

    assert len(payment_gateway.intents) == 1
    assert payment_gateway.calls == ["create_intent", "confirm_intent"]


@pytest.mark.asyncio
async def test_gateway_failure_is_recorded_and_reported(
    process_payment_use_case: ProcessPaymentUseCase,
    payment_gateway: MemoryPaymentGateway,
    database: MemoryDatabase,
    notifier: RecordingNotifier,
    order: Order,
    patient: Actor,
) -> None:
    payment_gateway.fail_on.add("confirm_intent")

    with pytest.raises(PaymentFailedError):
        await process_payment_use_case.process_payment(
            patient, order.order_id, PaymentMethod.CARD
        )

    stored = database.tables.orders[order.order_id]
    assert stored.payment_status == PaymentStatus.FAILED
    assert stored.payment_intent_id is None
    assert notifier.events[-1].kind == NotificationKind.PAYMENT_FAILED


@pytest.mark.asyncio
async def test_failed_payment_can_be_retried(
    process_payment_use_case: ProcessPaymentUseCase,
    payment_gateway: MemoryPaymentGateway,
    order: Order,
    patient: Actor,
) -> None:
    payment_gateway.fail_on.add("create_intent")
    with pytest.raises(PaymentFailedError):
        await process_payment_use_case.process_payment(
            patient, order.order_id, PaymentMethod.CARD
        )

    payment_gateway.fail_on.clear()
    paid = await process_payment_use_case.process_payment(
        patient, order.order_id, PaymentMethod.CARD
    )

    assert paid.payment_status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_cancelled_order_cannot_be_paid(
    process_payment_use_case: ProcessPaymentUseCase,
    cancel_order_use_case: CancelOrderUseCase,
    payment_gateway: MemoryPaymentGateway,
    order: Order,
    patient: Actor,
) -> None:
    await cancel_order_use_case.cancel_order(patient, order.order_id)

    with pytest.raises(InvalidStateError, match="cancelled"):
        await process_payment_use_case.process_payment(
            patient, order.order_id, PaymentMethod.CARD
        )

    assert payment_gateway.calls == []


@pytest.mark.asyncio
async def test_other_patient_cannot_pay(
    process_payment_use_case: ProcessPaymentUseCase,
    payment_gateway: MemoryPaymentGateway,
    order: Order,
    other_patient: Actor,
) -> None:
    with pytest.raises(ForbiddenError):
        await process_payment_use_case.process_payment(
            other_patient, order.order_id, PaymentMethod.CARD
        )

    assert payment_gateway.calls == []


@pytest.mark.asyncio
async def test_unknown_order(
    process_payment_use_case: ProcessPaymentUseCase, patient: Actor
) -> None:
    with pytest.raises(NotFoundError):
        await process_payment_use_case.process_payment(
            patient, "missing", PaymentMethod.CARD
        )
