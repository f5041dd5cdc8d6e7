"""
Tests for the pure domain rules: the two status machines, order pricing and
the order number format.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from pharmacy.domain import (
    ORDER_TRANSITIONS,
    REQUEST_TRANSITIONS,
    TERMINAL_ORDER_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    Actor,
    CreateMedicationRequest,
    CreateOrderRequest,
    OrderStatus,
    RequestStatus,
    Role,
    StockRecord,
    compute_totals,
    ensure_order_transition,
    ensure_request_transition,
    format_order_number,
    money,
    next_order_number,
    to_minor_units,
)
from pharmacy.errors import InvalidTransitionError

from .factories import (
    DeliveryAddressFactory,
    MedicationRequestFactory,
    OrderFactory,
    OrderLineItemFactory,
)

AT = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


class TestRequestStateMachine:
    def test_terminal_statuses(self) -> None:
        assert TERMINAL_REQUEST_STATUSES == {
            RequestStatus.FULFILLED,
            RequestStatus.CANCELLED,
        }

    def test_every_status_has_an_entry(self) -> None:
        assert set(REQUEST_TRANSITIONS) == set(RequestStatus)

    @pytest.mark.parametrize(
        "current,target",
        [
            (RequestStatus.PENDING, RequestStatus.PROCESSING),
            (RequestStatus.PENDING, RequestStatus.UNAVAILABLE),
            (RequestStatus.PROCESSING, RequestStatus.AVAILABLE),
            (RequestStatus.AVAILABLE, RequestStatus.FULFILLED),
            (RequestStatus.UNAVAILABLE, RequestStatus.CANCELLED),
        ],
    )
    def test_allowed_transitions(
        self, current: RequestStatus, target: RequestStatus
    ) -> None:
        ensure_request_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (RequestStatus.PENDING, RequestStatus.AVAILABLE),
            (RequestStatus.PENDING, RequestStatus.FULFILLED),
            (RequestStatus.AVAILABLE, RequestStatus.PENDING),
            (RequestStatus.FULFILLED, RequestStatus.AVAILABLE),
            (RequestStatus.CANCELLED, RequestStatus.PENDING),
        ],
    )
    def test_rejected_transitions(
        self, current: RequestStatus, target: RequestStatus
    ) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_request_transition(current, target)

        assert exc_info.value.current == current.value
        assert exc_info.value.requested == target.value

    def test_transition_to_updates_status(self) -> None:
        request = MedicationRequestFactory.build(status=RequestStatus.PENDING)

        request.transition_to(RequestStatus.PROCESSING)

        assert request.status == RequestStatus.PROCESSING

    def test_revert_to_available_leaves_fulfilled(self) -> None:
        request = MedicationRequestFactory.build(
            status=RequestStatus.FULFILLED
        )

        request.revert_to_available()

        assert request.status == RequestStatus.AVAILABLE

    def test_create_request_rejects_zero_quantity(self) -> None:
        with pytest.raises(ValidationError):
            CreateMedicationRequest(
                pharmacy_id="pharmacy-1",
                medication_name="Amoxicillin",
                quantity=0,
            )


class TestOrderStateMachine:
    def test_terminal_statuses(self) -> None:
        assert TERMINAL_ORDER_STATUSES == {
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        }

    def test_every_live_status_can_be_cancelled(self) -> None:
        for status, targets in ORDER_TRANSITIONS.items():
            if status not in TERMINAL_ORDER_STATUSES:
                assert OrderStatus.CANCELLED in targets

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.CONFIRMED, OrderStatus.DELIVERED),
            (OrderStatus.CONFIRMED, OrderStatus.OUT_FOR_DELIVERY),
            (OrderStatus.PACKED, OrderStatus.CONFIRMED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.CONFIRMED),
        ],
    )
    def test_rejected_transitions(
        self, current: OrderStatus, target: OrderStatus
    ) -> None:
        with pytest.raises(InvalidTransitionError):
            ensure_order_transition(current, target)

    def test_error_lists_allowed_targets(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_order_transition(
                OrderStatus.CONFIRMED, OrderStatus.DELIVERED
            )

        assert exc_info.value.allowed == ["cancelled", "packed"]
        assert "Allowed: cancelled, packed" in str(exc_info.value)

    def test_advance_to_delivered_records_delivery(self) -> None:
        order = OrderFactory.build(status=OrderStatus.OUT_FOR_DELIVERY)

        order.advance_to(OrderStatus.DELIVERED, AT, location="Front door")

        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery == AT
        assert order.updated_at == AT
        assert order.tracking[-1].status == "delivered"
        assert order.tracking[-1].location == "Front door"
        assert order.is_terminal

    def test_rejected_advance_leaves_order_unchanged(self) -> None:
        order = OrderFactory.build()
        tracking_before = len(order.tracking)

        with pytest.raises(InvalidTransitionError):
            order.advance_to(OrderStatus.DELIVERED, AT)

        assert order.status == OrderStatus.CONFIRMED
        assert len(order.tracking) == tracking_before


class TestPricing:
    def test_totals_for_reference_order(self) -> None:
        items = [OrderLineItemFactory.build(quantity=2)]

        subtotal, tax, total = compute_totals(items, Decimal("3.00"))

        assert subtotal == Decimal("11.98")
        assert tax == Decimal("0.60")
        assert total == Decimal("15.58")

    def test_tax_rounds_half_up(self) -> None:
        items = [
            OrderLineItemFactory.build(quantity=1, unit_price=Decimal("0.10"))
        ]

        _, tax, total = compute_totals(items, Decimal("0"))

        assert tax == Decimal("0.01")
        assert total == Decimal("0.11")

    def test_line_total(self) -> None:
        line = OrderLineItemFactory.build(
            quantity=3, unit_price=Decimal("1.335")
        )

        assert line.line_total == Decimal("4.01")

    def test_money_quantizes_to_cents(self) -> None:
        assert money(Decimal("2.345")) == Decimal("2.35")
        assert money(Decimal("2")) == Decimal("2.00")

    def test_order_rejects_inconsistent_totals(self) -> None:
        with pytest.raises(ValidationError):
            OrderFactory.build(total_amount=Decimal("99.99"))

    def test_change_delivery_fee_recomputes_total(self) -> None:
        order = OrderFactory.build()
        assert order.total_amount == Decimal("15.58")

        order.change_delivery_fee(Decimal("5"))

        assert order.delivery_fee == Decimal("5.00")
        assert order.total_amount == Decimal("17.58")

    def test_order_request_requires_items(self) -> None:
        with pytest.raises(ValidationError):
            CreateOrderRequest(
                request_id="req-1",
                delivery_address=DeliveryAddressFactory.build(),
                items=[],
            )

    def test_to_minor_units(self) -> None:
        assert to_minor_units(Decimal("15.58")) == 1558
        assert to_minor_units(Decimal("0.105")) == 11


class TestOrderNumbers:
    def test_format_pads_to_six_digits(self) -> None:
        assert format_order_number(2025, 7) == "ORD-2025-000007"

    def test_first_number_of_the_year(self) -> None:
        assert next_order_number(None, 2025) == "ORD-2025-000001"

    def test_increments_latest(self) -> None:
        assert (
            next_order_number("ORD-2025-000041", 2025) == "ORD-2025-000042"
        )

    def test_rejects_number_from_another_year(self) -> None:
        with pytest.raises(ValueError):
            next_order_number("ORD-2024-000041", 2025)

    def test_padded_numbers_sort_like_integers(self) -> None:
        numbers = [format_order_number(2025, n) for n in (9, 10, 100, 2)]

        assert max(numbers) == "ORD-2025-000100"


class TestStockAndActors:
    def test_low_stock_is_inclusive_of_threshold(self) -> None:
        record = StockRecord(
            medication_id="med-a",
            pharmacy_id="pharmacy-1",
            medication_name="Amoxicillin",
            quantity=10,
        )

        assert record.is_low_stock
        assert not record.model_copy(update={"quantity": 11}).is_low_stock

    def test_stock_cannot_be_negative(self) -> None:
        with pytest.raises(ValidationError):
            StockRecord(
                medication_id="med-a",
                pharmacy_id="pharmacy-1",
                medication_name="Amoxicillin",
                quantity=-1,
            )

    @pytest.mark.parametrize(
        "role,elevated",
        [
            (Role.PATIENT, False),
            (Role.DELIVERY_PARTNER, False),
            (Role.PHARMACY_STAFF, True),
            (Role.SYSTEM_ADMIN, True),
        ],
    )
    def test_elevated_roles(self, role: Role, elevated: bool) -> None:
        assert Actor(user_id="u", role=role).is_elevated is elevated
