"""
Tests for notification delivery: the best-effort dispatch used by the use
cases, the Temporal notifier, the dispatch workflow and the activity
registrations behind it.

Workflow tests patch ``workflow.execute_activity`` rather than running a
Temporal server; the workflow only orchestrates activities.
"""

import logging
from typing import Any, Optional, Protocol
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio import activity
from temporalio.common import WorkflowIDReusePolicy
from temporalio.testing import ActivityEnvironment

from pharmacy.domain import NotificationEvent, NotificationKind
from pharmacy.repos.temporal.activities import TemporalNotificationSender
from pharmacy.repos.temporal.decorators import (
    temporal_activity_registration,
)
from pharmacy.repos.temporal.notifier import TemporalNotifier
from pharmacy.usecase import _dispatch_notification
from pharmacy.workflow import NotificationDispatchWorkflow


@pytest.fixture
def event() -> NotificationEvent:
    return NotificationEvent(
        event_id="evt-1",
        kind=NotificationKind.ORDER_STATUS_CHANGED,
        recipient_id="patient-1",
        subject="Order Update: PACKED",
        body="Your order ORD-2025-000001 is now packed.",
        order_id="order-1",
    )


class FakeActivityError(Exception):
    """Stands in for temporalio's ActivityError, which only the worker
    runtime constructs."""

    pass


@pytest.mark.asyncio
async def test_dispatch_swallows_notifier_errors(
    event: NotificationEvent, caplog: pytest.LogCaptureFixture
) -> None:
    notifier = MagicMock()
    notifier.notify = AsyncMock(side_effect=ConnectionError("down"))

    with caplog.at_level(logging.ERROR, logger="pharmacy.usecase"):
        await _dispatch_notification(notifier, event)

    notifier.notify.assert_awaited_once_with(event)
    assert "Notification dispatch failed" in caplog.text


@pytest.mark.asyncio
async def test_temporal_notifier_starts_dispatch_workflow(
    event: NotificationEvent,
) -> None:
    client = AsyncMock()
    client.start_workflow.return_value = MagicMock(id="notify-evt-1")
    notifier = TemporalNotifier(client, task_queue="test-queue")

    await notifier.notify(event)

    client.start_workflow.assert_awaited_once_with(
        NotificationDispatchWorkflow.run,
        event,
        id="notify-evt-1",
        task_queue="test-queue",
        id_reuse_policy=WorkflowIDReusePolicy.REJECT_DUPLICATE,
    )


class TestNotificationDispatchWorkflow:
    @pytest.mark.asyncio
    async def test_sends_email_then_sms(
        self, event: NotificationEvent
    ) -> None:
        with patch(
            "temporalio.workflow.execute_activity",
            new=AsyncMock(return_value=None),
        ) as mock_execute_activity, patch("temporalio.workflow.logger"):
            result = await NotificationDispatchWorkflow().run(event)

        assert result == {"delivered": ["email", "sms"], "failed": []}
        names = [
            call.args[0] for call in mock_execute_activity.await_args_list
        ]
        assert names == [
            "pharmacy.notification_sender.send_email",
            "pharmacy.notification_sender.send_sms",
        ]
        first_call = mock_execute_activity.await_args_list[0]
        assert first_call.kwargs["args"] == (event,)
        assert first_call.kwargs["retry_policy"].maximum_attempts == 5

    @pytest.mark.asyncio
    async def test_failed_channel_does_not_stop_the_other(
        self, event: NotificationEvent
    ) -> None:
        with patch(
            "temporalio.workflow.execute_activity",
            new=AsyncMock(side_effect=[FakeActivityError("smtp"), None]),
        ), patch("temporalio.workflow.logger"), patch(
            "pharmacy.workflow.ActivityError", FakeActivityError
        ):
            workflow_instance = NotificationDispatchWorkflow()
            result = await workflow_instance.run(event)

        assert result == {"delivered": ["sms"], "failed": ["email"]}
        assert workflow_instance.get_delivery_status() == result


class TestNotificationActivities:
    def test_sender_methods_are_registered_as_activities(self) -> None:
        # Use dir() since hasattr() does not see Temporal's dunder
        # attribute on wrapped functions
        assert "__temporal_activity_definition" in dir(
            TemporalNotificationSender.send_email
        )
        assert "__temporal_activity_definition" in dir(
            TemporalNotificationSender.send_sms
        )

    @pytest.mark.asyncio
    async def test_activities_run_the_mock_sender(
        self, event: NotificationEvent, caplog: pytest.LogCaptureFixture
    ) -> None:
        sender = TemporalNotificationSender()
        env = ActivityEnvironment()

        with caplog.at_level(logging.INFO):
            await env.run(sender.send_email, event)
            await env.run(sender.send_sms, event)

        assert "[Email Mock] Order Update: PACKED" in caplog.text
        assert "[SMS Mock]" in caplog.text


class Greeter(Protocol):
    async def greet(self, name: str) -> str: ...

    async def _secret(self) -> None: ...

    def sync_hello(self) -> str: ...


class PlainGreeter(Greeter):
    async def greet(self, name: str) -> str:
        return f"hello {name}"

    async def _secret(self) -> None:
        return None

    def sync_hello(self) -> str:
        return "hello"

    async def not_in_protocol(self) -> Optional[str]:
        return None


def test_registration_only_wraps_public_async_protocol_methods() -> None:
    captured_names = []
    original_activity_defn = activity.defn

    def capture_activity_defn(name: Optional[str] = None, **kwargs: Any) -> Any:
        if name:
            captured_names.append(name)
        return original_activity_defn(name=name, **kwargs)

    with patch(
        "pharmacy.repos.temporal.decorators.activity.defn",
        side_effect=capture_activity_defn,
    ):

        @temporal_activity_registration("test.greeter")
        class ActivityGreeter(PlainGreeter):
            pass

    assert captured_names == ["test.greeter.greet"]
    assert "__temporal_activity_definition" in dir(ActivityGreeter.greet)
    assert "__temporal_activity_definition" not in dir(
        ActivityGreeter.not_in_protocol
    )
