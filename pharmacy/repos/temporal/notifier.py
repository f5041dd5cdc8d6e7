"""
Notifier that hands events to a Temporal workflow.

Starting the workflow is the only thing awaited; delivery happens on the
worker, so a slow or failing mail provider never blocks a use case.
"""

import logging

from temporalio.client import Client
from temporalio.common import WorkflowIDReusePolicy

from pharmacy.domain import NotificationEvent
from pharmacy.repositories import Notifier
from pharmacy.workflow import NotificationDispatchWorkflow

logger = logging.getLogger(__name__)

DEFAULT_TASK_QUEUE = "pharmacy-notifications"


class TemporalNotifier(Notifier):
    def __init__(
        self, client: Client, task_queue: str = DEFAULT_TASK_QUEUE
    ) -> None:
        self.client = client
        self.task_queue = task_queue

    async def notify(self, event: NotificationEvent) -> None:
        handle = await self.client.start_workflow(
            NotificationDispatchWorkflow.run,
            event,
            id=f"notify-{event.event_id}",
            task_queue=self.task_queue,
            id_reuse_policy=WorkflowIDReusePolicy.REJECT_DUPLICATE,
        )
        logger.debug(
            "Notification workflow started",
            extra={
                "workflow_id": handle.id,
                "kind": event.kind.value,
                "recipient_id": event.recipient_id,
            },
        )
