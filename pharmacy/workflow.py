"""
Notification dispatch workflow.

Use cases start this workflow and never wait for it; the worker delivers
each event over email and SMS through activities, so Temporal takes care
of retrying a flaky provider.
"""

from typing import List

from temporalio import workflow
from temporalio.exceptions import ActivityError

from pharmacy.domain import NotificationEvent
from pharmacy.repos.temporal.proxies import WorkflowNotificationSenderProxy


@workflow.defn
class NotificationDispatchWorkflow:
    def __init__(self) -> None:
        self.delivered: List[str] = []
        self.failed: List[str] = []

    @workflow.query
    def get_delivery_status(self) -> dict:
        """Channels delivered and failed so far"""
        return {"delivered": list(self.delivered), "failed": list(self.failed)}

    @workflow.run
    async def run(self, event: NotificationEvent) -> dict:
        workflow.logger.info(
            "Dispatching notification",
            extra={
                "event_id": event.event_id,
                "kind": event.kind.value,
                "recipient_id": event.recipient_id,
            },
        )

        sender = WorkflowNotificationSenderProxy()
        channels = (("email", sender.send_email), ("sms", sender.send_sms))
        for channel, send in channels:
            try:
                await send(event)
            except ActivityError as e:
                # One channel failing must not stop the others.
                self.failed.append(channel)
                workflow.logger.warning(
                    "Notification channel failed",
                    extra={
                        "event_id": event.event_id,
                        "channel": channel,
                        "error": str(e),
                    },
                )
            else:
                self.delivered.append(channel)

        return self.get_delivery_status()
