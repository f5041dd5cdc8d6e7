"""
Notifiers that do not leave the process.

``LoggingNotifier`` is the default when no Temporal endpoint is configured;
``RecordingNotifier`` keeps every event for inspection in tests.
"""

import logging
from typing import List

from pharmacy.domain import NotificationEvent
from pharmacy.repositories import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    async def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "Notification",
            extra={
                "event_id": event.event_id,
                "kind": event.kind.value,
                "recipient_id": event.recipient_id,
                "subject": event.subject,
            },
        )


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: List[NotificationEvent] = []

    async def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)
