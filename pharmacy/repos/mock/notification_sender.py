"""
Mock email and SMS senders.

They log what would be sent. Swap in real provider clients (an SMTP relay,
an SMS API) by implementing NotificationSender.
"""

import logging

from pharmacy.domain import NotificationEvent
from pharmacy.repositories import NotificationSender

logger = logging.getLogger(__name__)


class MockNotificationSender(NotificationSender):
    async def send_email(self, event: NotificationEvent) -> None:
        logger.info(
            "[Email Mock] %s",
            event.subject,
            extra={
                "event_id": event.event_id,
                "recipient_id": event.recipient_id,
                "kind": event.kind.value,
                "body": event.body,
            },
        )

    async def send_sms(self, event: NotificationEvent) -> None:
        logger.info(
            "[SMS Mock] %s",
            event.body,
            extra={
                "event_id": event.event_id,
                "recipient_id": event.recipient_id,
                "kind": event.kind.value,
            },
        )
