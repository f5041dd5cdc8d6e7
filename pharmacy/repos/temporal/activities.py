"""
Temporal activity implementations hosted by the notification worker.
"""

from pharmacy.repos.mock.notification_sender import MockNotificationSender
from pharmacy.repos.temporal.activity_names import (
    NOTIFICATION_SENDER_ACTIVITY_BASE,
)
from pharmacy.repos.temporal.decorators import temporal_activity_registration


@temporal_activity_registration(NOTIFICATION_SENDER_ACTIVITY_BASE)
class TemporalNotificationSender(MockNotificationSender):
    """
    MockNotificationSender with each method registered as an activity:

    - send_email -> "pharmacy.notification_sender.send_email"
    - send_sms -> "pharmacy.notification_sender.send_sms"
    """

    pass
