"""
Workflow-side proxies. Used *inside* Temporal workflows, where every side
effect has to go through an activity.
"""

from pharmacy.repos.temporal.activity_names import (
    NOTIFICATION_SENDER_ACTIVITY_BASE,
)
from pharmacy.repos.temporal.decorators import temporal_workflow_proxy
from pharmacy.repositories import NotificationSender


@temporal_workflow_proxy(
    NOTIFICATION_SENDER_ACTIVITY_BASE,
    default_timeout_seconds=30,
    maximum_attempts=5,
)
class WorkflowNotificationSenderProxy(NotificationSender):
    """NotificationSender whose methods run as activities."""

    pass
