"""
Activity name bases shared by activity registrations and workflow proxies.

Kept in their own module so that the workflow proxies can import them
without transitively importing activity implementations.
"""

NOTIFICATION_SENDER_ACTIVITY_BASE = "pharmacy.notification_sender"

__all__ = ["NOTIFICATION_SENDER_ACTIVITY_BASE"]
