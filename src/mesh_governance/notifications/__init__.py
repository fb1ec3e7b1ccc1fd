"""Owner and requester notifications."""

from mesh_governance.notifications.dispatcher import (
    LoggingNotifier,
    Notification,
    NotificationDispatcher,
    NotificationType,
    Notifier,
)

__all__ = [
    "LoggingNotifier",
    "Notification",
    "NotificationDispatcher",
    "NotificationType",
    "Notifier",
]
