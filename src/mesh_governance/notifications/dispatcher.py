"""
Fire-and-forget delivery of access notifications.

Delivery (e-mail, Slack, Teams) belongs to external collaborators that
implement ``Notifier``. The lifecycle manager hands events to the
dispatcher and never waits on the result; delivery failures are logged.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from mesh_governance.core import get_logger, utc_now

logger = get_logger(__name__)


class NotificationType(str, Enum):
    ACCESS_REQUESTED = "access_requested"
    ACCESS_APPROVED = "access_approved"
    ACCESS_DENIED = "access_denied"
    GRANT_REVOKED = "grant_revoked"


@dataclass
class Notification:
    """A message for a product owner or requester."""

    notification_type: NotificationType
    recipient: str
    product_id: str
    subject_id: str
    message: str
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_type": self.notification_type.value,
            "recipient": self.recipient,
            "product_id": self.product_id,
            "subject_id": self.subject_id,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class Notifier(Protocol):
    """External delivery channel."""

    def send(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default channel: writes notifications to the structured log."""

    def send(self, notification: Notification) -> None:
        logger.info("notification_sent", **notification.to_dict())


class NotificationDispatcher:
    """Submits notifications to a notifier on a background thread pool."""

    def __init__(self, notifier: Optional[Notifier] = None, max_workers: int = 2):
        self._notifier = notifier or LoggingNotifier()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="mesh-gov-notify",
        )

    def dispatch(self, notification: Notification) -> Future:
        """Queue a notification and return immediately."""
        return self._executor.submit(self._deliver, notification)

    def _deliver(self, notification: Notification) -> None:
        try:
            self._notifier.send(notification)
        except Exception as e:
            logger.error(
                "notification_delivery_failed",
                notification_type=notification.notification_type,
                recipient=notification.recipient,
                error=str(e),
            )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
