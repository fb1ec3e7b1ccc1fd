"""
Unit tests for notification dispatch from the access lifecycle.
"""

import threading

import pytest

from mesh_governance.access import AccessLifecycleManager
from mesh_governance.models import AccessType, DataProduct, ProductStatus, Sensitivity
from mesh_governance.notifications import (
    Notification,
    NotificationDispatcher,
    NotificationType,
)


class RecordingNotifier:
    """Collects delivered notifications."""

    def __init__(self):
        self.sent: list[Notification] = []
        self._lock = threading.Lock()

    def send(self, notification: Notification) -> None:
        with self._lock:
            self.sent.append(notification)


class FailingNotifier:
    def send(self, notification: Notification) -> None:
        raise ConnectionError("smtp unavailable")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    dispatcher = NotificationDispatcher(notifier=notifier, max_workers=1)
    yield dispatcher
    dispatcher.shutdown()


@pytest.fixture
def manager(catalog, policy_store, audit_log, dispatcher, clock):
    catalog.publish(DataProduct(
        id="res", name="Payroll", domain="Human Resources", owner="joao.oliveira",
        status=ProductStatus.ACTIVE, access_level=Sensitivity.RESTRICTED,
    ))
    return AccessLifecycleManager(catalog, policy_store, audit_log, dispatcher=dispatcher, clock=clock)


def test_owner_notified_of_new_request(manager, dispatcher, notifier):
    request = manager.submit_request("ana.costa", "res", AccessType.API, "Headcount report")
    dispatcher.shutdown(wait=True)

    assert len(notifier.sent) == 1
    notification = notifier.sent[0]
    assert notification.notification_type == NotificationType.ACCESS_REQUESTED
    assert notification.recipient == "joao.oliveira"
    assert notification.subject_id == request.id


def test_requester_notified_of_decision(manager, dispatcher, notifier):
    request = manager.submit_request("ana.costa", "res", AccessType.API, "Headcount report")
    manager.approve(request.id, "joao.oliveira")
    dispatcher.shutdown(wait=True)

    types = [n.notification_type for n in notifier.sent]
    assert types == [NotificationType.ACCESS_REQUESTED, NotificationType.ACCESS_APPROVED]
    assert notifier.sent[1].recipient == "ana.costa"


def test_no_notifications_when_disabled(manager, dispatcher, notifier, policy_store, admin):
    policy_store.update(admin, notify_owners=False)
    manager.submit_request("ana.costa", "res", AccessType.API, "Headcount report")
    dispatcher.shutdown(wait=True)
    assert notifier.sent == []


def test_delivery_failure_does_not_propagate():
    dispatcher = NotificationDispatcher(notifier=FailingNotifier())
    future = dispatcher.dispatch(Notification(
        notification_type=NotificationType.GRANT_REVOKED,
        recipient="ana.costa",
        product_id="res",
        subject_id="grant-1",
        message="Your access to Payroll was revoked",
    ))
    dispatcher.shutdown(wait=True)
    assert future.exception() is None


def test_notification_to_dict():
    notification = Notification(
        notification_type=NotificationType.ACCESS_DENIED,
        recipient="ana.costa",
        product_id="res",
        subject_id="req-1",
        message="denied",
    )
    data = notification.to_dict()
    assert data["notification_type"] == "access_denied"
    assert data["created_at"].endswith("+00:00")
    assert set(data) == {
        "notification_type",
        "recipient",
        "product_id",
        "subject_id",
        "message",
        "created_at",
    }
