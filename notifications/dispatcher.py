"""
NOTIFICATIONS App - Notification Dispatcher

Turns shipment lifecycle events into persisted Notification rows:
- dispatch(): the single write primitive
- dispatch_to_many(): fan-out, one row per user, all-or-nothing
- notify_*(): canonical templates for each lifecycle event

Rows are pushed to the recipients' realtime feeds only after the
surrounding transaction commits. A failed write raises PersistenceError;
nothing here retries.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from django.db import DatabaseError, transaction

from core.exceptions import NotFoundError, PersistenceError
from logistics.models import Shipment
from notifications.events import broadcast_notifications
from notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)


# ===========================================
# NOTIFICATION TEMPLATES
# ===========================================

class NotificationTemplates:
    """Title/message templates (plain str.format, no localisation)."""

    SHIPMENT_CREATED = (
        "Shipment Created",
        "Your shipment to {recipient_name} has been created successfully.",
    )
    COURIER_ASSIGNED = (
        "New Delivery Assigned",
        "You have a new delivery to {destination}",
    )
    CUSTOMER_ASSIGNED = (
        "Courier Assigned",
        "{courier_name} has been assigned to your shipment.",
    )
    PICKED_UP = (
        "Package Picked Up",
        "Your package has been picked up and is on its way!",
    )
    OUT_FOR_DELIVERY = (
        "Out for Delivery",
        "Your package is out for delivery and will arrive soon!",
    )
    OUT_FOR_DELIVERY_WITH_ETA = (
        "Out for Delivery",
        "Your shipment {tracking_code} is out for delivery. Expected arrival: {eta}.",
    )
    DELIVERED = (
        "Delivered Successfully",
        "Your package has been delivered! Thank you for using ShipEase.",
    )
    EXCEPTION = (
        "Delivery Issue",
        "There's an issue with your shipment: {reason}",
    )
    FAILED = (
        "Delivery Failed",
        "We could not deliver your shipment {tracking_code}: {reason}",
    )
    CANCELLED = (
        "Shipment Cancelled",
        "Your shipment {tracking_code} has been cancelled.",
    )
    ETA_UPDATE = (
        "Delivery Time Updated",
        "Your delivery time has been updated to {new_eta}",
    )

    @staticmethod
    def render(template, **context):
        title, message = template
        return title.format(**context), message.format(**context)


def format_eta(value: datetime) -> str:
    return value.strftime('%Y-%m-%d %H:%M')


# ===========================================
# WRITE PRIMITIVES
# ===========================================

def _check_payload(payload: dict):
    """A tracking code in the payload must point at a real shipment."""
    tracking_code = payload.get('tracking_code')
    if tracking_code and not Shipment.objects.filter(tracking_code=tracking_code).exists():
        raise NotFoundError(
            f"No shipment with tracking code {tracking_code}",
            tracking_code=tracking_code,
        )


def _publish_on_commit(notifications: List[Notification]):
    transaction.on_commit(lambda: broadcast_notifications(notifications))


def dispatch(
    user_id,
    notification_type: str,
    title: str,
    message: str,
    payload: Optional[dict] = None
) -> Notification:
    """
    Persist one unread notification for `user_id`.

    Raises:
        NotFoundError: payload references an unknown tracking code
        PersistenceError: the database rejected the write
    """
    payload = dict(payload or {})

    try:
        _check_payload(payload)
        with transaction.atomic():
            notification = Notification.objects.create(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                payload=payload,
                read=False,
            )
    except DatabaseError as e:
        logger.error(f"[NOTIFY] Failed to store {notification_type} for {user_id}: {e}")
        raise PersistenceError(
            "Could not store notification",
            user_id=str(user_id),
            type=notification_type,
        ) from e

    logger.info(f"[NOTIFY] {notification_type} -> {str(user_id)[:8]}")
    _publish_on_commit([notification])
    return notification


def dispatch_to_many(
    user_ids: Iterable,
    notification_type: str,
    title: str,
    message: str,
    payload: Optional[dict] = None
) -> List[Notification]:
    """
    Persist the same notification for several users in one batch.

    Either every row is written or none is (PersistenceError).
    Duplicate user ids are collapsed.
    """
    payload = dict(payload or {})
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return []

    rows = [
        Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            payload=dict(payload),
            read=False,
        )
        for user_id in unique_ids
    ]

    try:
        _check_payload(payload)
        with transaction.atomic():
            created = Notification.objects.bulk_create(rows)
    except DatabaseError as e:
        logger.error(
            f"[NOTIFY] Batch of {len(rows)} {notification_type} notifications failed: {e}"
        )
        raise PersistenceError(
            "Could not store notification batch",
            type=notification_type,
            recipients=len(rows),
        ) from e

    logger.info(f"[NOTIFY] {notification_type} -> {len(created)} users")
    _publish_on_commit(created)
    return created


# ===========================================
# LIFECYCLE HELPERS
# ===========================================

def notify_shipment_created(customer_id, tracking_code: str, recipient_name: str) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.SHIPMENT_CREATED,
        recipient_name=recipient_name or 'your recipient',
    )
    return dispatch(
        customer_id, NotificationType.SHIPMENT_CREATED, title, message,
        {'tracking_code': tracking_code},
    )


def notify_courier_assigned(courier_id, tracking_code: str, destination: str) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.COURIER_ASSIGNED,
        destination=destination or 'destination',
    )
    return dispatch(
        courier_id, NotificationType.ASSIGNED, title, message,
        {'tracking_code': tracking_code},
    )


def notify_customer_assigned(customer_id, tracking_code: str, courier_name: Optional[str] = None) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.CUSTOMER_ASSIGNED,
        courier_name=courier_name or 'A courier',
    )
    return dispatch(
        customer_id, NotificationType.ASSIGNED, title, message,
        {'tracking_code': tracking_code},
    )


def notify_picked_up(customer_id, tracking_code: str) -> Notification:
    title, message = NotificationTemplates.render(NotificationTemplates.PICKED_UP)
    return dispatch(
        customer_id, NotificationType.PICKED_UP, title, message,
        {'tracking_code': tracking_code},
    )


def notify_out_for_delivery(customer_id, tracking_code: str, eta: Optional[datetime] = None) -> Notification:
    if eta is None:
        title, message = NotificationTemplates.render(NotificationTemplates.OUT_FOR_DELIVERY)
    else:
        title, message = NotificationTemplates.render(
            NotificationTemplates.OUT_FOR_DELIVERY_WITH_ETA,
            tracking_code=tracking_code,
            eta=format_eta(eta),
        )
    return dispatch(
        customer_id, NotificationType.OUT_FOR_DELIVERY, title, message,
        {'tracking_code': tracking_code},
    )


def notify_delivered(customer_id, tracking_code: str) -> Notification:
    title, message = NotificationTemplates.render(NotificationTemplates.DELIVERED)
    return dispatch(
        customer_id, NotificationType.DELIVERED, title, message,
        {'tracking_code': tracking_code},
    )


def notify_exception(customer_id, tracking_code: str, reason: str) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.EXCEPTION,
        reason=reason or 'unspecified issue',
    )
    return dispatch(
        customer_id, NotificationType.EXCEPTION, title, message,
        {'tracking_code': tracking_code, 'reason': reason},
    )


def notify_failed(customer_id, tracking_code: str, reason: str) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.FAILED,
        tracking_code=tracking_code,
        reason=reason or 'delivery attempt unsuccessful',
    )
    return dispatch(
        customer_id, NotificationType.FAILED, title, message,
        {'tracking_code': tracking_code, 'reason': reason},
    )


def notify_cancelled(customer_id, tracking_code: str) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.CANCELLED,
        tracking_code=tracking_code,
    )
    return dispatch(
        customer_id, NotificationType.CANCELLED, title, message,
        {'tracking_code': tracking_code},
    )


def notify_eta_update(customer_id, tracking_code: str, new_eta: datetime) -> Notification:
    title, message = NotificationTemplates.render(
        NotificationTemplates.ETA_UPDATE,
        new_eta=format_eta(new_eta),
    )
    return dispatch(
        customer_id, NotificationType.ETA_UPDATE, title, message,
        {'tracking_code': tracking_code, 'new_eta': new_eta.isoformat()},
    )
