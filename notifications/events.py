"""
NOTIFICATIONS App - Real-time push of new notifications

Each user listens on their own group (see consumers.NotificationConsumer).
"""

import logging
from typing import Iterable

from logistics.events import send_group_event

logger = logging.getLogger(__name__)


def user_group(user_id) -> str:
    return f'notifications_{user_id}'


def broadcast_notification(notification) -> bool:
    """Push one saved notification to its recipient's feed."""
    return send_group_event(
        user_group(notification.user_id),
        {'type': 'notification_created', 'notification': notification.to_event()}
    )


def broadcast_notifications(notifications: Iterable) -> int:
    """Push several notifications; returns how many reached the layer."""
    delivered = 0
    for notification in notifications:
        if broadcast_notification(notification):
            delivered += 1
    logger.debug(f"[EVENTS] Pushed {delivered} notification(s)")
    return delivered
