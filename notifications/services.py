"""
NOTIFICATIONS App - Recipient-side operations

Listing, unread count, mark read and delete. A user only ever touches
their own notifications; someone else's id behaves as missing.
"""

import logging
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import NotFoundError
from notifications.models import Notification

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    def list_for_user(user, read: Optional[bool] = None):
        qs = Notification.objects.for_user(user)
        if read is not None:
            qs = qs.filter(read=read)
        return qs

    @staticmethod
    def get_for_user(user, notification_id) -> Notification:
        try:
            return Notification.objects.for_user(user).get(pk=notification_id)
        except (Notification.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(
                "Notification not found",
                notification_id=str(notification_id),
            )

    @staticmethod
    def unread_count(user) -> int:
        return Notification.objects.for_user(user).unread().count()

    @classmethod
    def mark_read(cls, user, notification_id) -> Notification:
        notification = cls.get_for_user(user, notification_id)
        Notification.objects.filter(pk=notification.pk).mark_read()
        notification.refresh_from_db(fields=['read', 'read_at'])
        return notification

    @staticmethod
    def mark_all_read(user) -> int:
        updated = Notification.objects.for_user(user).mark_read()
        logger.debug(f"[NOTIFY] {updated} notification(s) marked read for {str(user.pk)[:8]}")
        return updated

    @classmethod
    def delete(cls, user, notification_id):
        notification = cls.get_for_user(user, notification_id)
        notification.delete()
