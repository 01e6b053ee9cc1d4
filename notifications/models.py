"""
NOTIFICATIONS App - In-app notifications for SHIPEASE

One row per recipient. Created by the dispatcher when a shipment moves
through its lifecycle; marked read or deleted by the recipient.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class NotificationType(models.TextChoices):
    """Notification type enumeration."""
    SHIPMENT_CREATED = 'shipment_created', 'Shipment created'
    ASSIGNED = 'assigned', 'Courier assigned'
    PICKED_UP = 'picked_up', 'Picked up'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for delivery'
    DELIVERED = 'delivered', 'Delivered'
    EXCEPTION = 'exception', 'Delivery exception'
    FAILED = 'failed', 'Delivery failed'
    CANCELLED = 'cancelled', 'Cancelled'
    ETA_UPDATE = 'eta_update', 'ETA updated'
    SYSTEM = 'system', 'System'


class NotificationQuerySet(models.QuerySet):

    def for_user(self, user):
        return self.filter(user=user)

    def unread(self):
        return self.filter(read=False)

    def mark_read(self) -> int:
        return self.filter(read=False).update(read=True, read_at=timezone.now())


class Notification(models.Model):
    """A message addressed to one user."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name="Recipient"
    )
    type = models.CharField(
        max_length=30,
        choices=NotificationType.choices,
        verbose_name="Type"
    )
    title = models.CharField(max_length=200)
    message = models.TextField()
    payload = models.JSONField(default=dict, blank=True)

    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read', 'created_at'], name='notif_user_read_created_idx'),
        ]

    def __str__(self):
        return f"{self.type} -> {self.user_id}: {self.title}"

    @property
    def tracking_code(self):
        return (self.payload or {}).get('tracking_code')

    def to_event(self) -> dict:
        """JSON-safe representation pushed to realtime subscribers."""
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'payload': self.payload,
            'read': self.read,
            'created_at': self.created_at.isoformat(),
        }
