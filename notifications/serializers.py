"""
Notifications App Serializers
"""

from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    """Recipient view of a notification."""

    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'payload', 'read', 'read_at', 'created_at']
        read_only_fields = fields
