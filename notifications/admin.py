"""
Django Admin configuration for NOTIFICATIONS app.
"""

from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'type', 'user', 'read', 'created_at')
    list_filter = ('type', 'read')
    search_fields = ('title', 'message', 'user__email')
    readonly_fields = ('created_at', 'read_at')
    ordering = ('-created_at',)
