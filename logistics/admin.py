"""
Django Admin configuration for LOGISTICS app.
"""

from django.contrib import admin
from .models import Shipment, TrackingEvent


class TrackingEventInline(admin.TabularInline):
    """Read-only history: tracking events are append-only."""

    model = TrackingEvent
    extra = 0
    can_delete = False
    fields = ('recorded_at', 'event_type', 'description', 'lat', 'lng', 'speed_kmh')
    readonly_fields = fields
    ordering = ('-recorded_at',)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    """Admin for Shipment with full details."""

    list_display = (
        'tracking_code',
        'status',
        'service_type',
        'recipient_name',
        'courier_name',
        'price_quoted',
        'estimated_delivery',
        'created_at'
    )
    list_filter = ('status', 'service_type', 'created_at')
    search_fields = (
        'tracking_code',
        'sender_name',
        'recipient_name',
        'customer__email',
        'assigned_courier__email'
    )
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    inlines = [TrackingEventInline]

    readonly_fields = (
        'id',
        'tracking_code',
        'status',
        'distance_km',
        'price_quoted',
        'created_at',
        'updated_at',
        'actual_pickup',
        'actual_delivery'
    )

    fieldsets = (
        ('Identification', {
            'fields': ('id', 'tracking_code', 'status', 'service_type')
        }),
        ('Actors', {
            'fields': ('customer', 'assigned_courier')
        }),
        ('Sender', {
            'fields': ('sender_name', 'sender_phone', 'sender_email', 'sender_address', 'sender_lat', 'sender_lng')
        }),
        ('Recipient', {
            'fields': (
                'recipient_name', 'recipient_phone', 'recipient_email',
                'recipient_address', 'recipient_lat', 'recipient_lng'
            )
        }),
        ('Package', {
            'fields': ('weight_kg', 'dimensions', 'special_instructions')
        }),
        ('Pricing', {
            'fields': ('distance_km', 'price_quoted', 'price_final')
        }),
        ('Timeline', {
            'fields': ('created_at', 'updated_at', 'estimated_delivery', 'actual_pickup', 'actual_delivery')
        }),
    )

    @admin.display(description='Courier')
    def courier_name(self, obj):
        if obj.assigned_courier:
            return obj.assigned_courier.full_name or obj.assigned_courier.email
        return '-'

    def has_delete_permission(self, request, obj=None):
        return False
