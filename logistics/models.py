"""
LOGISTICS App - Shipments & Tracking for SHIPEASE

Handles: Shipments, Tracking Events (append-only history & telemetry)
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.exceptions import ValidationError


class ShipmentStatus(models.TextChoices):
    """Shipment lifecycle status (the only values ever written)."""
    DRAFT = 'draft', 'Draft'
    PENDING = 'pending', 'Pending'
    ASSIGNED = 'assigned', 'Assigned'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'
    EXCEPTION = 'exception', 'Exception'


class ServiceType(models.TextChoices):
    """Service tier selected at creation."""
    SAME_DAY = 'same_day', 'Same Day'
    NEXT_DAY = 'next_day', 'Next Day'
    STANDARD = 'standard', 'Standard'
    EXPRESS = 'express', 'Express'
    FREIGHT = 'freight', 'Freight'
    PALLET = 'pallet', 'Pallet'
    CROSS_BORDER = 'cross_border', 'Cross Border'


class TrackingEventType(models.TextChoices):
    """Kinds of entries in a shipment's tracking history."""
    CREATED = 'created', 'Created'
    ASSIGNED = 'assigned', 'Assigned'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'
    EXCEPTION = 'exception', 'Exception'
    LOCATION_UPDATE = 'location_update', 'Location Update'


class Shipment(models.Model):
    """
    Core shipment model.

    The tracking code is assigned once at creation and never changes.
    Price is quoted at creation; price_final is set when billing closes.
    Shipments are never deleted: terminal statuses close them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tracking_code = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name="Tracking code"
    )

    # Actors
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='shipments',
        verbose_name="Customer"
    )
    assigned_courier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_shipments',
        verbose_name="Courier"
    )

    # Sender
    sender_name = models.CharField(max_length=150)
    sender_phone = models.CharField(max_length=30)
    sender_email = models.EmailField(blank=True)
    sender_address = models.JSONField(default=dict)
    sender_lat = models.FloatField(null=True, blank=True)
    sender_lng = models.FloatField(null=True, blank=True)

    # Recipient
    recipient_name = models.CharField(max_length=150)
    recipient_phone = models.CharField(max_length=30)
    recipient_email = models.EmailField(blank=True)
    recipient_address = models.JSONField(default=dict)
    recipient_lat = models.FloatField(null=True, blank=True)
    recipient_lng = models.FloatField(null=True, blank=True)

    # Package
    weight_kg = models.FloatField(verbose_name="Weight (kg)")
    dimensions = models.JSONField(default=dict, blank=True)
    service_type = models.CharField(
        max_length=20,
        choices=ServiceType.choices,
        default=ServiceType.STANDARD
    )
    special_instructions = models.TextField(blank=True)

    # Status
    status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.PENDING,
        verbose_name="Status"
    )

    # Pricing
    distance_km = models.FloatField(default=0.0, verbose_name="Distance (km)")
    price_quoted = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name="Quoted price"
    )
    price_final = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name="Final price"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    actual_pickup = models.DateTimeField(null=True, blank=True)
    actual_delivery = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Shipment"
        verbose_name_plural = "Shipments"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='ship_status_created_idx'),
            models.Index(fields=['assigned_courier', 'status'], name='ship_courier_status_idx'),
            models.Index(fields=['customer', 'created_at'], name='ship_customer_created_idx'),
        ]

    def __str__(self):
        return f"{self.tracking_code} - {self.status}"

    def save(self, *args, **kwargs):
        if not self._state.adding and 'tracking_code' not in self.get_deferred_fields():
            stored = (
                Shipment.objects.filter(pk=self.pk)
                .values_list('tracking_code', flat=True)
                .first()
            )
            if stored is not None and stored != self.tracking_code:
                raise ValidationError(
                    "Tracking code is immutable",
                    tracking_code=stored,
                )
        super().save(*args, **kwargs)

    @property
    def recipient_city(self) -> str:
        return (self.recipient_address or {}).get('city') or ''

    @property
    def has_route_coordinates(self) -> bool:
        """Both ends carry GPS coordinates."""
        return None not in (
            self.sender_lat, self.sender_lng,
            self.recipient_lat, self.recipient_lng,
        )

    @property
    def is_terminal(self) -> bool:
        from logistics.status import is_terminal
        return is_terminal(self.status)


class TrackingEvent(models.Model):
    """
    Immutable, append-only entry in a shipment's history.

    Carries either a lifecycle transition or a telemetry sample
    (position, speed, heading, GPS accuracy).
    """

    id = models.BigAutoField(primary_key=True)
    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.CASCADE,
        related_name='tracking_events',
        verbose_name="Shipment"
    )
    event_type = models.CharField(
        max_length=30,
        choices=TrackingEventType.choices,
        verbose_name="Event type"
    )
    description = models.CharField(max_length=255, blank=True)

    # Telemetry (optional)
    lat = models.FloatField(null=True, blank=True)
    lng = models.FloatField(null=True, blank=True)
    speed_kmh = models.FloatField(null=True, blank=True)
    heading = models.FloatField(null=True, blank=True)
    accuracy_m = models.FloatField(null=True, blank=True)

    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        verbose_name = "Tracking event"
        verbose_name_plural = "Tracking events"
        ordering = ['recorded_at', 'id']
        indexes = [
            models.Index(fields=['shipment', 'recorded_at'], name='trk_shipment_recorded_idx'),
        ]

    def __str__(self):
        return f"{self.shipment_id} {self.event_type} @ {self.recorded_at:%Y-%m-%d %H:%M}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Tracking events are append-only", event_id=self.pk)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Tracking events are append-only", event_id=self.pk)

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lng is not None
