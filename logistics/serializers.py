"""
Logistics App Serializers - Shipments & Tracking
"""

from rest_framework import serializers

from .models import ServiceType, Shipment, ShipmentStatus, TrackingEvent
from .status import get_status_color, get_status_label


class AddressSerializer(serializers.Serializer):
    """Structured postal address stored as JSON on the shipment."""

    line1 = serializers.CharField(max_length=255)
    line2 = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    country = serializers.CharField(max_length=100)


class TrackingEventSerializer(serializers.ModelSerializer):

    class Meta:
        model = TrackingEvent
        fields = [
            'id', 'event_type', 'description',
            'lat', 'lng', 'speed_kmh', 'heading', 'accuracy_m',
            'recorded_at',
        ]
        read_only_fields = fields


class ShipmentSerializer(serializers.ModelSerializer):
    """Full serializer for Shipment model."""

    status_label = serializers.SerializerMethodField()
    status_color = serializers.SerializerMethodField()
    courier_name = serializers.CharField(source='assigned_courier.full_name', read_only=True, default=None)

    class Meta:
        model = Shipment
        fields = [
            'id', 'tracking_code', 'customer', 'assigned_courier', 'courier_name',
            'sender_name', 'sender_phone', 'sender_email', 'sender_address', 'sender_lat', 'sender_lng',
            'recipient_name', 'recipient_phone', 'recipient_email', 'recipient_address',
            'recipient_lat', 'recipient_lng',
            'weight_kg', 'dimensions', 'service_type', 'special_instructions',
            'status', 'status_label', 'status_color',
            'distance_km', 'price_quoted', 'price_final',
            'created_at', 'updated_at', 'estimated_delivery', 'actual_pickup', 'actual_delivery',
        ]
        read_only_fields = fields

    def get_status_label(self, obj) -> str:
        return get_status_label(obj.status)

    def get_status_color(self, obj) -> str:
        return get_status_color(obj.status)


class ShipmentCreateSerializer(serializers.Serializer):
    """Input for a new shipment; pricing and tracking code are server-side."""

    sender_name = serializers.CharField(max_length=150)
    sender_phone = serializers.CharField(max_length=30)
    sender_email = serializers.EmailField(required=False, allow_blank=True)
    sender_address = AddressSerializer()
    sender_lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    sender_lng = serializers.FloatField(required=False, min_value=-180, max_value=180)

    recipient_name = serializers.CharField(max_length=150)
    recipient_phone = serializers.CharField(max_length=30)
    recipient_email = serializers.EmailField(required=False, allow_blank=True)
    recipient_address = AddressSerializer()
    recipient_lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    recipient_lng = serializers.FloatField(required=False, min_value=-180, max_value=180)

    weight_kg = serializers.FloatField()
    dimensions = serializers.DictField(child=serializers.FloatField(), required=False)
    service_type = serializers.ChoiceField(choices=ServiceType.choices, default=ServiceType.STANDARD)
    special_instructions = serializers.CharField(required=False, allow_blank=True)

    def validate_weight_kg(self, value):
        if value <= 0:
            raise serializers.ValidationError("Weight must be positive.")
        return value


class CourierAssignSerializer(serializers.Serializer):
    courier_id = serializers.UUIDField()


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ShipmentStatus.choices)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class LocationUpdateSerializer(serializers.Serializer):
    """GPS sample sent by the courier app."""

    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    speed_kmh = serializers.FloatField(required=False, min_value=0)
    heading = serializers.FloatField(required=False, min_value=0, max_value=360)
    accuracy_m = serializers.FloatField(required=False, min_value=0)
    recorded_at = serializers.DateTimeField(required=False)


class QuoteRequestSerializer(serializers.Serializer):
    """Price estimation request."""

    weight_kg = serializers.FloatField()
    service_type = serializers.CharField(max_length=20, default=ServiceType.STANDARD)
    distance_km = serializers.FloatField(required=False, min_value=0)
    sender_lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    sender_lng = serializers.FloatField(required=False, min_value=-180, max_value=180)
    recipient_lat = serializers.FloatField(required=False, min_value=-90, max_value=90)
    recipient_lng = serializers.FloatField(required=False, min_value=-180, max_value=180)


class QuoteResponseSerializer(serializers.Serializer):
    """Price estimation response."""

    service_type = serializers.CharField()
    distance_km = serializers.FloatField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    estimation_type = serializers.CharField()  # 'given', 'coordinates' or 'placeholder'
