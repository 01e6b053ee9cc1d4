"""
Logistics App Views - Shipments, Quotes & Public Tracking API
"""

import logging

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError
from core.models import UserRole
from .models import Shipment, ShipmentStatus
from .serializers import (
    CourierAssignSerializer,
    LocationUpdateSerializer,
    QuoteRequestSerializer,
    QuoteResponseSerializer,
    ShipmentCreateSerializer,
    ShipmentSerializer,
    StatusUpdateSerializer,
    TrackingEventSerializer,
)
from .services.pricing import pricing_engine, round_to_cents
from .services.shipments import ShipmentService

logger = logging.getLogger(__name__)


class IsDispatcherOrAdmin(permissions.BasePermission):
    """Allow access to dispatchers and admins."""

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_dispatcher)


class IsCourier(permissions.BasePermission):

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == UserRole.COURIER)


def _with_notification_errors(data: dict, result) -> dict:
    if result.errors:
        data['notification_errors'] = [error.message for error in result.errors]
    return data


class ShipmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet
):
    """
    ViewSet for Shipment management.

    Shipments are never edited or deleted through the API: every change
    goes through a workflow action.
    """

    queryset = Shipment.objects.select_related('customer', 'assigned_courier')
    serializer_class = ShipmentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ['status', 'service_type']
    search_fields = ['tracking_code', 'recipient_name', 'sender_name']
    ordering_fields = ['created_at', 'estimated_delivery', 'price_quoted']

    def get_queryset(self):
        user = self.request.user
        queryset = super().get_queryset()

        if user.is_dispatcher:
            return queryset
        elif user.role == UserRole.COURIER:
            return queryset.filter(
                Q(assigned_courier=user) | Q(status=ShipmentStatus.PENDING)
            )
        else:
            return queryset.filter(customer=user)

    def get_permissions(self):
        if self.action == 'assign':
            return [IsDispatcherOrAdmin()]
        if self.action == 'accept':
            return [IsCourier()]
        return super().get_permissions()

    def _check_can_operate(self, shipment):
        """Status and position changes: the assigned courier or dispatch."""
        user = self.request.user
        if user.is_dispatcher or shipment.assigned_courier_id == user.pk:
            return
        raise PermissionDenied("Only the assigned courier or a dispatcher can update this shipment.")

    def create(self, request):
        """Create a shipment; price and tracking code are computed server-side."""
        serializer = ShipmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ShipmentService.create_shipment(request.user, serializer.validated_data)

        data = _with_notification_errors(ShipmentSerializer(result.shipment).data, result)
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def assign(self, request, pk=None):
        """Assign a courier to the shipment."""
        shipment = self.get_object()
        serializer = CourierAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        User = get_user_model()
        try:
            courier = User.objects.get(
                pk=serializer.validated_data['courier_id'],
                role=UserRole.COURIER,
                is_active=True,
            )
        except User.DoesNotExist:
            raise NotFoundError("Courier not found", courier_id=str(serializer.validated_data['courier_id']))

        result = ShipmentService.assign_courier(shipment, courier)
        return Response(_with_notification_errors(ShipmentSerializer(result.shipment).data, result))

    @action(detail=True, methods=['post'])
    def accept(self, request, pk=None):
        """A courier takes a pending shipment."""
        shipment = self.get_object()
        result = ShipmentService.accept_job(shipment, request.user)
        return Response(_with_notification_errors(ShipmentSerializer(result.shipment).data, result))

    @action(detail=True, methods=['post'], url_path='status')
    def update_status(self, request, pk=None):
        """Move the shipment to a new lifecycle status."""
        shipment = self.get_object()
        self._check_can_operate(shipment)

        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ShipmentService.update_status(
            shipment,
            data['status'],
            description=data.get('description', ''),
            reason=data.get('reason', ''),
        )
        return Response(_with_notification_errors(ShipmentSerializer(result.shipment).data, result))

    @action(detail=True, methods=['post'])
    def location(self, request, pk=None):
        """Record a GPS sample for the shipment."""
        shipment = self.get_object()
        self._check_can_operate(shipment)

        serializer = LocationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        event = ShipmentService.record_location(shipment, **serializer.validated_data)
        return Response(TrackingEventSerializer(event).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def events(self, request, pk=None):
        """Tracking history, newest first."""
        shipment = self.get_object()
        events = ShipmentService.events_for(shipment)
        return Response(TrackingEventSerializer(events, many=True).data)


class QuoteAPIView(APIView):
    """
    Price estimation.

    POST /api/quote/
    {"weight_kg": 10, "service_type": "same_day", "distance_km": 50}

    Without distance_km the distance comes from the coordinates when all
    four are given, otherwise the configured placeholder is used.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        coords = ('sender_lat', 'sender_lng', 'recipient_lat', 'recipient_lng')
        if data.get('distance_km') is not None:
            estimation_type = 'given'
        elif all(data.get(name) is not None for name in coords):
            estimation_type = 'coordinates'
        else:
            estimation_type = 'placeholder'

        distance = ShipmentService.resolve_distance(data, data.get('distance_km'))
        price = round_to_cents(
            pricing_engine().quote(data['weight_kg'], distance, data['service_type'])
        )

        response = QuoteResponseSerializer({
            'service_type': data['service_type'],
            'distance_km': round(distance, 2),
            'price': price,
            'estimation_type': estimation_type,
        })
        return Response(response.data)


class TrackShipmentView(APIView):
    """
    Public tracking snapshot.

    GET /api/track/<tracking_code>/
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, tracking_code):
        shipment = ShipmentService.get_by_tracking_code(tracking_code)
        return Response(ShipmentService.get_tracking_snapshot(shipment))
