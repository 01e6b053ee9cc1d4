"""
Shipment workflow for SHIPEASE

Creation, courier assignment, status changes and live position updates.

Every state change is written first (shipment row + tracking event in one
transaction) and announced second. Notifications are best-effort: if the
notification write fails the error is logged and returned in the
WorkflowResult, and the state change stays in place.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from core.exceptions import NotFoundError, PersistenceError, ShipEaseError, ValidationError
from core.models import UserRole
from logistics.events import get_tracking_url
from logistics.models import (
    ServiceType,
    Shipment,
    ShipmentStatus,
    TrackingEvent,
    TrackingEventType,
)
from logistics.services.pricing import pricing_engine, round_to_cents
from logistics.status import ACTIVE_STATUSES, can_transition, get_status_color, get_status_label, is_valid_status
from logistics.tracking_codes import generate_tracking_code, is_trackable_code, normalize_tracking_code
from logistics.utils import distance_km, estimate_eta, format_remaining
from notifications import dispatcher

logger = logging.getLogger(__name__)


MAX_CODE_ATTEMPTS = 5

REQUIRED_CONTACT_FIELDS = ('sender_name', 'sender_phone', 'recipient_name', 'recipient_phone')
REQUIRED_ADDRESS_FIELDS = ('line1', 'city', 'country')

DEFAULT_DESCRIPTIONS = {
    ShipmentStatus.PENDING: 'Shipment submitted',
    ShipmentStatus.PICKED_UP: 'Package picked up by courier',
    ShipmentStatus.IN_TRANSIT: 'Package in transit',
    ShipmentStatus.OUT_FOR_DELIVERY: 'Package out for delivery',
    ShipmentStatus.DELIVERED: 'Package delivered successfully',
    ShipmentStatus.FAILED: 'Delivery failed',
    ShipmentStatus.CANCELLED: 'Shipment cancelled',
    ShipmentStatus.EXCEPTION: 'Delivery exception reported',
}


@dataclass
class WorkflowResult:
    """Outcome of a workflow step: the shipment plus what was announced."""

    shipment: Shipment
    notifications: list = field(default_factory=list)
    errors: List[ShipEaseError] = field(default_factory=list)

    @property
    def fully_notified(self) -> bool:
        return not self.errors


class ShipmentService:
    """
    Shipment lifecycle operations used by the API and the Celery tasks.
    """

    # ==========================================
    # Lookup
    # ==========================================

    @staticmethod
    def get_by_tracking_code(code: str) -> Shipment:
        """
        Fetch a shipment from a (user typed) tracking code.

        Raises:
            ValidationError: malformed code
            NotFoundError: no such shipment
        """
        normalized = normalize_tracking_code(code)
        if not is_trackable_code(normalized):
            raise ValidationError("Invalid tracking code format", tracking_code=code)
        try:
            return Shipment.objects.select_related('customer', 'assigned_courier').get(
                tracking_code=normalized
            )
        except Shipment.DoesNotExist:
            raise NotFoundError("Shipment not found", tracking_code=normalized)

    @staticmethod
    def events_for(shipment: Shipment):
        """Tracking history, newest first."""
        return shipment.tracking_events.order_by('-recorded_at', '-id')

    @staticmethod
    def latest_position(shipment: Shipment) -> Optional[TrackingEvent]:
        return (
            shipment.tracking_events
            .filter(lat__isnull=False, lng__isnull=False)
            .order_by('-recorded_at', '-id')
            .first()
        )

    # ==========================================
    # Creation
    # ==========================================

    @staticmethod
    def _validate_new_shipment(data: dict) -> float:
        missing = [name for name in REQUIRED_CONTACT_FIELDS if not str(data.get(name) or '').strip()]
        for prefix in ('sender_address', 'recipient_address'):
            address = data.get(prefix) or {}
            missing.extend(
                f"{prefix}.{part}" for part in REQUIRED_ADDRESS_FIELDS
                if not str(address.get(part) or '').strip()
            )
        if missing:
            raise ValidationError("Missing required fields", fields=missing)

        try:
            weight_kg = float(data.get('weight_kg'))
        except (TypeError, ValueError):
            raise ValidationError("weight_kg must be a number", weight_kg=data.get('weight_kg'))
        if weight_kg <= 0:
            raise ValidationError("weight_kg must be positive", weight_kg=weight_kg)

        service_type = data.get('service_type', ServiceType.STANDARD)
        if service_type not in ServiceType.values:
            raise ValidationError("Unknown service type", service_type=service_type)

        return weight_kg

    @staticmethod
    def resolve_distance(data: dict, distance: Optional[float] = None) -> float:
        """
        Distance used for the quote.

        Explicit distance wins, then the great-circle distance between the
        sender and recipient coordinates, then the configured placeholder.
        """
        if distance is not None:
            if distance < 0:
                raise ValidationError("distance_km cannot be negative", distance_km=distance)
            return float(distance)

        coords = [data.get(name) for name in ('sender_lat', 'sender_lng', 'recipient_lat', 'recipient_lng')]
        if None not in coords:
            return distance_km(*coords)

        return float(settings.SHIPEASE_PLACEHOLDER_DISTANCE_KM)

    @staticmethod
    def service_window(service_type: str) -> timedelta:
        hours = settings.SHIPEASE_SERVICE_WINDOWS.get(
            service_type, settings.SHIPEASE_DEFAULT_SERVICE_WINDOW
        )
        return timedelta(hours=hours)

    @classmethod
    def create_shipment(cls, customer, data: dict, distance: Optional[float] = None) -> WorkflowResult:
        """
        Create a shipment with a fresh tracking code and a frozen quote.

        Args:
            customer: Owner of the shipment
            data: Contact, address and package fields
            distance: Route distance in km when the caller knows it

        Raises:
            ValidationError: missing/invalid fields
            PersistenceError: the shipment could not be stored
        """
        weight_kg = cls._validate_new_shipment(data)
        service_type = data.get('service_type', ServiceType.STANDARD)
        route_km = cls.resolve_distance(data, distance)
        price = round_to_cents(pricing_engine().quote(weight_kg, route_km, service_type))
        now = timezone.now()

        fields = {
            'customer': customer,
            'sender_name': data['sender_name'].strip(),
            'sender_phone': data['sender_phone'].strip(),
            'sender_email': data.get('sender_email', ''),
            'sender_address': data['sender_address'],
            'sender_lat': data.get('sender_lat'),
            'sender_lng': data.get('sender_lng'),
            'recipient_name': data['recipient_name'].strip(),
            'recipient_phone': data['recipient_phone'].strip(),
            'recipient_email': data.get('recipient_email', ''),
            'recipient_address': data['recipient_address'],
            'recipient_lat': data.get('recipient_lat'),
            'recipient_lng': data.get('recipient_lng'),
            'weight_kg': weight_kg,
            'dimensions': data.get('dimensions') or {},
            'service_type': service_type,
            'special_instructions': data.get('special_instructions', ''),
            'status': ShipmentStatus.PENDING,
            'distance_km': round(route_km, 2),
            'price_quoted': price,
            'estimated_delivery': now + cls.service_window(service_type),
        }

        shipment = None
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_tracking_code()
            try:
                with transaction.atomic():
                    shipment = Shipment.objects.create(tracking_code=code, **fields)
                    cls._append_event(
                        shipment, TrackingEventType.CREATED,
                        'Shipment created and awaiting pickup',
                    )
                break
            except IntegrityError as e:
                shipment = None
                if Shipment.objects.filter(tracking_code=code).exists():
                    logger.warning(f"[SHIPMENT] Tracking code collision on {code} (attempt {attempt})")
                    continue
                raise PersistenceError("Could not store shipment") from e
            except DatabaseError as e:
                logger.error(f"[SHIPMENT] Create failed: {e}")
                raise PersistenceError("Could not store shipment") from e

        if shipment is None:
            raise PersistenceError(
                "Could not allocate a unique tracking code",
                attempts=MAX_CODE_ATTEMPTS,
            )

        logger.info(
            f"[SHIPMENT] Created {shipment.tracking_code} ({service_type}, "
            f"{weight_kg} kg, {route_km:.1f} km) -> {price}"
        )

        result = WorkflowResult(shipment)
        cls._notify(
            result, dispatcher.notify_shipment_created,
            customer.pk, shipment.tracking_code, shipment.recipient_name,
        )
        return result

    # ==========================================
    # Assignment
    # ==========================================

    @classmethod
    def assign_courier(cls, shipment: Shipment, courier, source: str = 'dispatcher') -> WorkflowResult:
        """
        Give the shipment to a courier and tell both courier and customer.

        Re-assigning an `assigned` shipment to another courier is allowed.
        """
        if getattr(courier, 'role', None) != UserRole.COURIER:
            raise ValidationError("User is not a courier", user_id=str(getattr(courier, 'pk', '')))

        if shipment.status != ShipmentStatus.ASSIGNED and not can_transition(shipment.status, ShipmentStatus.ASSIGNED):
            raise ValidationError(
                f"Cannot assign a shipment that is {shipment.status}",
                tracking_code=shipment.tracking_code,
                status=shipment.status,
            )

        if source == 'courier':
            description = f"Assigned to {courier.full_name or courier.email}"
        else:
            description = 'Courier assigned by dispatcher'

        cls._apply(
            shipment,
            {'assigned_courier': courier, 'status': ShipmentStatus.ASSIGNED},
            TrackingEventType.ASSIGNED,
            description,
        )
        logger.info(f"[SHIPMENT] {shipment.tracking_code} assigned to courier {str(courier.pk)[:8]} ({source})")

        result = WorkflowResult(shipment)
        cls._notify(
            result, dispatcher.notify_courier_assigned,
            courier.pk, shipment.tracking_code, shipment.recipient_city,
        )
        cls._notify(
            result, dispatcher.notify_customer_assigned,
            shipment.customer_id, shipment.tracking_code, courier.full_name,
        )
        return result

    @classmethod
    def accept_job(cls, shipment: Shipment, courier) -> WorkflowResult:
        """A courier takes a pending shipment for themselves."""
        if shipment.status != ShipmentStatus.PENDING:
            raise ValidationError(
                "Only pending shipments can be accepted",
                tracking_code=shipment.tracking_code,
                status=shipment.status,
            )
        if shipment.assigned_courier_id and shipment.assigned_courier_id != courier.pk:
            raise ValidationError(
                "Shipment is reserved for another courier",
                tracking_code=shipment.tracking_code,
            )
        return cls.assign_courier(shipment, courier, source='courier')

    # ==========================================
    # Status changes
    # ==========================================

    @classmethod
    def update_status(
        cls,
        shipment: Shipment,
        new_status: str,
        description: str = '',
        reason: str = ''
    ) -> WorkflowResult:
        """
        Move a shipment along its lifecycle.

        Raises:
            ValidationError: unknown status, illegal transition, or
                `assigned` requested without going through assign_courier
        """
        if not is_valid_status(new_status):
            raise ValidationError("Unknown status", status=new_status)
        new_status = ShipmentStatus(new_status)

        if new_status == ShipmentStatus.ASSIGNED:
            raise ValidationError("Use courier assignment to move a shipment to assigned")

        if not can_transition(shipment.status, new_status):
            raise ValidationError(
                f"Cannot move shipment from {shipment.status} to {new_status}",
                tracking_code=shipment.tracking_code,
                status=shipment.status,
                requested=new_status.value,
            )

        now = timezone.now()
        changes = {'status': new_status}
        if new_status == ShipmentStatus.PICKED_UP:
            changes['actual_pickup'] = now
        elif new_status == ShipmentStatus.DELIVERED:
            changes['actual_delivery'] = now
            if shipment.actual_pickup is None:
                changes['actual_pickup'] = now

        text = description or DEFAULT_DESCRIPTIONS.get(new_status, get_status_label(new_status))
        if reason and new_status in (ShipmentStatus.EXCEPTION, ShipmentStatus.FAILED, ShipmentStatus.CANCELLED):
            text = f"{text}: {reason}"

        previous = shipment.status
        event_type = (
            TrackingEventType.CREATED if new_status == ShipmentStatus.PENDING
            else TrackingEventType(new_status.value)
        )
        cls._apply(shipment, changes, event_type, text)
        logger.info(f"[SHIPMENT] {shipment.tracking_code}: {previous} -> {new_status}")

        result = WorkflowResult(shipment)
        customer_id, code = shipment.customer_id, shipment.tracking_code
        if new_status == ShipmentStatus.PICKED_UP:
            cls._notify(result, dispatcher.notify_picked_up, customer_id, code)
        elif new_status == ShipmentStatus.OUT_FOR_DELIVERY:
            cls._notify(result, dispatcher.notify_out_for_delivery, customer_id, code, shipment.estimated_delivery)
        elif new_status == ShipmentStatus.DELIVERED:
            cls._notify(result, dispatcher.notify_delivered, customer_id, code)
        elif new_status == ShipmentStatus.EXCEPTION:
            cls._notify(result, dispatcher.notify_exception, customer_id, code, reason)
        elif new_status == ShipmentStatus.FAILED:
            cls._notify(result, dispatcher.notify_failed, customer_id, code, reason)
        elif new_status == ShipmentStatus.CANCELLED:
            cls._notify(result, dispatcher.notify_cancelled, customer_id, code)
        return result

    # ==========================================
    # Live position & ETA
    # ==========================================

    @classmethod
    def record_location(
        cls,
        shipment: Shipment,
        lat: float,
        lng: float,
        speed_kmh: Optional[float] = None,
        heading: Optional[float] = None,
        accuracy_m: Optional[float] = None,
        recorded_at: Optional[datetime] = None
    ) -> TrackingEvent:
        """Append a telemetry sample for a shipment on the road."""
        if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
            raise ValidationError("Coordinates out of range", lat=lat, lng=lng)
        if shipment.status not in ACTIVE_STATUSES:
            raise ValidationError(
                "Shipment is not on the road",
                tracking_code=shipment.tracking_code,
                status=shipment.status,
            )

        try:
            return cls._append_event(
                shipment,
                TrackingEventType.LOCATION_UPDATE,
                'Location updated',
                lat=lat,
                lng=lng,
                speed_kmh=speed_kmh,
                heading=heading,
                accuracy_m=accuracy_m,
                recorded_at=recorded_at or timezone.now(),
            )
        except DatabaseError as e:
            logger.error(f"[SHIPMENT] Location update for {shipment.tracking_code} failed: {e}")
            raise PersistenceError("Could not store location update") from e

    @classmethod
    def refresh_eta(
        cls,
        shipment: Shipment,
        avg_speed_kmh: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> Optional[WorkflowResult]:
        """
        Recompute the ETA from the courier's latest position.

        Only moves estimated_delivery (and notifies the customer) when the
        new estimate differs by at least ETA_UPDATE_THRESHOLD_MINUTES.
        Returns None when nothing changed or no estimate is possible.
        """
        if shipment.status not in ACTIVE_STATUSES:
            return None
        if shipment.recipient_lat is None or shipment.recipient_lng is None:
            return None

        position = cls.latest_position(shipment)
        if position is None:
            return None

        remaining_km = distance_km(position.lat, position.lng, shipment.recipient_lat, shipment.recipient_lng)
        eta = estimate_eta(remaining_km, avg_speed_kmh or settings.ETA_DEFAULT_SPEED_KMH, now=now)

        threshold = timedelta(minutes=settings.ETA_UPDATE_THRESHOLD_MINUTES)
        if shipment.estimated_delivery is not None and abs(eta - shipment.estimated_delivery) < threshold:
            return None

        try:
            shipment.estimated_delivery = eta
            shipment.save(update_fields=['estimated_delivery', 'updated_at'])
        except DatabaseError as e:
            logger.error(f"[ETA] Could not store ETA for {shipment.tracking_code}: {e}")
            raise PersistenceError("Could not store ETA") from e

        logger.info(f"[ETA] {shipment.tracking_code}: {remaining_km:.1f} km left, ETA {eta.isoformat()}")

        result = WorkflowResult(shipment)
        cls._notify(result, dispatcher.notify_eta_update, shipment.customer_id, shipment.tracking_code, eta)
        return result

    # ==========================================
    # Tracking page
    # ==========================================

    @classmethod
    def get_tracking_snapshot(cls, shipment: Shipment, now: Optional[datetime] = None) -> dict:
        """Everything the public tracking page shows for one shipment."""
        now = now or timezone.now()
        events = list(cls.events_for(shipment))
        position = next((event for event in events if event.has_position), None)

        remaining = None
        if shipment.estimated_delivery and shipment.status in ACTIVE_STATUSES + (ShipmentStatus.PENDING,):
            remaining = format_remaining(shipment.estimated_delivery, now=now)

        latest_position = None
        if position is not None:
            latest_position = {
                'lat': position.lat,
                'lng': position.lng,
                'speed_kmh': position.speed_kmh,
                'heading': position.heading,
                'recorded_at': position.recorded_at.isoformat(),
            }
            if shipment.recipient_lat is not None and shipment.recipient_lng is not None:
                latest_position['distance_remaining_km'] = round(
                    distance_km(position.lat, position.lng, shipment.recipient_lat, shipment.recipient_lng), 2
                )

        return {
            'tracking_code': shipment.tracking_code,
            'tracking_url': get_tracking_url(shipment.tracking_code, settings.SHIPEASE_TRACKING_BASE_URL),
            'status': shipment.status,
            'status_label': get_status_label(shipment.status),
            'status_color': get_status_color(shipment.status),
            'service_type': shipment.service_type,
            'recipient_city': shipment.recipient_city,
            'estimated_delivery': shipment.estimated_delivery.isoformat() if shipment.estimated_delivery else None,
            'remaining': remaining,
            'actual_pickup': shipment.actual_pickup.isoformat() if shipment.actual_pickup else None,
            'actual_delivery': shipment.actual_delivery.isoformat() if shipment.actual_delivery else None,
            'latest_event': events[0].event_type if events else None,
            'latest_position': latest_position,
            'events': [
                {
                    'event_type': event.event_type,
                    'description': event.description,
                    'lat': event.lat,
                    'lng': event.lng,
                    'recorded_at': event.recorded_at.isoformat(),
                }
                for event in events
            ],
        }

    # ==========================================
    # Internals
    # ==========================================

    @staticmethod
    def _append_event(shipment: Shipment, event_type: str, description: str = '', **telemetry) -> TrackingEvent:
        return TrackingEvent.objects.create(
            shipment=shipment,
            event_type=event_type,
            description=description,
            **telemetry
        )

    @classmethod
    def _apply(cls, shipment: Shipment, changes: dict, event_type: str, description: str):
        """Write the shipment changes and the matching event atomically."""
        for name, value in changes.items():
            setattr(shipment, name, value)
        try:
            with transaction.atomic():
                shipment.save(update_fields=[*changes.keys(), 'updated_at'])
                cls._append_event(shipment, event_type, description)
        except DatabaseError as e:
            logger.error(f"[SHIPMENT] Update of {shipment.tracking_code} failed: {e}")
            shipment.refresh_from_db()
            raise PersistenceError(
                "Could not store shipment update",
                tracking_code=shipment.tracking_code,
            ) from e

    @staticmethod
    def _notify(result: WorkflowResult, notify: Callable, *args):
        """Run one notification helper; failures are recorded, not raised."""
        try:
            result.notifications.append(notify(*args))
        except (PersistenceError, NotFoundError) as e:
            logger.warning(
                f"[SHIPMENT] Notification {notify.__name__} for "
                f"{result.shipment.tracking_code} failed: {e.message}"
            )
            result.errors.append(e)
