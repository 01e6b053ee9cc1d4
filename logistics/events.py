"""
LOGISTICS App - Real-time Event Broadcasting

Utility functions to broadcast events via Django Channels.
Writing a record and telling listeners about it are two separate steps:
callers persist first, then hand the saved row to one of these functions
(usually from transaction.on_commit). A failed push is logged and
reported through the return value, never raised.
"""

import logging

from django.utils import timezone

logger = logging.getLogger(__name__)


def get_channel_layer():
    """Get the Django Channels layer (lazy import)."""
    from channels.layers import get_channel_layer as _get_channel_layer
    return _get_channel_layer()


def send_group_event(group_name: str, event: dict) -> bool:
    """Send event to a channel group."""
    channel_layer = get_channel_layer()
    if not channel_layer:
        logger.warning(f"[EVENTS] No channel layer configured, dropping {event.get('type')}")
        return False

    try:
        from asgiref.sync import async_to_sync
        async_to_sync(channel_layer.group_send)(group_name, event)
        return True
    except Exception as e:
        logger.error(f"[EVENTS] Failed to send to group {group_name}: {e}")
        return False


def shipment_group(tracking_code: str) -> str:
    return f'shipment_{tracking_code}'


DISPATCH_GROUP = 'dispatch'


# ============================================
# SHIPMENT EVENTS
# ============================================

def broadcast_tracking_event(tracking_event) -> bool:
    """
    Push a newly appended tracking event.

    Notifies:
    - Clients on the tracking page of the shipment
    - Dispatch monitors
    """
    shipment = tracking_event.shipment
    payload = {
        'id': tracking_event.pk,
        'shipment_id': str(shipment.pk),
        'tracking_code': shipment.tracking_code,
        'event_type': tracking_event.event_type,
        'description': tracking_event.description,
        'lat': tracking_event.lat,
        'lng': tracking_event.lng,
        'speed_kmh': tracking_event.speed_kmh,
        'heading': tracking_event.heading,
        'accuracy_m': tracking_event.accuracy_m,
        'recorded_at': tracking_event.recorded_at.isoformat(),
    }

    delivered = send_group_event(
        shipment_group(shipment.tracking_code),
        {'type': 'tracking_event', 'event': payload}
    )
    send_group_event(DISPATCH_GROUP, {'type': 'tracking_event', 'event': payload})

    logger.debug(
        f"[EVENTS] Broadcasted {tracking_event.event_type} for {shipment.tracking_code}"
    )
    return delivered


def broadcast_shipment_status(shipment, message: str = "") -> bool:
    """
    Push a shipment status change.

    Notifies:
    - Clients tracking the shipment
    - Dispatch monitors
    """
    from logistics.status import get_status_color, get_status_label

    event = {
        'type': 'shipment_status',
        'tracking_code': shipment.tracking_code,
        'status': shipment.status,
        'label': get_status_label(shipment.status),
        'color': get_status_color(shipment.status),
        'timestamp': timezone.now().isoformat(),
        'message': message,
    }
    delivered = send_group_event(shipment_group(shipment.tracking_code), event)
    send_group_event(DISPATCH_GROUP, event)

    logger.debug(f"[EVENTS] Broadcasted status change: {shipment.tracking_code} -> {shipment.status}")
    return delivered


# ============================================
# TRACKING PAGE HELPER
# ============================================

def get_tracking_url(tracking_code: str, base_url: str = "https://shipease.app") -> str:
    """Public tracking URL that customers can share."""
    return f"{base_url}/track?code={tracking_code}"
