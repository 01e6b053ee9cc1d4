"""
LOGISTICS App - Django Signals

Every appended tracking event is pushed to live listeners once the
transaction that wrote it commits. Position samples also schedule an
ETA refresh.
"""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from logistics.models import TrackingEvent, TrackingEventType

logger = logging.getLogger(__name__)


STATUS_MESSAGES = {
    TrackingEventType.CREATED: "Shipment created",
    TrackingEventType.ASSIGNED: "A courier has been assigned",
    TrackingEventType.PICKED_UP: "The courier picked up your package",
    TrackingEventType.IN_TRANSIT: "Your package is on its way",
    TrackingEventType.OUT_FOR_DELIVERY: "Your package is out for delivery",
    TrackingEventType.DELIVERED: "Delivered successfully!",
    TrackingEventType.FAILED: "Delivery failed",
    TrackingEventType.CANCELLED: "The shipment was cancelled",
    TrackingEventType.EXCEPTION: "There is an issue with your shipment",
}


@receiver(post_save, sender=TrackingEvent)
def on_tracking_event_saved(sender, instance, created, **kwargs):
    if not created:
        return

    transaction.on_commit(lambda: _publish(instance))

    if instance.event_type == TrackingEventType.LOCATION_UPDATE:
        shipment_id = str(instance.shipment_id)
        transaction.on_commit(lambda: _schedule_eta_refresh(shipment_id))


def _publish(tracking_event: TrackingEvent):
    from logistics.events import broadcast_shipment_status, broadcast_tracking_event

    broadcast_tracking_event(tracking_event)

    if tracking_event.event_type != TrackingEventType.LOCATION_UPDATE:
        broadcast_shipment_status(
            tracking_event.shipment,
            STATUS_MESSAGES.get(tracking_event.event_type, tracking_event.description),
        )


def _schedule_eta_refresh(shipment_id: str):
    from logistics.tasks import refresh_shipment_eta

    try:
        refresh_shipment_eta.delay(shipment_id)
    except Exception as e:
        # broker unavailable; the next sample retries
        logger.warning(f"[SIGNAL] ETA refresh for {shipment_id[:8]} not scheduled: {e}")
