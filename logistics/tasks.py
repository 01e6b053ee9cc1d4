"""
LOGISTICS App - Celery Tasks

Background ETA recomputation after courier position updates.
"""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task(name='logistics.tasks.refresh_shipment_eta')
def refresh_shipment_eta(shipment_id: str):
    """
    Recompute the ETA of one shipment from its latest position.

    Returns the new ETA (ISO string) when it moved, else None.
    """
    from logistics.models import Shipment
    from logistics.services.shipments import ShipmentService

    try:
        shipment = Shipment.objects.get(pk=shipment_id)
    except Shipment.DoesNotExist:
        logger.warning(f"[ETA TASK] Shipment {shipment_id} no longer exists")
        return None

    result = ShipmentService.refresh_eta(shipment)
    if result is None:
        return None

    if result.errors:
        logger.warning(
            f"[ETA TASK] ETA for {shipment.tracking_code} updated, "
            f"{len(result.errors)} notification(s) failed"
        )
    return shipment.estimated_delivery.isoformat()
