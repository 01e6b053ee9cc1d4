"""
LOGISTICS App - WebSocket Consumers for Real-time Tracking

Provides real-time updates for:
- Shipment tracking (public tracking page)
- Dispatch monitoring (dispatchers/admins)
"""

import logging
from typing import Any, Dict, Optional

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from logistics.events import DISPATCH_GROUP, shipment_group

logger = logging.getLogger(__name__)


class ShipmentTrackingConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for tracking a specific shipment.

    Clients connect to: ws://host/ws/track/<tracking_code>/

    Events received:
    - tracking_event: a new entry in the shipment history (incl. positions)
    - shipment_status: status changed
    """

    room_group_name = None

    async def connect(self):
        from logistics.tracking_codes import normalize_tracking_code

        self.tracking_code = normalize_tracking_code(
            self.scope['url_route']['kwargs']['tracking_code']
        )

        snapshot = await self.get_snapshot()
        if snapshot is None:
            await self.close(code=4004)
            return

        self.room_group_name = shipment_group(self.tracking_code)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()

        await self.send_json({
            'type': 'connection_established',
            'tracking_code': self.tracking_code,
            'status': snapshot['status'],
            'status_label': snapshot['status_label'],
            'estimated_delivery': snapshot['estimated_delivery'],
            'latest_position': snapshot['latest_position'],
        })

        logger.info(f"[WS] Client connected to shipment {self.tracking_code}")

    async def disconnect(self, close_code):
        if self.room_group_name:
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)

    async def receive_json(self, content):
        message_type = content.get('type')

        if message_type == 'ping':
            await self.send_json({'type': 'pong'})

    # ============================================
    # Event Handlers (called via channel_layer.group_send)
    # ============================================

    async def tracking_event(self, event):
        await self.send_json({
            'type': 'tracking_event',
            'event': event['event'],
        })

    async def shipment_status(self, event):
        await self.send_json({
            'type': 'status_update',
            'status': event['status'],
            'label': event['label'],
            'color': event['color'],
            'timestamp': event['timestamp'],
            'message': event.get('message', ''),
        })

    # ============================================
    # Database helpers
    # ============================================

    @database_sync_to_async
    def get_snapshot(self) -> Optional[Dict[str, Any]]:
        from core.exceptions import ShipEaseError
        from logistics.services.shipments import ShipmentService

        try:
            shipment = ShipmentService.get_by_tracking_code(self.tracking_code)
        except ShipEaseError:
            return None
        return ShipmentService.get_tracking_snapshot(shipment)


class DispatchConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for the dispatch dashboard.

    Clients connect to: ws://host/ws/dispatch/
    Only dispatchers and admins are accepted.
    """

    joined = False

    async def connect(self):
        user = self.scope.get('user')
        if not user or not user.is_authenticated or not user.is_dispatcher:
            await self.close(code=4403)
            return

        await self.channel_layer.group_add(DISPATCH_GROUP, self.channel_name)
        self.joined = True
        await self.accept()

        await self.send_json({
            'type': 'connection_established',
            'active_shipments': await self.count_active(),
        })
        logger.info(f"[WS] Dispatch monitor connected ({user.email})")

    async def disconnect(self, close_code):
        if self.joined:
            await self.channel_layer.group_discard(DISPATCH_GROUP, self.channel_name)

    async def receive_json(self, content):
        message_type = content.get('type')

        if message_type == 'refresh':
            await self.send_json({
                'type': 'zone_status',
                'active_shipments': await self.count_active(),
            })
        elif message_type == 'ping':
            await self.send_json({'type': 'pong'})

    async def tracking_event(self, event):
        await self.send_json({'type': 'tracking_event', 'event': event['event']})

    async def shipment_status(self, event):
        await self.send_json({
            'type': 'status_update',
            'tracking_code': event['tracking_code'],
            'status': event['status'],
            'label': event['label'],
            'timestamp': event['timestamp'],
        })

    @database_sync_to_async
    def count_active(self) -> int:
        from logistics.models import Shipment
        from logistics.status import ACTIVE_STATUSES

        return Shipment.objects.filter(status__in=ACTIVE_STATUSES).count()
