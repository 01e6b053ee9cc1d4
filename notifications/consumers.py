"""
NOTIFICATIONS App - WebSocket consumer for the notification bell

Clients connect to: ws://host/ws/notifications/ (authenticated session)

Events received:
- notification_created: a new notification was stored for this user
"""

import logging

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from notifications.events import user_group

logger = logging.getLogger(__name__)


class NotificationConsumer(AsyncJsonWebsocketConsumer):

    group_name = None

    async def connect(self):
        user = self.scope.get('user')
        if not user or user.is_anonymous:
            await self.close(code=4401)
            return

        self.group_name = user_group(user.pk)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        logger.info(f"[WS] Notification feed opened for {str(user.pk)[:8]}")

    async def disconnect(self, close_code):
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content):
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    async def notification_created(self, event):
        await self.send_json({
            'type': 'notification',
            'notification': event['notification'],
        })
