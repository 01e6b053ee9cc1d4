"""
LOGISTICS App - WebSocket Routing Configuration

Maps WebSocket URLs to consumers for real-time tracking.
"""

from django.urls import re_path
from . import consumers


websocket_urlpatterns = [
    # Track a shipment in real-time
    # ws://localhost:8000/ws/track/SE-AB12-CD34-EF56/
    re_path(
        r'ws/track/(?P<tracking_code>[A-Za-z0-9-]+)/$',
        consumers.ShipmentTrackingConsumer.as_asgi()
    ),

    # Dispatch dashboard - every shipment event
    # ws://localhost:8000/ws/dispatch/
    re_path(
        r'ws/dispatch/$',
        consumers.DispatchConsumer.as_asgi()
    ),
]
