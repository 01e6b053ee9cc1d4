"""
ASGI entrypoint for SHIPEASE.

HTTP goes to Django; WebSocket connections are routed to the tracking
and notification consumers.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'shipease_core.settings')

# Initialise Django before importing consumers (they touch the ORM)
django_asgi_app = get_asgi_application()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from logistics.routing import websocket_urlpatterns as logistics_ws  # noqa: E402
from notifications.routing import websocket_urlpatterns as notifications_ws  # noqa: E402

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AuthMiddlewareStack(
        URLRouter(logistics_ws + notifications_ws)
    ),
})
