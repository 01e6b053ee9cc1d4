"""
Logistics App URLs
"""

from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import QuoteAPIView, ShipmentViewSet, TrackShipmentView

router = SimpleRouter()
router.register(r'shipments', ShipmentViewSet, basename='shipment')

urlpatterns = [
    # Price estimation
    path('quote/', QuoteAPIView.as_view(), name='quote'),

    # Public tracking snapshot (WebSocket updates on ws/track/<code>/)
    path('track/<str:tracking_code>/', TrackShipmentView.as_view(), name='track-shipment'),

    # Router URLs
    path('', include(router.urls)),
]
