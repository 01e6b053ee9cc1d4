"""
SHIPEASE Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.health import health_check, readiness_check


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "SHIPEASE Control Tower"
admin.site.site_title = "SHIPEASE Admin"
admin.site.index_title = "Shipment operations"


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'SHIPEASE API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'token': '/api/auth/token/',
                'refresh': '/api/auth/token/refresh/',
            },
            'shipments': '/api/shipments/',
            'quote': '/api/quote/',
            'track': '/api/track/<tracking_code>/',
            'notifications': '/api/notifications/',
            'reports': '/api/reports/dashboard/',
            'schema': '/api/schema/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Health checks
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),

    # API Root
    path('api/', api_root, name='api-root'),

    # Authentication (JWT)
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # OpenAPI schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),

    # Apps
    path('api/', include('logistics.urls')),
    path('api/notifications/', include('notifications.urls')),
    path('api/reports/', include('reports.urls')),
]
