"""
REPORTS App - Dashboard API
"""

from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from logistics.views import IsDispatcherOrAdmin
from .services import DashboardStatsService


@api_view(['GET'])
@permission_classes([IsDispatcherOrAdmin])
def dashboard_stats(request):
    """
    Live KPIs for the operations dashboard.

    Returns JSON for AJAX polling.
    """
    stats = DashboardStatsService.get_stats()
    stats['total_revenue'] = str(stats['total_revenue'])
    stats['monthly_revenue'] = str(stats['monthly_revenue'])
    return Response(stats)
