"""
REPORTS App - Operations dashboard statistics

Aggregates shipment volume, revenue and delivery punctuality for the
dispatch/admin dashboard.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db.models import Count, DecimalField, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

logger = logging.getLogger(__name__)


class DashboardStatsService:
    """
    KPIs for the operations dashboard.

    Revenue counts delivered shipments only, at their final price when
    billing closed, else at the quoted price.
    """

    @staticmethod
    def _period_starts(now: datetime) -> Dict[str, datetime]:
        local_now = timezone.localtime(now)
        today = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            'today': today,
            'week': today - timedelta(days=today.weekday()),
            'month': today.replace(day=1),
        }

    @staticmethod
    def _revenue(queryset) -> Decimal:
        total = queryset.aggregate(
            total=Sum(
                Coalesce('price_final', 'price_quoted'),
                output_field=DecimalField(max_digits=12, decimal_places=2),
            )
        )['total']
        return total or Decimal('0.00')

    @staticmethod
    def on_time_rate(delivered) -> Optional[float]:
        """
        Percentage of delivered shipments that arrived no later than their
        estimated delivery, one decimal. None when nothing can be measured.
        """
        measured = delivered.filter(
            estimated_delivery__isnull=False,
            actual_delivery__isnull=False,
        ).aggregate(
            total=Count('id'),
            on_time=Count('id', filter=Q(actual_delivery__lte=F('estimated_delivery'))),
        )
        if not measured['total']:
            return None
        return round(measured['on_time'] * 100 / measured['total'], 1)

    @classmethod
    def get_stats(cls, now: Optional[datetime] = None) -> Dict[str, Any]:
        from core.models import User, UserRole
        from logistics.models import Shipment, ShipmentStatus
        from logistics.status import ACTIVE_STATUSES

        now = now or timezone.now()
        starts = cls._period_starts(now)

        shipments = Shipment.objects.all()
        delivered = shipments.filter(status=ShipmentStatus.DELIVERED)

        stats = {
            'total_shipments': shipments.count(),
            'active_shipments': shipments.filter(status__in=ACTIVE_STATUSES).count(),
            'pending_shipments': shipments.filter(status=ShipmentStatus.PENDING).count(),
            'delivered_today': delivered.filter(actual_delivery__gte=starts['today']).count(),
            'delivered_this_week': delivered.filter(actual_delivery__gte=starts['week']).count(),
            'delivered_this_month': delivered.filter(actual_delivery__gte=starts['month']).count(),
            'total_revenue': cls._revenue(delivered),
            'monthly_revenue': cls._revenue(delivered.filter(actual_delivery__gte=starts['month'])),
            'on_time_rate': cls.on_time_rate(delivered),
            'pending_exceptions': shipments.filter(status=ShipmentStatus.EXCEPTION).count(),
            'active_couriers': User.objects.filter(role=UserRole.COURIER, is_active=True).count(),
            'total_customers': User.objects.filter(role=UserRole.CUSTOMER).count(),
            'generated_at': now.isoformat(),
        }

        logger.debug(
            f"[REPORTS] Dashboard: {stats['total_shipments']} shipments, "
            f"{stats['active_shipments']} active"
        )
        return stats
