"""
SHIPEASE Reports Tests
=======================

Dashboard KPIs and the dashboard endpoint.
"""

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.models import UserRole
from logistics.models import ShipmentStatus
from logistics.tests.factories import make_shipment, make_user
from reports.services import DashboardStatsService

# Wednesday
NOW = datetime(2026, 3, 18, 12, 0, tzinfo=dt_timezone.utc)


class TestDashboardStats(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        make_user(UserRole.COURIER, is_active=False)

    def deliver(self, delivered_at, eta, quoted='20.00', final=None):
        return make_shipment(
            self.customer,
            status=ShipmentStatus.DELIVERED,
            assigned_courier=self.courier,
            price_quoted=Decimal(quoted),
            price_final=Decimal(final) if final else None,
            estimated_delivery=eta,
            actual_delivery=delivered_at,
        )

    def test_empty(self):
        stats = DashboardStatsService.get_stats(now=NOW)
        self.assertEqual(stats['total_shipments'], 0)
        self.assertEqual(stats['total_revenue'], Decimal('0.00'))
        self.assertIsNone(stats['on_time_rate'])

    def test_counts_and_revenue(self):
        # today, on time, billed at final price
        self.deliver(NOW - timedelta(hours=1), NOW, quoted='20.00', final='25.00')
        # monday this week, late
        self.deliver(NOW - timedelta(days=2), NOW - timedelta(days=3))
        # earlier this month, on time
        self.deliver(NOW - timedelta(days=10), NOW - timedelta(days=9))
        # last month
        self.deliver(NOW - timedelta(days=40), NOW - timedelta(days=39))

        make_shipment(self.customer, status=ShipmentStatus.PENDING)
        make_shipment(self.customer, status=ShipmentStatus.IN_TRANSIT, assigned_courier=self.courier)
        make_shipment(self.customer, status=ShipmentStatus.EXCEPTION)

        stats = DashboardStatsService.get_stats(now=NOW)

        self.assertEqual(stats['total_shipments'], 7)
        self.assertEqual(stats['active_shipments'], 1)
        self.assertEqual(stats['pending_shipments'], 1)
        self.assertEqual(stats['pending_exceptions'], 1)
        self.assertEqual(stats['delivered_today'], 1)
        self.assertEqual(stats['delivered_this_week'], 2)
        self.assertEqual(stats['delivered_this_month'], 3)
        self.assertEqual(stats['total_revenue'], Decimal('85.00'))
        self.assertEqual(stats['monthly_revenue'], Decimal('65.00'))
        self.assertEqual(stats['on_time_rate'], 75.0)
        self.assertEqual(stats['active_couriers'], 1)
        self.assertEqual(stats['total_customers'], 1)

    def test_on_time_rate_rounding(self):
        self.deliver(NOW, NOW)
        self.deliver(NOW, NOW - timedelta(minutes=1))
        self.deliver(NOW, NOW - timedelta(minutes=1))
        self.assertEqual(DashboardStatsService.get_stats(now=NOW)['on_time_rate'], 33.3)


class TestDashboardAPI(TestCase):

    def test_dispatcher_access(self):
        api = APIClient()
        api.force_authenticate(make_user(UserRole.DISPATCHER))
        response = api.get('/api/reports/dashboard/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_revenue'], '0.00')

    def test_customer_forbidden(self):
        api = APIClient()
        api.force_authenticate(make_user(UserRole.CUSTOMER))
        response = api.get('/api/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
