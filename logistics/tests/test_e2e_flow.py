"""
E2E Tests for the SHIPEASE shipment flow

Tests the complete flow: quote → creation → assignment → pickup → delivery,
with notifications and the tracking history along the way.
"""

from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase

from core.models import UserRole
from logistics.models import ShipmentStatus
from logistics.services.pricing import pricing_engine, round_to_cents
from logistics.services.shipments import ShipmentService
from notifications.models import Notification, NotificationType
from reports.services import DashboardStatsService

from .factories import make_shipment, make_user, shipment_payload


@patch('notifications.dispatcher.broadcast_notifications')
class E2EShipmentFlowTest(TestCase):
    """
    End-to-end tests for the complete shipment lifecycle.
    """

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER, full_name='Test Customer')
        self.courier = make_user(UserRole.COURIER, full_name='Test Courier')

    def test_quote_matches_created_shipment(self, _):
        """The price shown at quote time is the price frozen on the shipment."""
        quote = round_to_cents(pricing_engine().quote(10, 50, 'same_day'))
        self.assertEqual(quote, Decimal('35.00'))

        result = ShipmentService.create_shipment(
            self.customer,
            shipment_payload(weight_kg=10, service_type='same_day'),
            distance=50,
        )
        self.assertEqual(result.shipment.price_quoted, quote)

    def test_assignment_notifies_both_parties(self, _):
        """
        Assigning SE-AB12-CD34-EF56 to a courier produces two `assigned`
        notifications: one for the courier, one for the customer.
        """
        shipment = make_shipment(
            self.customer,
            tracking_code='SE-AB12-CD34-EF56',
            recipient_address={'line1': '5 Harbor Rd', 'city': 'Portsmouth', 'country': 'UK'},
        )

        ShipmentService.assign_courier(shipment, self.courier)

        assigned = Notification.objects.filter(type=NotificationType.ASSIGNED)
        self.assertEqual(assigned.count(), 2)
        self.assertEqual(
            {n.user_id for n in assigned},
            {self.courier.pk, self.customer.pk},
        )
        for notification in assigned:
            self.assertEqual(notification.payload['tracking_code'], 'SE-AB12-CD34-EF56')
            self.assertFalse(notification.read)

        self.assertEqual(
            assigned.get(user=self.courier).message,
            'You have a new delivery to Portsmouth',
        )
        self.assertEqual(
            assigned.get(user=self.customer).message,
            'Test Courier has been assigned to your shipment.',
        )

    def test_full_delivery_flow(self, _):
        """
        Flow: Create → Assign → Pickup → In transit → Out for delivery → Deliver
        """
        # 1. CREATE
        shipment = ShipmentService.create_shipment(self.customer, shipment_payload()).shipment
        self.assertEqual(shipment.status, ShipmentStatus.PENDING)

        # 2. ASSIGN
        ShipmentService.assign_courier(shipment, self.courier)

        # 3. PICKUP → TRANSIT → OUT FOR DELIVERY
        ShipmentService.update_status(shipment, 'picked_up')
        ShipmentService.record_location(shipment, 40.0, -74.5, speed_kmh=50)
        ShipmentService.update_status(shipment, 'in_transit')
        ShipmentService.update_status(shipment, 'out_for_delivery')

        # 4. DELIVER
        ShipmentService.update_status(shipment, 'delivered')

        shipment.refresh_from_db()
        self.assertEqual(shipment.status, ShipmentStatus.DELIVERED)
        self.assertIsNotNone(shipment.actual_pickup)
        self.assertIsNotNone(shipment.actual_delivery)
        self.assertLessEqual(shipment.actual_pickup, shipment.actual_delivery)

        history = list(shipment.tracking_events.values_list('event_type', flat=True))
        self.assertEqual(history, [
            'created', 'assigned', 'picked_up', 'location_update',
            'in_transit', 'out_for_delivery', 'delivered',
        ])

        customer_types = set(
            Notification.objects.filter(user=self.customer).values_list('type', flat=True)
        )
        self.assertEqual(customer_types, {
            'shipment_created', 'assigned', 'picked_up', 'out_for_delivery', 'delivered',
        })

        snapshot = ShipmentService.get_tracking_snapshot(shipment)
        self.assertEqual(snapshot['status_color'], 'green')
        self.assertIsNone(snapshot['remaining'])

        stats = DashboardStatsService.get_stats()
        self.assertEqual(stats['delivered_today'], 1)
        self.assertEqual(stats['total_revenue'], Decimal('36.00'))
