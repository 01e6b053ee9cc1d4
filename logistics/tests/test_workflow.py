"""
Tests for the shipment workflow (ShipmentService).

Creation → assignment → status changes → live position & ETA
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone

from core.exceptions import NotFoundError, PersistenceError, ValidationError
from core.models import UserRole
from logistics.models import Shipment, ShipmentStatus, TrackingEventType
from logistics.services.shipments import MAX_CODE_ATTEMPTS, ShipmentService
from logistics.tracking_codes import is_valid_tracking_code
from logistics.utils import distance_km, estimate_eta
from notifications.models import Notification, NotificationType

from .factories import make_shipment, make_user, shipment_payload


class TestCreateShipment(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)

    def test_create_with_placeholder_distance(self):
        """No coordinates: 100 km placeholder, standard 5 + 2*0.5 + 100*0.3."""
        result = ShipmentService.create_shipment(self.customer, shipment_payload())
        shipment = result.shipment

        self.assertTrue(is_valid_tracking_code(shipment.tracking_code))
        self.assertEqual(shipment.status, ShipmentStatus.PENDING)
        self.assertEqual(shipment.distance_km, 100.0)
        self.assertEqual(shipment.price_quoted, Decimal('36.00'))
        self.assertEqual(shipment.customer, self.customer)

    def test_explicit_distance_quote(self):
        result = ShipmentService.create_shipment(
            self.customer,
            shipment_payload(weight_kg=10, service_type='same_day'),
            distance=50,
        )
        self.assertEqual(result.shipment.price_quoted, Decimal('35.00'))

    def test_distance_from_coordinates(self):
        coords = {'sender_lat': 48.8566, 'sender_lng': 2.3522, 'recipient_lat': 51.5074, 'recipient_lng': -0.1278}
        result = ShipmentService.create_shipment(self.customer, shipment_payload(**coords))
        self.assertAlmostEqual(result.shipment.distance_km, 343.5, delta=1.0)

    def test_estimated_delivery_from_service_window(self):
        before = timezone.now()
        result = ShipmentService.create_shipment(self.customer, shipment_payload(service_type='same_day'))
        after = timezone.now()

        eta = result.shipment.estimated_delivery
        self.assertTrue(before + timedelta(hours=8) <= eta <= after + timedelta(hours=8))

    def test_created_event_and_notification(self):
        result = ShipmentService.create_shipment(self.customer, shipment_payload())
        shipment = result.shipment

        events = list(shipment.tracking_events.all())
        self.assertEqual([e.event_type for e in events], [TrackingEventType.CREATED])

        notification = Notification.objects.get(user=self.customer)
        self.assertEqual(notification.type, NotificationType.SHIPMENT_CREATED)
        self.assertEqual(notification.payload['tracking_code'], shipment.tracking_code)
        self.assertIn('Bob Recipient', notification.message)
        self.assertTrue(result.fully_notified)

    def test_missing_fields(self):
        data = shipment_payload(recipient_phone='')
        del data['sender_address']['city']

        with self.assertRaises(ValidationError) as ctx:
            ShipmentService.create_shipment(self.customer, data)

        self.assertIn('recipient_phone', ctx.exception.details['fields'])
        self.assertIn('sender_address.city', ctx.exception.details['fields'])
        self.assertEqual(Shipment.objects.count(), 0)

    def test_weight_must_be_positive(self):
        for weight in (0, -1, 'heavy'):
            with self.assertRaises(ValidationError):
                ShipmentService.create_shipment(self.customer, shipment_payload(weight_kg=weight))
        self.assertEqual(Shipment.objects.count(), 0)

    def test_unknown_service_type(self):
        with self.assertRaises(ValidationError):
            ShipmentService.create_shipment(self.customer, shipment_payload(service_type='teleport'))

    def test_negative_distance(self):
        with self.assertRaises(ValidationError):
            ShipmentService.create_shipment(self.customer, shipment_payload(), distance=-5)

    def test_tracking_code_collision_is_retried(self):
        make_shipment(self.customer, tracking_code='SE-AAAA-AAAA-AAAA')

        with patch(
            'logistics.services.shipments.generate_tracking_code',
            side_effect=['SE-AAAA-AAAA-AAAA', 'SE-BBBB-BBBB-BBBB'],
        ):
            result = ShipmentService.create_shipment(self.customer, shipment_payload())

        self.assertEqual(result.shipment.tracking_code, 'SE-BBBB-BBBB-BBBB')

    def test_tracking_code_attempts_are_bounded(self):
        make_shipment(self.customer, tracking_code='SE-AAAA-AAAA-AAAA')

        with patch(
            'logistics.services.shipments.generate_tracking_code',
            return_value='SE-AAAA-AAAA-AAAA',
        ) as generate:
            with self.assertRaises(PersistenceError):
                ShipmentService.create_shipment(self.customer, shipment_payload())

        self.assertEqual(generate.call_count, MAX_CODE_ATTEMPTS)
        self.assertEqual(Shipment.objects.count(), 1)


class TestLookup(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.shipment = make_shipment(self.customer, tracking_code='SE-ABCD-EFGH-JK23')

    def test_lookup_normalizes_input(self):
        found = ShipmentService.get_by_tracking_code('  se-abcd-efgh-jk23 ')
        self.assertEqual(found, self.shipment)

    def test_lookup_code_with_digits(self):
        legacy = make_shipment(self.customer, tracking_code='SE-AB12-CD34-EF56')
        self.assertEqual(ShipmentService.get_by_tracking_code('se-ab12-cd34-ef56'), legacy)

    def test_malformed_code(self):
        with self.assertRaises(ValidationError):
            ShipmentService.get_by_tracking_code('not-a-code')

    def test_unknown_code(self):
        with self.assertRaises(NotFoundError):
            ShipmentService.get_by_tracking_code('SE-ZZZZ-ZZZZ-ZZZZ')


class TestAssignment(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        self.shipment = make_shipment(self.customer)

    def test_assign_courier(self):
        result = ShipmentService.assign_courier(self.shipment, self.courier)

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.ASSIGNED)
        self.assertEqual(self.shipment.assigned_courier, self.courier)
        self.assertEqual(
            self.shipment.tracking_events.last().event_type,
            TrackingEventType.ASSIGNED,
        )
        self.assertEqual(len(result.notifications), 2)

    def test_assignment_notifies_courier_and_customer(self):
        ShipmentService.assign_courier(self.shipment, self.courier)

        courier_note = Notification.objects.get(user=self.courier)
        self.assertEqual(courier_note.type, NotificationType.ASSIGNED)
        self.assertEqual(courier_note.message, 'You have a new delivery to Shelbyville')

        customer_note = Notification.objects.get(user=self.customer)
        self.assertEqual(customer_note.type, NotificationType.ASSIGNED)
        self.assertEqual(
            customer_note.message,
            f'{self.courier.full_name} has been assigned to your shipment.',
        )

    def test_only_couriers_can_be_assigned(self):
        with self.assertRaises(ValidationError):
            ShipmentService.assign_courier(self.shipment, make_user(UserRole.CUSTOMER))

    def test_cannot_assign_closed_shipment(self):
        self.shipment.status = ShipmentStatus.DELIVERED
        self.shipment.save()
        with self.assertRaises(ValidationError):
            ShipmentService.assign_courier(self.shipment, self.courier)

    def test_reassign(self):
        ShipmentService.assign_courier(self.shipment, self.courier)
        other = make_user(UserRole.COURIER)

        ShipmentService.assign_courier(self.shipment, other)

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.assigned_courier, other)

    def test_accept_job(self):
        ShipmentService.accept_job(self.shipment, self.courier)

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.assigned_courier, self.courier)
        self.assertIn(self.courier.full_name, self.shipment.tracking_events.last().description)

    def test_accept_only_pending(self):
        ShipmentService.assign_courier(self.shipment, self.courier)
        with self.assertRaises(ValidationError):
            ShipmentService.accept_job(self.shipment, make_user(UserRole.COURIER))

    def test_notification_lookup_failure_keeps_assignment(self):
        with patch('notifications.dispatcher._check_payload', side_effect=DatabaseError('gone away')):
            result = ShipmentService.assign_courier(self.shipment, self.courier)

        self.assertEqual(len(result.errors), 2)
        self.assertTrue(all(isinstance(e, PersistenceError) for e in result.errors))
        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.ASSIGNED)
        self.assertEqual(Notification.objects.count(), 0)


class TestUpdateStatus(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        self.shipment = make_shipment(self.customer)
        ShipmentService.assign_courier(self.shipment, self.courier)
        Notification.objects.all().delete()

    def test_pickup_stamps_time_and_notifies(self):
        result = ShipmentService.update_status(self.shipment, 'picked_up')

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.PICKED_UP)
        self.assertIsNotNone(self.shipment.actual_pickup)
        self.assertEqual(result.notifications[0].type, NotificationType.PICKED_UP)
        self.assertEqual(
            self.shipment.tracking_events.last().description,
            'Package picked up by courier',
        )

    def test_delivery_stamps_time_and_notifies(self):
        ShipmentService.update_status(self.shipment, 'picked_up')
        ShipmentService.update_status(self.shipment, 'in_transit')
        ShipmentService.update_status(self.shipment, 'out_for_delivery')
        ShipmentService.update_status(self.shipment, 'delivered')

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.DELIVERED)
        self.assertIsNotNone(self.shipment.actual_delivery)
        self.assertCountEqual(
            Notification.objects.filter(user=self.customer).values_list('type', flat=True),
            ['picked_up', 'out_for_delivery', 'delivered'],
        )

    def test_out_for_delivery_mentions_eta(self):
        self.shipment.estimated_delivery = timezone.now() + timedelta(hours=3)
        self.shipment.save()
        result = ShipmentService.update_status(self.shipment, 'out_for_delivery')
        self.assertIn(self.shipment.tracking_code, result.notifications[0].message)

    def test_illegal_transition_changes_nothing(self):
        ShipmentService.update_status(self.shipment, 'in_transit')
        event_count = self.shipment.tracking_events.count()

        with self.assertRaises(ValidationError):
            ShipmentService.update_status(self.shipment, 'picked_up')

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.IN_TRANSIT)
        self.assertEqual(self.shipment.tracking_events.count(), event_count)

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            ShipmentService.update_status(self.shipment, 'teleported')

    def test_assigned_goes_through_assignment(self):
        shipment = make_shipment(self.customer)
        with self.assertRaises(ValidationError):
            ShipmentService.update_status(shipment, 'assigned')

    def test_exception_reason(self):
        result = ShipmentService.update_status(self.shipment, 'exception', reason='Address not found')

        self.assertEqual(
            self.shipment.tracking_events.last().description,
            'Delivery exception reported: Address not found',
        )
        notification = result.notifications[0]
        self.assertEqual(notification.payload['reason'], 'Address not found')
        self.assertIn('Address not found', notification.message)

    def test_exception_can_resume(self):
        ShipmentService.update_status(self.shipment, 'exception', reason='Road closed')
        ShipmentService.update_status(self.shipment, 'in_transit')
        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.IN_TRANSIT)

    def test_cancel(self):
        result = ShipmentService.update_status(self.shipment, 'cancelled')
        self.assertEqual(result.notifications[0].type, NotificationType.CANCELLED)
        with self.assertRaises(ValidationError):
            ShipmentService.update_status(self.shipment, 'in_transit')

    def test_draft_submission(self):
        draft = make_shipment(self.customer, status=ShipmentStatus.DRAFT)
        ShipmentService.update_status(draft, 'pending')
        draft.refresh_from_db()
        self.assertEqual(draft.status, ShipmentStatus.PENDING)
        self.assertEqual(draft.tracking_events.last().event_type, TrackingEventType.CREATED)

    def test_notification_failure_keeps_state_change(self):
        """The status change stands even when the notification write fails."""
        with patch('notifications.dispatcher.dispatch', side_effect=PersistenceError('db down')):
            result = ShipmentService.update_status(self.shipment, 'picked_up')

        self.assertFalse(result.fully_notified)
        self.assertIsInstance(result.errors[0], PersistenceError)
        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.status, ShipmentStatus.PICKED_UP)
        self.assertEqual(Notification.objects.count(), 0)


class TestLocationAndEta(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        self.shipment = make_shipment(
            self.customer,
            recipient_lat=40.7128,
            recipient_lng=-74.0060,
        )
        ShipmentService.assign_courier(self.shipment, self.courier)
        self.now = timezone.now()

    def test_record_location(self):
        event = ShipmentService.record_location(self.shipment, 40.0, -74.5, speed_kmh=42.0, heading=90)

        self.assertEqual(event.event_type, TrackingEventType.LOCATION_UPDATE)
        self.assertEqual((event.lat, event.lng, event.speed_kmh), (40.0, -74.5, 42.0))
        self.assertEqual(ShipmentService.latest_position(self.shipment), event)

    def test_location_requires_active_shipment(self):
        pending = make_shipment(self.customer)
        with self.assertRaises(ValidationError):
            ShipmentService.record_location(pending, 40.0, -74.0)

    def test_location_range(self):
        with self.assertRaises(ValidationError):
            ShipmentService.record_location(self.shipment, 91.0, 0.0)
        with self.assertRaises(ValidationError):
            ShipmentService.record_location(self.shipment, 0.0, -181.0)

    def test_refresh_eta_moves_estimate(self):
        ShipmentService.record_location(self.shipment, 40.0, -74.5)
        self.shipment.estimated_delivery = self.now + timedelta(hours=72)
        self.shipment.save()

        result = ShipmentService.refresh_eta(self.shipment, now=self.now)

        expected = estimate_eta(distance_km(40.0, -74.5, 40.7128, -74.0060), 40, now=self.now)
        self.assertIsNotNone(result)
        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.estimated_delivery, expected)

        notification = Notification.objects.get(user=self.customer, type=NotificationType.ETA_UPDATE)
        self.assertEqual(notification.payload['new_eta'], expected.isoformat())

    def test_small_eta_drift_is_ignored(self):
        ShipmentService.record_location(self.shipment, 40.0, -74.5)
        expected = estimate_eta(distance_km(40.0, -74.5, 40.7128, -74.0060), 40, now=self.now)
        self.shipment.estimated_delivery = expected + timedelta(minutes=5)
        self.shipment.save()

        self.assertIsNone(ShipmentService.refresh_eta(self.shipment, now=self.now))
        self.assertFalse(Notification.objects.filter(type=NotificationType.ETA_UPDATE).exists())

    @override_settings(ETA_UPDATE_THRESHOLD_MINUTES=1)
    def test_threshold_is_configurable(self):
        ShipmentService.record_location(self.shipment, 40.0, -74.5)
        expected = estimate_eta(distance_km(40.0, -74.5, 40.7128, -74.0060), 40, now=self.now)
        self.shipment.estimated_delivery = expected + timedelta(minutes=5)
        self.shipment.save()

        self.assertIsNotNone(ShipmentService.refresh_eta(self.shipment, now=self.now))

    def test_no_position_no_eta(self):
        self.assertIsNone(ShipmentService.refresh_eta(self.shipment, now=self.now))

    def test_no_recipient_coordinates_no_eta(self):
        shipment = make_shipment(self.customer)
        ShipmentService.assign_courier(shipment, self.courier)
        ShipmentService.record_location(shipment, 40.0, -74.5)
        self.assertIsNone(ShipmentService.refresh_eta(shipment, now=self.now))


class TestTrackingSnapshot(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        self.shipment = make_shipment(
            self.customer,
            recipient_lat=40.7128,
            recipient_lng=-74.0060,
        )
        ShipmentService.assign_courier(self.shipment, self.courier)
        ShipmentService.update_status(self.shipment, 'picked_up')

    def test_snapshot(self):
        now = timezone.now()
        self.shipment.estimated_delivery = now + timedelta(hours=2, minutes=30)
        self.shipment.save()
        ShipmentService.record_location(self.shipment, 40.0, -74.5, recorded_at=now)

        snapshot = ShipmentService.get_tracking_snapshot(self.shipment, now=now)

        self.assertEqual(snapshot['tracking_code'], self.shipment.tracking_code)
        self.assertTrue(snapshot['tracking_url'].endswith(f'/track?code={self.shipment.tracking_code}'))
        self.assertEqual(snapshot['status'], 'picked_up')
        self.assertEqual(snapshot['status_label'], 'Picked Up')
        self.assertEqual(snapshot['status_color'], 'indigo')
        self.assertEqual(snapshot['remaining'], '2h 30m')
        self.assertEqual(snapshot['latest_event'], 'location_update')
        self.assertEqual(
            [e['event_type'] for e in snapshot['events']],
            ['location_update', 'picked_up', 'assigned'],
        )
        self.assertEqual(snapshot['latest_position']['lat'], 40.0)
        self.assertAlmostEqual(
            snapshot['latest_position']['distance_remaining_km'],
            distance_km(40.0, -74.5, 40.7128, -74.0060),
            delta=0.01,
        )

    def test_snapshot_without_position(self):
        snapshot = ShipmentService.get_tracking_snapshot(self.shipment)
        self.assertIsNone(snapshot['latest_position'])
