"""
Tests for Shipment and TrackingEvent models.
"""

import uuid

from django.db import IntegrityError, transaction
from django.test import TestCase

from core.exceptions import ValidationError
from core.models import UserRole
from logistics.models import ShipmentStatus, TrackingEvent, TrackingEventType

from .factories import make_shipment, make_user


class TestShipmentModel(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.shipment = make_shipment(self.customer, tracking_code='SE-ABCD-EFGH-JK23')

    def test_uuid_primary_key(self):
        self.assertIsInstance(self.shipment.id, uuid.UUID)

    def test_default_status_pending(self):
        self.assertEqual(self.shipment.status, ShipmentStatus.PENDING)

    def test_tracking_code_is_unique(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            make_shipment(self.customer, tracking_code='SE-ABCD-EFGH-JK23')

    def test_tracking_code_is_immutable(self):
        self.shipment.tracking_code = 'SE-ZZZZ-ZZZZ-ZZZZ'
        with self.assertRaises(ValidationError):
            self.shipment.save()

        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.tracking_code, 'SE-ABCD-EFGH-JK23')

    def test_other_fields_can_change(self):
        self.shipment.special_instructions = 'Leave at the door'
        self.shipment.save()
        self.shipment.refresh_from_db()
        self.assertEqual(self.shipment.special_instructions, 'Leave at the door')

    def test_recipient_city(self):
        self.assertEqual(self.shipment.recipient_city, 'Shelbyville')
        self.shipment.recipient_address = {}
        self.assertEqual(self.shipment.recipient_city, '')

    def test_route_coordinates(self):
        self.assertFalse(self.shipment.has_route_coordinates)
        self.shipment.sender_lat, self.shipment.sender_lng = 40.0, -74.0
        self.shipment.recipient_lat, self.shipment.recipient_lng = 41.0, -73.0
        self.assertTrue(self.shipment.has_route_coordinates)

    def test_is_terminal(self):
        self.assertFalse(self.shipment.is_terminal)
        self.shipment.status = ShipmentStatus.DELIVERED
        self.assertTrue(self.shipment.is_terminal)


class TestTrackingEventModel(TestCase):

    def setUp(self):
        customer = make_user(UserRole.CUSTOMER)
        self.shipment = make_shipment(customer)
        self.event = TrackingEvent.objects.create(
            shipment=self.shipment,
            event_type=TrackingEventType.CREATED,
            description='Shipment created',
        )

    def test_events_are_append_only(self):
        self.event.description = 'Rewritten history'
        with self.assertRaises(ValidationError):
            self.event.save()

    def test_events_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.event.delete()
        self.assertTrue(TrackingEvent.objects.filter(pk=self.event.pk).exists())

    def test_has_position(self):
        self.assertFalse(self.event.has_position)
        sample = TrackingEvent.objects.create(
            shipment=self.shipment,
            event_type=TrackingEventType.LOCATION_UPDATE,
            lat=40.7, lng=-74.0, speed_kmh=32.5,
        )
        self.assertTrue(sample.has_position)

    def test_history_in_insertion_order(self):
        second = TrackingEvent.objects.create(
            shipment=self.shipment,
            event_type=TrackingEventType.ASSIGNED,
            recorded_at=self.event.recorded_at,
        )
        self.assertEqual(list(self.shipment.tracking_events.all()), [self.event, second])
