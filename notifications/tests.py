"""
SHIPEASE Notifications Tests
=============================

Tests for:
1. dispatch / dispatch_to_many (persistence, all-or-nothing batches)
2. Lifecycle templates
3. Recipient operations (list, unread count, mark read, delete)
4. REST API
5. Realtime push after commit
"""

import uuid
from datetime import datetime, timezone as dt_timezone
from unittest.mock import patch

from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from rest_framework import status
from rest_framework.test import APIClient

from core.exceptions import NotFoundError, PersistenceError
from core.models import UserRole
from logistics.tests.factories import make_shipment, make_user
from notifications import dispatcher
from notifications.consumers import NotificationConsumer
from notifications.events import broadcast_notifications, user_group
from notifications.models import Notification, NotificationType
from notifications.services import NotificationService


class TestDispatch(TestCase):

    def setUp(self):
        self.user = make_user(UserRole.CUSTOMER)
        self.shipment = make_shipment(self.user, tracking_code='SE-ABCD-EFGH-JK23')

    def test_dispatch_creates_unread_notification(self):
        notification = dispatcher.dispatch(
            self.user.pk, NotificationType.SYSTEM, 'Hello', 'Welcome aboard',
        )
        self.assertEqual(notification.user, self.user)
        self.assertFalse(notification.read)
        self.assertIsNone(notification.read_at)
        self.assertEqual(notification.payload, {})

    def test_payload_with_known_tracking_code(self):
        notification = dispatcher.dispatch(
            self.user.pk, NotificationType.PICKED_UP, 'Picked up', 'On its way',
            {'tracking_code': 'SE-ABCD-EFGH-JK23'},
        )
        self.assertEqual(notification.tracking_code, 'SE-ABCD-EFGH-JK23')

    def test_payload_with_unknown_tracking_code(self):
        with self.assertRaises(NotFoundError):
            dispatcher.dispatch(
                self.user.pk, NotificationType.PICKED_UP, 'Picked up', 'On its way',
                {'tracking_code': 'SE-ZZZZ-ZZZZ-ZZZZ'},
            )
        self.assertEqual(Notification.objects.count(), 0)

    def test_database_failure_raises_persistence_error(self):
        with patch.object(Notification.objects, 'create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(PersistenceError):
                dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'Hello', 'World')

    def test_lookup_failure_raises_persistence_error(self):
        """A database error while checking the payload is a PersistenceError too."""
        with patch('django.db.models.query.QuerySet.exists', side_effect=DatabaseError('gone away')):
            with self.assertRaises(PersistenceError):
                dispatcher.dispatch(
                    self.user.pk, NotificationType.PICKED_UP, 'Picked up', 'On its way',
                    {'tracking_code': 'SE-ABCD-EFGH-JK23'},
                )

    def test_push_happens_after_commit(self):
        with patch('notifications.dispatcher.broadcast_notifications') as push:
            notification = dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'Hello', 'World')
            push.assert_not_called()

            with self.captureOnCommitCallbacks(execute=True):
                notification = dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'Again', 'World')

        push.assert_called_once_with([notification])


class TestDispatchToMany(TestCase):

    def setUp(self):
        self.users = [make_user(UserRole.COURIER) for _ in range(3)]

    def test_one_row_per_user(self):
        created = dispatcher.dispatch_to_many(
            [u.pk for u in self.users], NotificationType.SYSTEM, 'Shift', 'Starts at 8',
        )
        self.assertEqual(len(created), 3)
        for user in self.users:
            self.assertEqual(Notification.objects.filter(user=user).count(), 1)

    def test_duplicates_collapsed(self):
        user_id = self.users[0].pk
        created = dispatcher.dispatch_to_many(
            [user_id, user_id, user_id], NotificationType.SYSTEM, 'Shift', 'Starts at 8',
        )
        self.assertEqual(len(created), 1)

    def test_empty_recipients(self):
        self.assertEqual(dispatcher.dispatch_to_many([], NotificationType.SYSTEM, 'Shift', 'x'), [])
        self.assertEqual(Notification.objects.count(), 0)

    def test_payload_copied_per_row(self):
        created = dispatcher.dispatch_to_many(
            [u.pk for u in self.users], NotificationType.SYSTEM, 'Shift', 'x', {'shift': 'am'},
        )
        created[0].payload['shift'] = 'pm'
        self.assertEqual(created[1].payload['shift'], 'am')


class TestDispatchToManyRollback(TransactionTestCase):
    """Batches commit for real here, so foreign keys are checked."""

    def test_unknown_recipient_rolls_back_batch(self):
        users = [make_user(UserRole.COURIER) for _ in range(2)]
        recipients = [users[0].pk, uuid.uuid4(), users[1].pk]

        with self.assertRaises(PersistenceError) as ctx:
            dispatcher.dispatch_to_many(recipients, NotificationType.SYSTEM, 'Shift', 'Starts at 8')

        self.assertEqual(ctx.exception.details['recipients'], 3)
        self.assertEqual(Notification.objects.count(), 0)


class TestLifecycleTemplates(TestCase):

    def setUp(self):
        self.customer = make_user(UserRole.CUSTOMER)
        self.courier = make_user(UserRole.COURIER)
        self.code = make_shipment(self.customer).tracking_code

    def test_courier_assigned(self):
        n = dispatcher.notify_courier_assigned(self.courier.pk, self.code, 'Lyon')
        self.assertEqual(n.title, 'New Delivery Assigned')
        self.assertEqual(n.message, 'You have a new delivery to Lyon')

    def test_courier_assigned_without_destination(self):
        n = dispatcher.notify_courier_assigned(self.courier.pk, self.code, '')
        self.assertEqual(n.message, 'You have a new delivery to destination')

    def test_customer_assigned_default_name(self):
        n = dispatcher.notify_customer_assigned(self.customer.pk, self.code)
        self.assertEqual(n.message, 'A courier has been assigned to your shipment.')

    def test_out_for_delivery_with_eta(self):
        eta = datetime(2026, 3, 18, 15, 45, tzinfo=dt_timezone.utc)
        n = dispatcher.notify_out_for_delivery(self.customer.pk, self.code, eta)
        self.assertIn('2026-03-18 15:45', n.message)
        self.assertIn(self.code, n.message)

    def test_out_for_delivery_without_eta(self):
        n = dispatcher.notify_out_for_delivery(self.customer.pk, self.code)
        self.assertEqual(n.message, 'Your package is out for delivery and will arrive soon!')

    def test_exception(self):
        n = dispatcher.notify_exception(self.customer.pk, self.code, 'Damaged parcel')
        self.assertEqual(n.type, NotificationType.EXCEPTION)
        self.assertEqual(n.message, "There's an issue with your shipment: Damaged parcel")

    def test_eta_update(self):
        eta = datetime(2026, 3, 18, 9, 5, tzinfo=dt_timezone.utc)
        n = dispatcher.notify_eta_update(self.customer.pk, self.code, eta)
        self.assertEqual(n.message, 'Your delivery time has been updated to 2026-03-18 09:05')
        self.assertEqual(n.payload['new_eta'], eta.isoformat())

    def test_delivered(self):
        n = dispatcher.notify_delivered(self.customer.pk, self.code)
        self.assertEqual(n.title, 'Delivered Successfully')


class TestNotificationService(TestCase):

    def setUp(self):
        self.user = make_user(UserRole.CUSTOMER)
        self.other = make_user(UserRole.CUSTOMER)
        self.first = dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'One', '1')
        self.second = dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'Two', '2')
        self.foreign = dispatcher.dispatch(self.other.pk, NotificationType.SYSTEM, 'Three', '3')

    def test_unread_count(self):
        self.assertEqual(NotificationService.unread_count(self.user), 2)

    def test_mark_read(self):
        notification = NotificationService.mark_read(self.user, self.first.pk)
        self.assertTrue(notification.read)
        self.assertIsNotNone(notification.read_at)
        self.assertEqual(NotificationService.unread_count(self.user), 1)

    def test_mark_read_is_idempotent(self):
        first_read = NotificationService.mark_read(self.user, self.first.pk).read_at
        again = NotificationService.mark_read(self.user, self.first.pk)
        self.assertEqual(again.read_at, first_read)

    def test_mark_all_read(self):
        self.assertEqual(NotificationService.mark_all_read(self.user), 2)
        self.assertEqual(NotificationService.unread_count(self.user), 0)
        self.assertEqual(NotificationService.unread_count(self.other), 1)

    def test_list_filters(self):
        NotificationService.mark_read(self.user, self.first.pk)
        unread = NotificationService.list_for_user(self.user, read=False)
        self.assertEqual(list(unread), [self.second])

    def test_other_users_notifications_are_missing(self):
        with self.assertRaises(NotFoundError):
            NotificationService.mark_read(self.user, self.foreign.pk)
        with self.assertRaises(NotFoundError):
            NotificationService.delete(self.user, self.foreign.pk)

    def test_malformed_id(self):
        with self.assertRaises(NotFoundError):
            NotificationService.get_for_user(self.user, 'not-a-uuid')

    def test_delete(self):
        NotificationService.delete(self.user, self.first.pk)
        self.assertFalse(Notification.objects.filter(pk=self.first.pk).exists())


class TestNotificationAPI(TestCase):

    def setUp(self):
        self.api = APIClient()
        self.user = make_user(UserRole.CUSTOMER)
        self.api.force_authenticate(self.user)
        self.note = dispatcher.dispatch(self.user.pk, NotificationType.SYSTEM, 'Hello', 'World')
        dispatcher.dispatch(make_user(UserRole.CUSTOMER).pk, NotificationType.SYSTEM, 'Other', 'x')

    def test_list_own(self):
        response = self.api.get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['title'], 'Hello')

    def test_unread_filter(self):
        NotificationService.mark_read(self.user, self.note.pk)
        response = self.api.get('/api/notifications/', {'read': 'false'})
        self.assertEqual(response.data['count'], 0)

    def test_unread_count(self):
        response = self.api.get('/api/notifications/unread_count/')
        self.assertEqual(response.data, {'count': 1})

    def test_mark_read(self):
        response = self.api.post(f'/api/notifications/{self.note.pk}/mark_read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['read'])

    def test_mark_all_read(self):
        response = self.api.post('/api/notifications/mark_all_read/')
        self.assertEqual(response.data, {'updated': 1})

    def test_delete(self):
        response = self.api.delete(f'/api/notifications/{self.note.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Notification.objects.filter(pk=self.note.pk).exists())

    def test_unknown_notification(self):
        response = self.api.post('/api/notifications/00000000-0000-0000-0000-000000000000/mark_read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_requires_authentication(self):
        response = APIClient().get('/api/notifications/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class TestRealtimePush(TestCase):

    def test_push_to_user_group(self):
        user = make_user(UserRole.CUSTOMER)
        notification = dispatcher.dispatch(user.pk, NotificationType.SYSTEM, 'Hello', 'World')

        with patch('notifications.events.send_group_event', return_value=True) as send:
            self.assertEqual(broadcast_notifications([notification]), 1)

        group, event = send.call_args.args
        self.assertEqual(group, user_group(user.pk))
        self.assertEqual(event['type'], 'notification_created')
        self.assertEqual(event['notification']['id'], str(notification.pk))

    def test_failed_push_is_counted_not_raised(self):
        user = make_user(UserRole.CUSTOMER)
        notes = [
            dispatcher.dispatch(user.pk, NotificationType.SYSTEM, 'One', '1'),
            dispatcher.dispatch(user.pk, NotificationType.SYSTEM, 'Two', '2'),
        ]
        with patch('notifications.events.send_group_event', side_effect=[True, False]):
            self.assertEqual(broadcast_notifications(notes), 1)


class TestNotificationConsumer(SimpleTestCase):

    async def test_anonymous_rejected(self):
        communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), '/ws/notifications/')
        communicator.scope['user'] = AnonymousUser()

        connected, code = await communicator.connect()

        self.assertFalse(connected)
        self.assertEqual(code, 4401)
