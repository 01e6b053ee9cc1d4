"""
SHIPEASE Core Tests
====================

Tests for:
1. Custom User Model (creation, roles)
2. Domain errors & the API exception handler
3. Health / readiness endpoints
"""

import uuid
from unittest.mock import MagicMock, patch

from django.test import RequestFactory, SimpleTestCase, TestCase
from rest_framework.exceptions import NotAuthenticated

from core.exceptions import (
    NotFoundError,
    PersistenceError,
    ShipEaseError,
    ValidationError,
    api_exception_handler,
)
from core.models import User, UserRole


class TestUserModel(TestCase):
    """Tests for the custom User model."""

    def setUp(self):
        """Create test users for each role."""
        self.admin = User.objects.create_user(
            email='admin@shipease.test',
            password='testpass123',
            role=UserRole.ADMIN,
            full_name='Admin Test',
        )
        self.dispatcher = User.objects.create_user(
            email='dispatch@shipease.test',
            password='testpass123',
            role=UserRole.DISPATCHER,
            full_name='Dispatcher Test',
        )
        self.courier = User.objects.create_user(
            email='courier@shipease.test',
            password='testpass123',
            role=UserRole.COURIER,
            full_name='Courier Test',
        )
        self.customer = User.objects.create_user(
            email='Customer@SHIPEASE.test',
            password='testpass123',
            full_name='Customer Test',
        )

    # ==========================================
    # User Creation Tests
    # ==========================================

    def test_user_creation_with_email(self):
        """User should be created with email as identifier."""
        self.assertEqual(self.courier.email, 'courier@shipease.test')
        self.assertTrue(self.courier.check_password('testpass123'))

    def test_email_domain_normalized(self):
        self.assertEqual(self.customer.email, 'Customer@shipease.test')

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='x')

    def test_user_without_password(self):
        user = User.objects.create_user(email='nopass@shipease.test')
        self.assertFalse(user.has_usable_password())

    def test_user_uuid_primary_key(self):
        self.assertIsInstance(self.courier.id, uuid.UUID)

    def test_default_role_is_customer(self):
        self.assertEqual(self.customer.role, UserRole.CUSTOMER)

    def test_superuser(self):
        root = User.objects.create_superuser(email='root@shipease.test', password='x')
        self.assertTrue(root.is_staff)
        self.assertTrue(root.is_superuser)
        self.assertEqual(root.role, UserRole.ADMIN)

    # ==========================================
    # Role Properties
    # ==========================================

    def test_is_courier_property(self):
        self.assertTrue(self.courier.is_courier)
        self.assertFalse(self.customer.is_courier)

    def test_is_customer_property(self):
        self.assertTrue(self.customer.is_customer)
        self.assertFalse(self.dispatcher.is_customer)

    def test_is_dispatcher_includes_admin(self):
        """Admins share the dispatcher view."""
        self.assertTrue(self.dispatcher.is_dispatcher)
        self.assertTrue(self.admin.is_dispatcher)
        self.assertFalse(self.courier.is_dispatcher)

    def test_str(self):
        self.assertEqual(str(self.courier), 'Courier Test (courier)')


class TestExceptionHandler(SimpleTestCase):
    """Domain errors map to HTTP responses."""

    def test_error_hierarchy(self):
        self.assertTrue(issubclass(ValidationError, ValueError))
        self.assertTrue(issubclass(NotFoundError, LookupError))
        for error_class in (ValidationError, NotFoundError, PersistenceError):
            self.assertTrue(issubclass(error_class, ShipEaseError))

    def test_details_kept(self):
        error = ValidationError("Bad weight", weight_kg=-1)
        self.assertEqual(error.message, "Bad weight")
        self.assertEqual(error.details, {'weight_kg': -1})
        self.assertEqual(str(error), "Bad weight")

    def test_validation_error_is_400(self):
        response = api_exception_handler(ValidationError("Bad weight", weight_kg=-1), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {
            'error': 'Bad weight',
            'code': 'validation_error',
            'details': {'weight_kg': -1},
        })

    def test_not_found_is_404(self):
        response = api_exception_handler(NotFoundError("Shipment not found"), {})
        self.assertEqual(response.status_code, 404)
        self.assertNotIn('details', response.data)

    def test_persistence_error_is_503(self):
        response = api_exception_handler(PersistenceError("Could not store shipment"), {})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data['code'], 'persistence_error')

    def test_other_errors_use_drf_default(self):
        response = api_exception_handler(NotAuthenticated(), {})
        self.assertEqual(response.status_code, 401)

    def test_unknown_errors_are_not_handled(self):
        self.assertIsNone(api_exception_handler(RuntimeError("boom"), {}))


@patch('core.health._check_channel_layer')
class TestHealthEndpoints(TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def _celery(self, ping_result=None, error=None):
        inspector = MagicMock()
        if error:
            inspector.ping.side_effect = error
        else:
            inspector.ping.return_value = ping_result
        return patch('shipease_core.celery.app.control.inspect', return_value=inspector)

    def test_liveness(self, _):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['service'], 'shipease')

    def test_ready_with_workers(self, _):
        with self._celery({'worker@host': {'ok': 'pong'}}):
            response = self.client.get('/health/ready/')

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body['checks']['database']['status'], 'healthy')
        self.assertEqual(body['checks']['cache']['status'], 'healthy')
        self.assertEqual(body['checks']['celery']['workers'], 1)

    def test_no_workers_is_degraded_not_down(self, _):
        with self._celery(None):
            response = self.client.get('/health/ready/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['checks']['celery']['status'], 'degraded')

    def test_broker_error_is_degraded(self, _):
        with self._celery(error=ConnectionError('broker down')):
            response = self.client.get('/health/ready/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['checks']['celery']['error'], 'broker down')

    def test_channel_layer_failure_is_503(self, channel_check):
        channel_check.side_effect = RuntimeError('redis down')
        with self._celery(None):
            response = self.client.get('/health/ready/')

        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertEqual(body['status'], 'unhealthy')
        self.assertEqual(body['checks']['channel_layer']['error'], 'redis down')

    def test_ready_rejects_post(self, _):
        response = self.client.post('/health/ready/')
        self.assertEqual(response.status_code, 405)
