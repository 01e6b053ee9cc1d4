"""
Tests for distance and ETA helpers.
"""

import math
from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase

from core.exceptions import ValidationError
from logistics.utils import EARTH_RADIUS_KM, distance_km, estimate_eta, format_remaining

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=dt_timezone.utc)


class TestDistance(SimpleTestCase):

    def test_known_distance(self):
        """Paris -> London is about 343.5 km."""
        self.assertAlmostEqual(distance_km(48.8566, 2.3522, 51.5074, -0.1278), 343.5, delta=1.0)

    def test_one_degree_of_longitude_at_equator(self):
        self.assertAlmostEqual(distance_km(0, 0, 0, 1), 111.19, delta=0.01)

    def test_same_point_is_zero(self):
        self.assertEqual(distance_km(40.7128, -74.0060, 40.7128, -74.0060), 0.0)

    def test_symmetric(self):
        a = distance_km(10, 20, -5, 60)
        b = distance_km(-5, 60, 10, 20)
        self.assertAlmostEqual(a, b, places=9)

    def test_antipodal_points(self):
        self.assertAlmostEqual(distance_km(0, 0, 0, 180), math.pi * EARTH_RADIUS_KM, places=3)


class TestEstimateEta(SimpleTestCase):

    def test_distance_over_speed(self):
        self.assertEqual(estimate_eta(100, 40, now=NOW), NOW + timedelta(hours=2.5))

    def test_zero_distance_is_now(self):
        self.assertEqual(estimate_eta(0, 40, now=NOW), NOW)

    def test_default_speed(self):
        self.assertEqual(estimate_eta(40, now=NOW), NOW + timedelta(hours=1))

    def test_rejects_non_positive_speed(self):
        for speed in (0, -10, None):
            with self.assertRaises(ValidationError):
                estimate_eta(10, speed, now=NOW)

    def test_rejects_negative_distance(self):
        with self.assertRaises(ValidationError):
            estimate_eta(-1, 40, now=NOW)


class TestFormatRemaining(SimpleTestCase):

    def test_delayed(self):
        self.assertEqual(format_remaining(NOW - timedelta(minutes=1), now=NOW), 'Delayed')

    def test_minutes_only(self):
        self.assertEqual(format_remaining(NOW + timedelta(minutes=45), now=NOW), '45m')
        self.assertEqual(format_remaining(NOW, now=NOW), '0m')

    def test_hours_and_minutes(self):
        self.assertEqual(format_remaining(NOW + timedelta(hours=1), now=NOW), '1h 0m')
        self.assertEqual(format_remaining(NOW + timedelta(hours=5, minutes=30), now=NOW), '5h 30m')

    def test_days(self):
        self.assertEqual(format_remaining(NOW + timedelta(hours=24), now=NOW), '1 day')
        self.assertEqual(format_remaining(NOW + timedelta(hours=30), now=NOW), '1 day')
        self.assertEqual(format_remaining(NOW + timedelta(days=3, hours=4), now=NOW), '3 days')
