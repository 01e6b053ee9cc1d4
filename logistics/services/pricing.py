"""
Pricing Engine for SHIPEASE

Quotes a shipment price from weight, distance and service tier.
"""

import math
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.conf import settings

from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


DEFAULT_PRICING = {
    'BASE_RATES': {
        'same_day': 15,
        'next_day': 10,
        'standard': 5,
        'express': 20,
        'freight': 50,
        'pallet': 40,
        'cross_border': 100,
    },
    'DEFAULT_BASE_RATE': 10,
    'WEIGHT_UNIT_RATE': 0.5,
    'DISTANCE_UNIT_RATE': 0.3,
}


class PricingEngine:
    """
    Price calculation engine.

    Formula: Price = Max(Base, Base + Weight * WeightRate + Distance * DistanceRate)

    The base rate of the tier is a floor: zero or negative weight/distance
    never brings the price under it. The result is a plain float; rounding
    to cents is left to the caller (see `round_to_cents`).
    """

    def __init__(self, config: Optional[dict] = None):
        config = {**DEFAULT_PRICING, **(config or getattr(settings, 'SHIPEASE_PRICING', {}))}
        self.base_rates = {key: float(value) for key, value in config['BASE_RATES'].items()}
        self.default_base_rate = float(config['DEFAULT_BASE_RATE'])
        self.weight_unit_rate = float(config['WEIGHT_UNIT_RATE'])
        self.distance_unit_rate = float(config['DISTANCE_UNIT_RATE'])

    def get_base_rate(self, service_type: str) -> float:
        """Base rate of a tier; unknown tiers get the default base rate."""
        if service_type not in self.base_rates:
            logger.debug(f"[PRICING] Unknown service type {service_type!r}, using default base rate")
        return self.base_rates.get(service_type, self.default_base_rate)

    def quote(self, weight_kg: float, distance_km: float, service_type: str) -> float:
        """
        Quote a price.

        Args:
            weight_kg: Package weight
            distance_km: Route distance
            service_type: Service tier (same_day, standard, express, ...)

        Returns:
            Price as a float currency amount

        Raises:
            ValidationError: weight or distance is not a finite number
        """
        weight_kg = self._as_finite('weight_kg', weight_kg)
        distance_km = self._as_finite('distance_km', distance_km)

        base = self.get_base_rate(service_type)
        weight_cost = weight_kg * self.weight_unit_rate
        distance_cost = distance_km * self.distance_unit_rate

        return max(base, base + weight_cost + distance_cost)

    @staticmethod
    def _as_finite(name: str, value) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a number", **{name: value})
        if not math.isfinite(number):
            raise ValidationError(f"{name} must be finite", **{name: value})
        return number


def round_to_cents(amount: float) -> Decimal:
    """
    Round a quote to currency minor units.

    Example: 35.004 -> Decimal('35.00'), 12.345 -> Decimal('12.35')
    """
    return Decimal(str(amount)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def pricing_engine() -> PricingEngine:
    """Engine built from the current settings (tests may override them)."""
    return PricingEngine()
