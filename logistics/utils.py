"""
SHIPEASE - Logistics Utilities
===============================
Great-circle distance and speed-based ETA estimation.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

from core.exceptions import ValidationError


# ============================================
# CONSTANTES DE CONFIGURATION
# ============================================

# Rayon de la Terre en km (sphère)
EARTH_RADIUS_KM = 6371.0

# Vitesse moyenne par défaut quand on ne connaît rien du trajet
DEFAULT_AVG_SPEED_KMH = 40


# ============================================
# DISTANCE CALCULATION (Haversine)
# ============================================

def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calcule la distance à vol d'oiseau entre deux points GPS.
    Utilise la formule de Haversine.

    Args:
        lat1, lon1: Coordonnées du point de départ (degrés)
        lat2, lon2: Coordonnées du point d'arrivée (degrés)

    Returns:
        Distance en kilomètres (>= 0)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Float noise can push `a` a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


# ============================================
# ETA
# ============================================

def estimate_eta(
    distance: float,
    avg_speed_kmh: float = DEFAULT_AVG_SPEED_KMH,
    now: Optional[datetime] = None
) -> datetime:
    """
    Estimate the arrival time: now + distance / speed hours.

    Raises:
        ValidationError: speed is zero/negative or distance is negative
    """
    if avg_speed_kmh is None or avg_speed_kmh <= 0:
        raise ValidationError(
            "Average speed must be positive",
            avg_speed_kmh=avg_speed_kmh,
        )
    if distance < 0:
        raise ValidationError("Distance cannot be negative", distance_km=distance)

    now = now or timezone.now()
    return now + timedelta(hours=distance / avg_speed_kmh)


def format_remaining(eta: datetime, now: Optional[datetime] = None) -> str:
    """
    Human string for the time left until `eta`.

    Buckets (lower bound inclusive):
        < 0     -> "Delayed"
        >= 24h  -> "N day(s)"
        >= 1h   -> "Xh Ym"
        else    -> "Ym"
    """
    now = now or timezone.now()
    remaining = (eta - now).total_seconds()

    if remaining < 0:
        return 'Delayed'

    total_minutes = int(remaining // 60)
    hours, minutes = divmod(total_minutes, 60)

    if hours >= 24:
        days = hours // 24
        return f"{days} day{'s' if days > 1 else ''}"

    if hours >= 1:
        return f"{hours}h {minutes}m"

    return f"{minutes}m"
