"""
Shared test data for SHIPEASE logistics tests.
"""

from decimal import Decimal
from itertools import count

from core.models import User, UserRole
from logistics.models import Shipment, ShipmentStatus

_sequence = count(1)


def make_user(role=UserRole.CUSTOMER, **extra):
    n = next(_sequence)
    extra.setdefault('full_name', f'{role.title()} {n}')
    return User.objects.create_user(
        email=f'{role}{n}@shipease.test',
        password='testpass123',
        role=role,
        **extra
    )


def shipment_payload(**overrides):
    """Valid creation data (no coordinates: placeholder distance)."""
    data = {
        'sender_name': 'Alice Sender',
        'sender_phone': '+15550000001',
        'sender_address': {'line1': '1 Main St', 'city': 'Springfield', 'country': 'US'},
        'recipient_name': 'Bob Recipient',
        'recipient_phone': '+15550000002',
        'recipient_address': {'line1': '9 Elm St', 'city': 'Shelbyville', 'country': 'US'},
        'weight_kg': 2,
        'service_type': 'standard',
    }
    data.update(overrides)
    return data


def make_shipment(customer, tracking_code=None, **fields):
    """Insert a shipment row directly, bypassing the workflow."""
    n = next(_sequence)
    defaults = {
        'tracking_code': tracking_code or f'SE-TEST-{n:04d}-AAAA',
        'sender_name': 'Alice Sender',
        'sender_phone': '+15550000001',
        'sender_address': {'line1': '1 Main St', 'city': 'Springfield', 'country': 'US'},
        'recipient_name': 'Bob Recipient',
        'recipient_phone': '+15550000002',
        'recipient_address': {'line1': '9 Elm St', 'city': 'Shelbyville', 'country': 'US'},
        'weight_kg': 2.0,
        'status': ShipmentStatus.PENDING,
        'price_quoted': Decimal('36.00'),
    }
    defaults.update(fields)
    return Shipment.objects.create(customer=customer, **defaults)
