"""
LOGISTICS - Status taxonomy

Display mapping (colour token + label) for the ten shipment statuses,
plus the informal lifecycle rules:

    pending -> assigned -> picked_up -> in_transit -> out_for_delivery -> delivered

exception / failed / cancelled are reachable from any non-terminal status;
delivered / failed / cancelled are terminal. This module only describes
the rules; the shipment workflow decides whether to apply them.
"""

from logistics.models import ShipmentStatus

FALLBACK_COLOR = 'gray'

STATUS_COLORS = {
    ShipmentStatus.DRAFT: 'gray',
    ShipmentStatus.PENDING: 'yellow',
    ShipmentStatus.ASSIGNED: 'blue',
    ShipmentStatus.PICKED_UP: 'indigo',
    ShipmentStatus.IN_TRANSIT: 'purple',
    ShipmentStatus.OUT_FOR_DELIVERY: 'orange',
    ShipmentStatus.DELIVERED: 'green',
    ShipmentStatus.FAILED: 'red',
    ShipmentStatus.CANCELLED: 'gray',
    ShipmentStatus.EXCEPTION: 'red',
}

TERMINAL_STATUSES = frozenset({
    ShipmentStatus.DELIVERED,
    ShipmentStatus.FAILED,
    ShipmentStatus.CANCELLED,
})

# Shipments a courier is actively working on
ACTIVE_STATUSES = (
    ShipmentStatus.ASSIGNED,
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
)

# Forward path; a status may jump ahead but never move back
LIFECYCLE = (
    ShipmentStatus.DRAFT,
    ShipmentStatus.PENDING,
    ShipmentStatus.ASSIGNED,
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
    ShipmentStatus.DELIVERED,
)

INTERRUPTIONS = frozenset({
    ShipmentStatus.EXCEPTION,
    ShipmentStatus.FAILED,
    ShipmentStatus.CANCELLED,
})


def _coerce(status):
    """Return the ShipmentStatus member for `status`, or None if unknown."""
    try:
        return ShipmentStatus(status)
    except (ValueError, TypeError):
        return None


def is_valid_status(status) -> bool:
    return _coerce(status) is not None


def get_status_color(status) -> str:
    member = _coerce(status)
    if member is None:
        return FALLBACK_COLOR
    return STATUS_COLORS[member]


def get_status_label(status) -> str:
    member = _coerce(status)
    if member is None:
        return str(status)
    return member.label


def is_terminal(status) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def can_transition(current, new) -> bool:
    """
    True when moving from `current` to `new` follows the lifecycle.

    A shipment in `exception` may resume at any active or delivered stage.
    """
    current, new = _coerce(current), _coerce(new)
    if current is None or new is None or current == new:
        return False
    if current in TERMINAL_STATUSES:
        return False
    if new in INTERRUPTIONS:
        return True
    if current == ShipmentStatus.EXCEPTION:
        return new in ACTIVE_STATUSES or new == ShipmentStatus.DELIVERED
    return LIFECYCLE.index(new) > LIFECYCLE.index(current)
