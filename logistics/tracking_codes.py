"""
LOGISTICS - Tracking code generation & validation

Format: SE-XXXX-XXXX-XXXX (12 characters in 3 groups of 4).
The alphabet leaves out characters that are easy to misread on a
label or over the phone (0/O, 1/I).
"""

import re
import secrets

TRACKING_CODE_PREFIX = 'SE'
TRACKING_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
GROUP_COUNT = 3
GROUP_SIZE = 4

_GROUP_PATTERN = f"[{re.escape(TRACKING_CODE_ALPHABET)}]{{{GROUP_SIZE}}}"
TRACKING_CODE_REGEX = re.compile(
    rf"^{TRACKING_CODE_PREFIX}(?:-{_GROUP_PATTERN}){{{GROUP_COUNT}}}$"
)

# Codes issued before the alphabet was narrowed may still hold 0/1/O/I
LOOKUP_CODE_REGEX = re.compile(
    rf"^{TRACKING_CODE_PREFIX}(?:-[A-Z0-9]{{{GROUP_SIZE}}}){{{GROUP_COUNT}}}$"
)


def generate_tracking_code() -> str:
    """
    Generate a random tracking code.

    Uniqueness is NOT checked here: the unique constraint on
    Shipment.tracking_code catches the (very unlikely) collision and
    the shipment workflow regenerates.
    """
    groups = [
        ''.join(secrets.choice(TRACKING_CODE_ALPHABET) for _ in range(GROUP_SIZE))
        for _ in range(GROUP_COUNT)
    ]
    return '-'.join([TRACKING_CODE_PREFIX, *groups])


def is_valid_tracking_code(code) -> bool:
    """Return True iff `code` matches the tracking code format exactly."""
    if not isinstance(code, str):
        return False
    return TRACKING_CODE_REGEX.fullmatch(code) is not None


def is_trackable_code(code) -> bool:
    """Return True iff `code` has the shape of a stored tracking code."""
    if not isinstance(code, str):
        return False
    return LOOKUP_CODE_REGEX.fullmatch(code) is not None


def normalize_tracking_code(code: str) -> str:
    """Clean user input (tracking page search box) before lookup."""
    return (code or '').strip().upper()
