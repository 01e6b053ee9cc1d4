"""
SHIPEASE error taxonomy.

ValidationError  - malformed input (tracking code, missing address field,
                   weight/speed outside the documented domain)
NotFoundError    - no record for a tracking code or id
PersistenceError - the database rejected a read or write

None of these are retried here; retry policy belongs to the caller.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ShipEaseError(Exception):
    """Base class for every domain error raised by SHIPEASE."""

    code = 'error'

    def __init__(self, message: str = '', **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ShipEaseError, ValueError):
    code = 'validation_error'


class NotFoundError(ShipEaseError, LookupError):
    code = 'not_found'


class PersistenceError(ShipEaseError):
    code = 'persistence_error'


_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def api_exception_handler(exc, context):
    """
    DRF exception handler that understands the domain errors.

    Anything that is not a ShipEaseError goes to DRF's default handler.
    """
    if isinstance(exc, ShipEaseError):
        http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_class, mapped in _STATUS_BY_ERROR:
            if isinstance(exc, error_class):
                http_status = mapped
                break

        if http_status >= 500:
            logger.error(f"[API] {exc.code}: {exc.message}")

        body = {'error': exc.message, 'code': exc.code}
        if exc.details:
            body['details'] = exc.details
        return Response(body, status=http_status)

    return exception_handler(exc, context)
