from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Base class for errors raised by the payment core."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(PaymentError):
    status_code = status.HTTP_404_NOT_FOUND


class SignatureError(PaymentError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ProviderError(PaymentError):
    """A call to the remote payment provider failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", *, code: str | None = None, http_status: int | None = None) -> None:
        super().__init__(message, code=code)
        self.http_status = http_status


class WebhookParseError(PaymentError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnsupportedEventError(WebhookParseError):
    """Webhook notification for a resource type we do not reconcile."""


class ReconciliationError(PaymentError):
    pass


class MoneyInvariantError(PaymentError):
    """A monetary computation produced an impossible value."""


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, PaymentError):
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        return Response({"detail": exc.message}, status=exc.status_code)
    return None
