"""DRF exception handler and error body formatting.

Whether unexpected errors expose their message and traceback is decided
once, from ``settings.API_EXPOSE_ERROR_DETAILS``, when the formatter is
first built. Domain errors always render their own code and message.
"""

import logging
import traceback
from functools import lru_cache

from django.conf import settings
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.orders.errors import DomainError, InternalError

logger = logging.getLogger(__name__)


class ErrorFormatter:
    """Render errors into API responses.

    Args:
        expose_details: When True, 500 bodies include the exception message
            and traceback. Intended for development only.
    """

    def __init__(self, expose_details: bool):
        self.expose_details = expose_details

    def domain(self, exc: DomainError) -> Response:
        return Response(exc.as_body(), status=exc.status_code)

    def unexpected(self, exc: Exception) -> Response:
        body = InternalError().as_body()
        if self.expose_details:
            body["message"] = str(exc) or body["message"]
            body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return Response(body, status=500)


@lru_cache(maxsize=1)
def get_error_formatter() -> ErrorFormatter:
    return ErrorFormatter(bool(getattr(settings, "API_EXPOSE_ERROR_DETAILS", False)))


def api_exception_handler(exc, context):
    """Map domain errors and unexpected failures to JSON responses.

    DRF's own exceptions (throttling, method not allowed, parse errors)
    keep DRF's default rendering.
    """
    formatter = get_error_formatter()
    if isinstance(exc, DomainError):
        if exc.status_code >= 500:
            logger.error("request failed", extra={"code": exc.code}, exc_info=exc)
        return formatter.domain(exc)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    logger.error("unhandled error", exc_info=exc)
    return formatter.unexpected(exc)
