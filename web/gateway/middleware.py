"""Gateway middleware: request correlation, body limits and caller identity.

Behavior contract:
- ``RequestIdMiddleware`` reuses an incoming ``X-Request-Id`` header or
  generates a UUIDv4, stores it on ``request.request_id`` and in
  ``REQUEST_ID_CTX``, and echoes it back as ``X-Request-ID``.
- ``ApiSizeLimitMiddleware`` rejects ``/api/`` bodies larger than
  ``API_MAX_BYTES`` with 413.
- ``ActorMiddleware`` exposes the identity forwarded by the authentication
  gateway as ``request.actor`` (None when absent or malformed) and the
  tenant alone as ``request.tenant_id`` for anonymous endpoints such as
  registration.
"""

import contextvars
import os
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from .identity import parse_actor

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
TENANT_ID_CTX = contextvars.ContextVar("tenant_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))


class RequestIdMiddleware(MiddlewareMixin):
    """Django middleware that sets and returns a per-request identifier.

    Attributes:
        HEADER (str): Incoming header name in ``request.META`` casing.
        RESPONSE_HEADER (str): Header added to outgoing responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER)
        if not rid:
            rid = str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if request.path.startswith("/api/"):
            clen = request.META.get("CONTENT_LENGTH")
            if clen and clen.isdigit() and int(clen) > MAX_API_BYTES:
                return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)


class ActorMiddleware(MiddlewareMixin):
    """Attach the caller identity forwarded by the authentication gateway."""

    TENANT_HEADER = "HTTP_X_TENANT_ID"
    USER_HEADER = "HTTP_X_USER_ID"
    ROLE_HEADER = "HTTP_X_USER_ROLE"

    def process_request(self, request):
        actor = parse_actor(
            request.META.get(self.TENANT_HEADER),
            request.META.get(self.USER_HEADER),
            request.META.get(self.ROLE_HEADER),
        )
        request.actor = actor
        raw_tenant = (request.META.get(self.TENANT_HEADER) or "").strip()
        request.tenant_id = actor.tenant_id if actor else (int(raw_tenant) if raw_tenant.isdigit() else None)
        TENANT_ID_CTX.set(str(request.tenant_id) if request.tenant_id is not None else "-")
