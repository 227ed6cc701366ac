"""Liveness/health endpoint.

Reports database reachability (503 when it is down) and which
notification channels are switched on, plus the text and chat circuit
breaker states.
"""

import logging

from django.db import connection
from django.http import JsonResponse

from apps.notifications.http_adapters import circuit_states
from apps.notifications.providers import channel_flags

logger = logging.getLogger(__name__)


def health_view(_request):
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except Exception:
        logger.warning("health check: database unreachable", exc_info=True)
        db_ok = False

    channels = {channel.value: enabled for channel, enabled in channel_flags().items()}
    code = 200 if db_ok else 503
    return JsonResponse(
        {
            "ok": db_ok,
            "components": {
                "db": {"ok": db_ok},
                "notifications": {
                    "channels": channels,
                    "circuits": circuit_states(),
                },
            },
        },
        status=code,
    )
