"""Logging filter that stamps records with the current request context.

Formatters can rely on ``%(request_id)s`` and ``%(tenant_id)s`` being
present: records emitted outside a request (for example from the
notification worker threads) carry a hyphen placeholder.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX, TENANT_ID_CTX


class RequestIdFilter(Filter):
    """Attach ``request_id`` and ``tenant_id`` attributes to log records."""

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID_CTX.get()
        if not hasattr(record, "tenant_id"):
            record.tenant_id = TENANT_ID_CTX.get()
        return True
