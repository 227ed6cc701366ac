"""Best-effort audit log of notification dispatches."""

import logging
from typing import Optional

from django.db import transaction

from .models import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationLogStore:
    """Writes ``NotificationRecord`` rows and never raises.

    The write runs in its own savepoint so a failure cannot poison an
    enclosing transaction; the error is logged and the record is lost.
    """

    def record(self, tenant_id: int, user_id: int, kind: str, reference: str, result: dict) -> Optional[NotificationRecord]:
        try:
            with transaction.atomic():
                return NotificationRecord.objects.create(
                    tenant_id=tenant_id,
                    user_id=user_id,
                    type=kind,
                    reference=reference,
                    result=result,
                )
        except Exception:
            logger.error(
                "notification log write failed",
                exc_info=True,
                extra={"tenant_id": tenant_id, "user_id": user_id, "kind": kind, "reference": reference},
            )
            return None
