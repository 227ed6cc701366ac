"""Idempotency keys for order placement.

A key is scoped to the tenant. The first request with a key creates a
pending record and, once the order attempt finishes, stores the response.
A retry with the same key and payload replays that response; the same key
with a different payload is a conflict.
"""

import hashlib
import json

from django.db import IntegrityError, transaction

from .errors import Conflict
from .models import IdempotencyKey


class IdempotencyConflict(Conflict):
    code = "IDEMPOTENCY_CONFLICT"
    default_message = "Idempotency-Key was already used with a different request"


def _hash(payload) -> str:
    """Stable SHA-256 of a JSON-serializable payload (sorted keys, compact separators)."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@transaction.atomic
def get_or_create_idempotent(tenant_id: int, key: str, payload):
    """Get-or-create the record for ``(tenant_id, key)``.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``; ``existing`` is
        False when the record was created by this call.

    Raises:
        IdempotencyConflict: The key exists with a different payload hash.
    """
    h = _hash(payload)

    try:
        # Nested savepoint: if IntegrityError occurs, only this block is rolled back.
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(
                tenant_id=tenant_id, key=key, request_hash=h, response_status=0, response_body={}
            )
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(tenant_id=tenant_id, key=key)
        if rec.request_hash != h:
            raise IdempotencyConflict()
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None):
    """Store the final response so retries can replay it."""
    rec.response_status = status_code
    rec.response_body = body
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])


class IdempotencyInProgress(Conflict):
    code = "IDEMPOTENCY_IN_PROGRESS"
    default_message = "A request with this Idempotency-Key is still being processed"
