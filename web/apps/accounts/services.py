"""Customer registration.

The user row is committed first; the welcome notification is then sent
inline, before the registration response, and its outcome never fails the
registration.
"""

import logging

from django.db import IntegrityError, transaction

from apps.catalog.models import Tenant
from apps.orders.errors import Conflict, NotFoundError
from gateway.identity import Role

from .models import StoreUser

logger = logging.getLogger(__name__)


class EmailTaken(Conflict):
    code = "EMAIL_TAKEN"
    default_message = "A user with this email already exists"


def register_customer(tenant_id: int, name: str, email: str, phone: str = "", address: str = "", dispatcher=None) -> StoreUser:
    """Create a customer in ``tenant_id`` and send the welcome notification.

    Args:
        dispatcher: ``NotificationDispatcher`` to use; the configured one
            when omitted.

    Raises:
        NotFoundError: Unknown or inactive tenant.
        EmailTaken: The email is already registered in the tenant.
    """
    if not Tenant.objects.filter(pk=tenant_id, is_active=True).exists():
        raise NotFoundError("Tenant not found")

    email = email.strip().lower()
    try:
        with transaction.atomic():
            user = StoreUser.objects.create(
                tenant_id=tenant_id,
                name=name.strip(),
                email=email,
                phone=phone.strip(),
                address=address.strip(),
                role=Role.CUSTOMER.value,
            )
    except IntegrityError:
        raise EmailTaken() from None

    logger.info("customer registered", extra={"tenant_id": tenant_id, "user_id": user.id})

    from apps.notifications.providers import get_dispatcher
    from apps.notifications.services import recipient_from_user

    try:
        (dispatcher or get_dispatcher()).send_welcome(recipient_from_user(user))
    except Exception:
        logger.warning("welcome notification failed", exc_info=True, extra={"user_id": user.id})
    return user
