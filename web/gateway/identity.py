"""Caller identity handed over by the upstream authentication gateway.

Authentication itself happens outside this service. The gateway forwards
the verified identity as ``X-Tenant-Id``, ``X-User-Id`` and
``X-User-Role`` headers; ``ActorMiddleware`` turns them into an ``Actor``
that views read from ``request.actor``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from apps.orders.errors import AuthenticationRequired, Forbidden


class Role(str, Enum):
    """Roles known to the storefront."""

    CUSTOMER = "customer"
    DELIVERY = "delivery"
    STAFF = "staff"
    ADMIN = "admin"


PRIVILEGED_ROLES = frozenset({Role.STAFF, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """An authenticated caller.

    Attributes:
        tenant_id: Tenant the caller belongs to. Every query is scoped to it.
        user_id: The caller's ``StoreUser`` id.
        role: The caller's role.
    """

    tenant_id: int
    user_id: int
    role: Role

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def parse_actor(tenant_id: Optional[str], user_id: Optional[str], role: Optional[str]) -> Optional[Actor]:
    """Build an ``Actor`` from raw header values, or None if any is unusable."""
    if not (tenant_id and user_id and role):
        return None
    try:
        return Actor(tenant_id=int(tenant_id), user_id=int(user_id), role=Role(role.strip().lower()))
    except ValueError:
        return None


def require_actor(request, *roles: Role) -> Actor:
    """Return the request's actor, enforcing an optional role allow-list.

    Raises:
        AuthenticationRequired: No identity was forwarded.
        Forbidden: The actor's role is not in ``roles``.
    """
    actor = getattr(request, "actor", None)
    if actor is None:
        raise AuthenticationRequired()
    if roles and actor.role not in roles:
        allowed = " or ".join(r.value for r in roles)
        raise Forbidden(f"Access denied. Required role: {allowed}")
    return actor
