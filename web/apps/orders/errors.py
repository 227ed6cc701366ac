"""Error taxonomy shared by the order core and its HTTP boundary.

Every error carries a stable upper-case ``code`` (returned to clients as
``detail``), a human readable message and the HTTP status it maps to.
``gateway.errors`` turns them into responses.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for errors the API reports to callers."""

    code = "ERROR"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def as_body(self) -> Dict[str, Any]:
        body = {"detail": self.code, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(DomainError):
    """Malformed or missing input, detected before any mutation."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Invalid request"


class AuthenticationRequired(DomainError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(DomainError):
    """Role or ownership violation."""

    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(DomainError):
    """Entity absent or outside the actor's scope."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class Conflict(DomainError):
    """Request clashes with current state; raised mid-transaction it forces a rollback."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Conflict"


class ProductUnavailable(Conflict):
    code = "PRODUCT_UNAVAILABLE"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found or unavailable", product_id=product_id)


class InsufficientStock(Conflict):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, product_name: str, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}",
            product_id=product_id,
            product_name=product_name,
            available=available,
        )


class InvalidStatus(DomainError):
    """Requested status is unknown or not reachable from the current one."""

    code = "INVALID_STATUS"
    status_code = 400
    default_message = "Invalid status"


class InternalError(DomainError):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"
