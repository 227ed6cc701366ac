"""HTTP views for the orders app.

Views are kept intentionally small: they resolve the caller's ``Actor``,
validate the request (via Pydantic), map it to domain DTOs, delegate to a
domain service and return a response. Domain errors propagate to
``gateway.errors.api_exception_handler``.

Services come from ``providers.get_order_service()`` and
``providers.get_status_service()`` so tests can swap implementations
without changing view logic.

Idempotency: when an ``Idempotency-Key`` header is provided, the create
endpoint stores the final response (success or domain error) under the
tenant-scoped key. Retries with the same payload replay it with an
``Idempotent-Replay: true`` header; reusing the key with a different
payload returns 409 ``IDEMPOTENCY_CONFLICT``.
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from gateway.identity import Role, require_actor
from gateway.pagination import paginate

from .domain import OrderLineRequest, PlaceOrderCommand
from .errors import DomainError
from .idempotency import IdempotencyInProgress, finalize, get_or_create_idempotent
from .lifecycle import parse_status
from .providers import get_order_service, get_status_service
from .repository import OrderRepository
from .schemas import CreateOrderDTO, PlacedOrderDTO, UpdateStatusDTO, order_to_dict, parse


class OrdersCollectionView(APIView):
    """List visible orders (GET) or place an order as a customer (POST)."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        actor = require_actor(request)
        wanted = request.GET.get("status")
        if wanted:
            wanted = parse_status(wanted).value
        qs = OrderRepository().list(actor, wanted)
        return Response(paginate(request, qs, order_to_dict), status=200)

    def post(self, request):
        """Place an order.

        Returns:
            Response: One of the following responses.
            - 201 with {order_id, order_number, total_amount}.
            - replay of the stored response for a retried ``Idempotency-Key``.
            - 409 ``IDEMPOTENCY_CONFLICT`` for a reused key with a new payload.
            - 400 ``VALIDATION_ERROR`` for malformed input.
            - 409 ``PRODUCT_UNAVAILABLE`` / ``INSUFFICIENT_STOCK``.
        """
        actor = require_actor(request, Role.CUSTOMER)
        idem_key = request.headers.get("Idempotency-Key")

        dto = parse(CreateOrderDTO, request.data)

        rec = None
        if idem_key:
            existing, rec = get_or_create_idempotent(actor.tenant_id, idem_key, request.data)
            if existing:
                if not rec.response_status:
                    raise IdempotencyInProgress()
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        command = PlaceOrderCommand(
            tenant_id=actor.tenant_id,
            customer_id=actor.user_id,
            lines=[OrderLineRequest(product_id=i.product_id, quantity=i.quantity) for i in dto.items],
            delivery_address=dto.delivery_address,
            payment_method=dto.payment_method,
            payment_id=dto.payment_id,
            gateway_order_id=dto.gateway_order_id,
            notes=dto.notes,
        )

        try:
            placed = get_order_service().place_order(command)
        except DomainError as e:
            if rec:
                finalize(rec, e.status_code, e.as_body())
            raise
        except Exception:
            # unknown outcome: free the key so the client can retry
            if rec:
                rec.delete()
            raise

        body = PlacedOrderDTO(
            order_id=placed.order_id,
            order_number=placed.order_number,
            total_amount=placed.total_amount,
        ).model_dump(mode="json")

        if rec:
            finalize(rec, status.HTTP_201_CREATED, body, order_id=placed.order_id)
        return Response(body, status=status.HTTP_201_CREATED)


class RetrieveOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        actor = require_actor(request)
        return Response(order_to_dict(OrderRepository().get(actor, oid)), status=200)


class OrderStatusView(APIView):
    """Move an order through its lifecycle; see ``lifecycle.py`` for the rules."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_status"

    def patch(self, request, oid):
        actor = require_actor(request)
        dto = parse(UpdateStatusDTO, request.data)
        get_status_service().transition(actor, oid, dto.status)
        order = OrderRepository().load(actor.tenant_id, oid)
        return Response(order_to_dict(order), status=200)


class OrderStatsView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_list"

    def get(self, request):
        actor = require_actor(request, Role.STAFF, Role.ADMIN)
        stats = OrderRepository().stats(actor.tenant_id)
        stats["total_revenue"] = str(stats["total_revenue"])
        return Response(stats, status=200)
