from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.orders.errors import ValidationError
from apps.orders.schemas import parse

from .schemas import RegisterDTO, user_to_dict
from .services import register_customer


class RegisterView(APIView):
    """Register a customer in the tenant named by ``X-Tenant-Id``."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "register"

    def post(self, request):
        tenant_id = getattr(request, "tenant_id", None)
        if tenant_id is None:
            raise ValidationError("X-Tenant-Id header is required", field="tenant")
        dto = parse(RegisterDTO, request.data)
        user = register_customer(tenant_id, dto.name, dto.email, dto.phone, dto.address)
        return Response(user_to_dict(user), status=status.HTTP_201_CREATED)
