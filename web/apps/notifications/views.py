"""Notification log admin endpoints.

Staff and admins can browse the tenant's notification log, resend a
logged notification, send a test notification to a user, and read channel
settings and log statistics. Customers may read their own records through
``users/<id>/``.
"""

from datetime import timedelta

from django.conf import settings
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.accounts.models import StoreUser
from apps.orders.errors import Forbidden, NotFoundError, ValidationError
from apps.orders.repository import OrderRepository
from apps.orders.schemas import parse
from gateway.identity import Role, require_actor
from gateway.pagination import paginate

from .domain import Channel, NotificationKind
from .models import NotificationRecord
from .providers import channel_flags, get_dispatcher
from .schemas import ChannelSettingsDTO, NotificationSettingsDTO, TestNotificationDTO, record_to_dict
from .services import order_snapshot, recipient_from_user

PRIVILEGED = (Role.STAFF, Role.ADMIN)
RECENT_DAYS = 7
TOP_RECIPIENTS = 10

TEST_CHANNELS = {
    "test_email": Channel.EMAIL,
    "test_sms": Channel.SMS,
    "test_whatsapp": Channel.WHATSAPP,
}


class CannotResend(ValidationError):
    code = "CANNOT_RESEND"
    default_message = "This notification type cannot be resent"


def _get_record(actor, record_id) -> NotificationRecord:
    record = (
        NotificationRecord.objects.filter(tenant_id=actor.tenant_id, pk=record_id)
        .select_related("user")
        .first()
    )
    if record is None:
        raise NotFoundError("Notification not found")
    return record


class NotificationLogListView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def get(self, request):
        actor = require_actor(request, *PRIVILEGED)
        qs = NotificationRecord.objects.filter(tenant_id=actor.tenant_id)
        kind = request.GET.get("type")
        if kind:
            qs = qs.filter(type=kind)
        user_id = request.GET.get("user_id")
        if user_id:
            if not user_id.isdigit():
                raise ValidationError("user_id must be an integer", field="user_id")
            qs = qs.filter(user_id=int(user_id))
        return Response(paginate(request, qs.order_by("-created_at", "-id"), record_to_dict))


class NotificationLogDetailView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def get(self, request, record_id: int):
        actor = require_actor(request, *PRIVILEGED)
        return Response(record_to_dict(_get_record(actor, record_id)))


class NotificationResendView(APIView):
    """Dispatch a logged notification again, inline, and log the new attempt."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def post(self, request, record_id: int):
        actor = require_actor(request, *PRIVILEGED)
        record = _get_record(actor, record_id)
        recipient = recipient_from_user(record.user)
        dispatcher = get_dispatcher()

        if record.type == NotificationKind.WELCOME.value:
            result = dispatcher.send_welcome(recipient)
        elif record.type in (NotificationKind.ORDER_CONFIRMATION.value, NotificationKind.ORDER_STATUS_UPDATE.value):
            order = OrderRepository().find_by_number(actor.tenant_id, record.reference)
            if order is None:
                raise NotFoundError("Order not found")
            snapshot = order_snapshot(order)
            if record.type == NotificationKind.ORDER_CONFIRMATION.value:
                result = dispatcher.send_order_confirmation(recipient, snapshot)
            else:
                status = (record.result or {}).get("status") or order.status
                result = dispatcher.send_status_update(recipient, snapshot, status)
        else:
            raise CannotResend()

        return Response({"type": record.type, "reference": record.reference, "result": result})


class NotificationSettingsView(APIView):
    def get(self, request):
        require_actor(request, *PRIVILEGED)
        flags = channel_flags()
        twilio_ready = bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN)
        body = NotificationSettingsDTO(
            email=ChannelSettingsDTO(enabled=flags[Channel.EMAIL], sender=settings.DEFAULT_FROM_EMAIL),
            sms=ChannelSettingsDTO(
                enabled=flags[Channel.SMS],
                sender=settings.TWILIO_PHONE_NUMBER or None,
                configured=twilio_ready and bool(settings.TWILIO_PHONE_NUMBER),
            ),
            whatsapp=ChannelSettingsDTO(
                enabled=flags[Channel.WHATSAPP],
                sender=settings.TWILIO_WHATSAPP_NUMBER or None,
                configured=twilio_ready and bool(settings.TWILIO_WHATSAPP_NUMBER),
            ),
            frontend_url=settings.FRONTEND_URL,
        )
        return Response(body.model_dump())


class UserNotificationsView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def get(self, request, user_id: int):
        actor = require_actor(request)
        if not actor.is_privileged and actor.user_id != user_id:
            raise Forbidden("You can only view your own notifications")
        if not StoreUser.objects.filter(tenant_id=actor.tenant_id, pk=user_id).exists():
            raise NotFoundError("User not found")
        qs = NotificationRecord.objects.filter(tenant_id=actor.tenant_id, user_id=user_id)
        return Response(paginate(request, qs.order_by("-created_at", "-id"), record_to_dict))


class NotificationTestView(APIView):
    """Send a welcome, or a test message on one channel, to a tenant user."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def post(self, request):
        actor = require_actor(request, *PRIVILEGED)
        dto = parse(TestNotificationDTO, request.data)
        user = StoreUser.objects.filter(tenant_id=actor.tenant_id, pk=dto.user_id).first()
        if user is None:
            raise NotFoundError("User not found")

        recipient = recipient_from_user(user)
        dispatcher = get_dispatcher()
        if dto.type == "welcome":
            result = dispatcher.send_welcome(recipient)
        else:
            result = dispatcher.send_test(recipient, TEST_CHANNELS[dto.type])

        details = {name: (outcome or {}).get("status", "skipped") for name, outcome in result.items()}
        return Response({"type": dto.type, "user_id": user.id, "result": result, "details": details})


class NotificationStatsView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "notifications"

    def get(self, request):
        actor = require_actor(request, *PRIVILEGED)
        qs = NotificationRecord.objects.filter(tenant_id=actor.tenant_id)

        by_type = list(qs.values("type").annotate(count=Count("id")).order_by("-count", "type"))
        since = timezone.now() - timedelta(days=RECENT_DAYS)
        recent = (
            qs.filter(created_at__gte=since)
            .annotate(date=TruncDate("created_at"))
            .values("date")
            .annotate(count=Count("id"))
            .order_by("-date")
        )
        top = (
            qs.values("user_id", "user__name", "user__email")
            .annotate(count=Count("id"))
            .order_by("-count", "user_id")[:TOP_RECIPIENTS]
        )
        return Response(
            {
                "total": qs.count(),
                "by_type": by_type,
                "recent_activity": [{"date": row["date"].isoformat(), "count": row["count"]} for row in recent],
                "top_recipients": [
                    {"user_id": row["user_id"], "name": row["user__name"], "email": row["user__email"], "count": row["count"]}
                    for row in top
                ],
            }
        )
