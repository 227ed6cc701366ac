from django.urls import path

from .views import (
    NotificationLogDetailView,
    NotificationLogListView,
    NotificationResendView,
    NotificationSettingsView,
    NotificationStatsView,
    NotificationTestView,
    UserNotificationsView,
)

app_name = "notifications"

urlpatterns = [
    path("logs/", NotificationLogListView.as_view(), name="logs"),
    path("logs/<int:record_id>/", NotificationLogDetailView.as_view(), name="log-detail"),
    path("logs/<int:record_id>/resend/", NotificationResendView.as_view(), name="log-resend"),
    path("settings/", NotificationSettingsView.as_view(), name="settings"),
    path("stats/", NotificationStatsView.as_view(), name="stats"),
    path("test/", NotificationTestView.as_view(), name="test"),
    path("users/<int:user_id>/", UserNotificationsView.as_view(), name="user-logs"),
]
