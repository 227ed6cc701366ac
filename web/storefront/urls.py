from django.urls import include, path

urlpatterns = [
    path("", include("apps.monitoring.urls")),
    path("api/accounts/", include("apps.accounts.urls")),
    path("api/orders/", include("apps.orders.urls")),
    path("api/notifications/", include("apps.notifications.urls")),
]
