from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    name = "apps.notifications"
    label = "notifications"

    def ready(self):
        from .executor import shutdown_executor
        import atexit

        atexit.register(shutdown_executor)
