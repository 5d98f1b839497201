import atexit

from django.apps import AppConfig, apps


class NotificationsConfig(AppConfig):
    """Owns the process's single ``NotificationBus``.

    The bus is started when the app registry is ready and shut down at
    interpreter exit.  Views fetch it with ``get_notification_bus`` and
    hand it to the services by constructor injection.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.notifications"
    label = "notifications"

    def ready(self) -> None:
        from modules.notifications.bus import NotificationBus

        self.bus = NotificationBus()
        self.bus.init()
        atexit.register(self.bus.shutdown)


def get_notification_bus():
    return apps.get_app_config("notifications").bus
