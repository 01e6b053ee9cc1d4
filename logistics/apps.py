from django.apps import AppConfig


class LogisticsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'logistics'

    def ready(self):
        # Register signals for realtime broadcasts and ETA refresh
        import logistics.signals  # noqa: F401
