# fees/apps.py

from django.apps import AppConfig


class FeesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "fees"
    verbose_name = "Fees & Payments"

    def ready(self):
        """
        Import signal handlers when the app is ready.
        """
        import fees.signals  # noqa: F401
