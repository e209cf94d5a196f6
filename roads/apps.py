from django.apps import AppConfig


class RoadsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "roads"
    verbose_name = "Road condition"

    def ready(self):  # pragma: no cover - side effect registration
        from . import signals  # noqa: F401
