from django.apps import AppConfig


class FieldsyncConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'fieldsync'

    def ready(self):
        # Import signal handlers
        from . import signals  # noqa: F401
