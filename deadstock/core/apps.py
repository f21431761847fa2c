from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'deadstock.core'

    def ready(self):
        """Import signals when app is ready"""
        import deadstock.core.cache_signals  # noqa: F401
