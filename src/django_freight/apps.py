"""Django app configuration for django-freight."""

from django.apps import AppConfig
from django.core.exceptions import ImproperlyConfigured


class DjangoFreightConfig(AppConfig):
    """App configuration for django-freight."""

    name = 'django_freight'
    verbose_name = 'Freight'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        """Refuse to start with a malformed transition graph."""
        from .states import ALL_GRAPHS

        errors = [f"{graph.name}: {error}" for graph in ALL_GRAPHS for error in graph.validate()]
        if errors:
            raise ImproperlyConfigured("Invalid transition graphs: " + "; ".join(errors))
