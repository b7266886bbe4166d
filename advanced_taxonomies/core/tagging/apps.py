"""
tagging Django application initialization.
"""

from django.apps import AppConfig
from django.db.models.signals import post_migrate


class TaggingConfig(AppConfig):
    """
    Configuration for the taxonomy tagging Django application.
    """

    name = "advanced_taxonomies.core.tagging"
    verbose_name = "Advanced Taxonomies"
    default_auto_field = "django.db.models.BigAutoField"
    label = "at_tagging"

    def ready(self):
        # pylint: disable=import-outside-toplevel
        from .handlers import create_default_records
        post_migrate.connect(create_default_records, sender=self, dispatch_uid="advanced_taxonomies:defaults")
