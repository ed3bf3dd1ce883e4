"""Django app configuration for CFS Flow."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class CfsflowConfig(AppConfig):
    """Configuration for CFS Flow app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "cfsflow"
    verbose_name = _("CFS Package Flows")
