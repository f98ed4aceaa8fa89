import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Marketplace'

    def ready(self):
        """
        Connect the rating signals and create the in-process notification store.
        """
        from . import signals  # noqa: F401
        from .notifications import NotificationService

        marketplace_settings = getattr(settings, 'MARKETPLACE', {})
        capacity = marketplace_settings.get('NOTIFICATION_CAPACITY', 100)
        self.notifications = NotificationService(capacity=capacity)
        logger.debug(f"Notification store ready (capacity={capacity} per user)")
