"""
In-process notification store.

Notifications are kept in memory only: each user has a bounded queue and the
oldest entries are evicted once the capacity is reached. The store lives on
the ``core`` app config; use ``get_notification_service()`` to reach it.
"""

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field

from django.apps import apps
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)


TYPE_INFO = 'info'
TYPE_SUCCESS = 'success'
TYPE_WARNING = 'warning'
TYPE_ERROR = 'error'

NOTIFICATION_TYPES = (TYPE_INFO, TYPE_SUCCESS, TYPE_WARNING, TYPE_ERROR)


@dataclass
class Notification:
    id: int
    user_id: int
    title: str
    message: str
    type: str = TYPE_INFO
    data: dict = field(default_factory=dict)
    read: bool = False
    created_at: object = field(default_factory=timezone.now)


class NotificationService:
    """
    Thread-safe per-user notification queues with a fixed capacity.
    """

    def __init__(self, capacity=100):
        if capacity < 1:
            raise ValueError('Notification capacity must be at least 1')
        self.capacity = capacity
        self._queues = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, user_id, title, message, type=TYPE_INFO, data=None):
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type}")

        with self._lock:
            notification = Notification(
                id=next(self._ids),
                user_id=user_id,
                title=title,
                message=message,
                type=type,
                data=data or {},
            )
            queue = self._queues.setdefault(user_id, deque(maxlen=self.capacity))
            queue.append(notification)

        logger.debug(f"Notification {notification.id} queued for user {user_id}: {title}")
        return notification

    def for_user(self, user_id, unread_only=False):
        """Return the user's notifications, newest first."""
        with self._lock:
            items = list(self._queues.get(user_id, ()))
        if unread_only:
            items = [item for item in items if not item.read]
        items.reverse()
        return items

    def unread_count(self, user_id):
        return len(self.for_user(user_id, unread_only=True))

    def mark_read(self, user_id, notification_id):
        """
        Mark one notification as read.

        Returns:
            bool: False if the user has no notification with that id
        """
        with self._lock:
            for item in self._queues.get(user_id, ()):
                if item.id == notification_id:
                    item.read = True
                    return True
        return False

    def mark_all_read(self, user_id):
        """Mark every notification of the user as read and return how many changed."""
        changed = 0
        with self._lock:
            for item in self._queues.get(user_id, ()):
                if not item.read:
                    item.read = True
                    changed += 1
        return changed

    def clear(self, user_id=None):
        with self._lock:
            if user_id is None:
                self._queues.clear()
            else:
                self._queues.pop(user_id, None)


def get_notification_service():
    return apps.get_app_config('core').notifications


def notify(user_id, title, message, type=TYPE_INFO, data=None):
    """Queue a notification through the app-wide service."""
    return get_notification_service().add(user_id, title, message, type=type, data=data)


def notify_on_commit(user_id, title, message, type=TYPE_INFO, data=None):
    """
    Queue a notification once the current transaction commits.

    Nothing is sent when the transaction rolls back. Outside a transaction the
    notification is queued immediately.
    """
    transaction.on_commit(lambda: notify(user_id, title, message, type=type, data=data))
