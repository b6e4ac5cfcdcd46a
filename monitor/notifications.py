"""
Notification sinks for alerts and reminders.
"""
import threading
from collections import deque
from typing import Dict, List, Optional

from utils.config import config
from utils.logger import logger

from .models import Alert, Reminder


class NotificationSink:
    """Receives alerts and reminders; fire-and-forget."""

    def notify_alert(self, alert: Alert):
        raise NotImplementedError

    def notify_reminder(self, reminder: Reminder):
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the classroom log."""

    def notify_alert(self, alert: Alert):
        logger.log_alert(alert)

    def notify_reminder(self, reminder: Reminder):
        logger.log_reminder(reminder)


class NotificationFeed(NotificationSink):
    """Bounded list of recent notifications for display, newest first."""

    def __init__(self, max_items: Optional[int] = None):
        self.items = deque(maxlen=max_items or config.logging.notification_feed_size)
        self._lock = threading.Lock()

    def _push(self, kind: str, title: str, description: str, variant: str, payload: Dict):
        with self._lock:
            self.items.appendleft({
                'kind': kind,
                'title': title,
                'description': description,
                'variant': variant,
                'payload': payload,
            })

    def notify_alert(self, alert: Alert):
        self._push(
            'alert',
            "Student Alert",
            f"{alert.student_name} detected outside without permission!",
            'destructive',
            alert.to_dict(),
        )

    def notify_reminder(self, reminder: Reminder):
        self._push('reminder', reminder.title, reminder.message, 'default', reminder.to_dict())

    def notify(self, title: str, description: str, variant: str = 'default'):
        """Push a plain notice (e.g. command feedback)."""
        self._push('notice', title, description, variant, {})

    def recent(self, limit: Optional[int] = None) -> List[Dict]:
        with self._lock:
            items = list(self.items)
        return items[:limit] if limit else items

    def clear(self):
        with self._lock:
            self.items.clear()
