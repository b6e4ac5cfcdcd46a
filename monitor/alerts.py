"""
Alert construction and bounded alert history.
"""
import itertools
from collections import deque
from datetime import datetime
from typing import List, Optional

from utils.config import config

from .models import Alert, Student


class AlertEmitter:
    """Builds alerts and keeps the most recent ones, newest first."""

    def __init__(self, max_alerts: Optional[int] = None):
        self.max_alerts = max_alerts or config.monitor.alert_history_size
        self.history = deque(maxlen=self.max_alerts)
        self._sequence = itertools.count(1)
        self.total_emitted = 0

    def emit(self, student: Student, now: datetime, message: str) -> Alert:
        millis = int(now.timestamp() * 1000)
        alert = Alert(
            id=f"{millis}-{student.id}-{next(self._sequence)}",
            student_id=student.id,
            student_name=student.name,
            timestamp=now,
            time_label=now.strftime("%H:%M:%S"),
            message=message,
        )
        # appendleft on a full deque drops the oldest entry from the right
        self.history.appendleft(alert)
        self.total_emitted += 1
        return alert

    def alerts(self) -> List[Alert]:
        return list(self.history)

    def clear(self):
        self.history.clear()

    def __len__(self):
        return len(self.history)
