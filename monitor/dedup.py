"""
Per-window alert suppression.
"""
import threading
from datetime import datetime
from typing import Callable, Optional, Set


def hour_window(now: datetime) -> int:
    """Window key for the calendar hour of ``now``, distinct across days."""
    return now.date().toordinal() * 24 + now.hour


class AlertDeduplicator:
    """Tracks which students were already alerted in the current window.

    The alerted set is cleared exactly once whenever the window key changes.
    ``should_alert`` checks and marks in one step under a lock.
    """

    def __init__(self, window_key: Callable[[datetime], int] = hour_window):
        self.window_key = window_key
        self.current_key: Optional[int] = None
        self.alerted_ids: Set[str] = set()
        self._lock = threading.Lock()

    def _roll(self, now: datetime) -> bool:
        key = self.window_key(now)
        if key == self.current_key:
            return False
        rolled = self.current_key is not None
        self.current_key = key
        self.alerted_ids = set()
        return rolled

    def roll(self, now: datetime) -> bool:
        """Adopt the window for ``now``; True if an existing window was reset."""
        with self._lock:
            return self._roll(now)

    def should_alert(self, student_id: str, now: datetime) -> bool:
        with self._lock:
            self._roll(now)
            if student_id in self.alerted_ids:
                return False
            self.alerted_ids.add(student_id)
            return True

    def reset(self):
        """Forget all alerted students, e.g. at the start of a monitoring session."""
        with self._lock:
            self.current_key = None
            self.alerted_ids = set()

    def was_alerted(self, student_id: str) -> bool:
        with self._lock:
            return student_id in self.alerted_ids
