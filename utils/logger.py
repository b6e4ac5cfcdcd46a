"""
Logging utilities for the classroom attendance monitor.
Console and file handlers, an async queue for low-severity messages and a
bounded in-memory record of alert and reminder events.
"""
import logging
from collections import Counter, deque
from datetime import datetime
from typing import Dict, List
from pathlib import Path
import threading
import queue
import json

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ASYNC_LEVELS = ('debug', 'info', 'warning')


class ClassroomLogger:
    """Logger for monitoring events with an async worker for low-severity messages."""

    def __init__(self, name: str = "classroom"):
        self.name = name
        self.logger = logging.getLogger(name)

        # Config is imported lazily; utils.config logs through stdlib logging
        from utils.config import config
        self.log_path = Path(config.logging.output_dir) / "logs" / "classroom.log"
        self._configure(config.logging.log_level)

        self.events = deque(maxlen=config.logging.max_events)
        self.event_counts = Counter()
        self._events_lock = threading.Lock()

        self.log_queue = queue.Queue(maxsize=1000)
        self.log_worker_thread = threading.Thread(
            target=self._log_worker, name="classroom-log-worker", daemon=True
        )
        self.log_worker_thread.start()

    def _configure(self, level_name: str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        formatter = logging.Formatter(LOG_FORMAT)

        self.logger.handlers.clear()
        self.logger.setLevel(level)
        self.logger.propagate = False

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        self.logger.addHandler(console)

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
        except OSError as e:
            self.logger.warning(f"File logging disabled ({self.log_path}): {e}")

        self.set_level(level_name)

    def _log_worker(self):
        while True:
            entry = self.log_queue.get()
            if entry is None:
                break
            level, message, kwargs = entry
            try:
                getattr(self.logger, level)(message, **kwargs)
            except Exception as e:
                # Stay off self.logger here, a broken handler would recurse
                print(f"Log worker error: {e}")

    def _async_log(self, level: str, message: str, **kwargs):
        if not self.log_worker_thread.is_alive():
            getattr(self.logger, level)(message, **kwargs)
            return
        try:
            self.log_queue.put_nowait((level, message, kwargs))
        except queue.Full:
            getattr(self.logger, level)(message, **kwargs)

    def set_level(self, level: str):
        """Change the level of the logger and all of its handlers."""
        numeric = getattr(logging, level.upper(), logging.INFO)
        self.logger.setLevel(numeric)
        for handler in self.logger.handlers:
            handler.setLevel(numeric)

    def debug(self, message: str, **kwargs):
        self._async_log('debug', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._async_log('info', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._async_log('warning', message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def critical(self, message: str, **kwargs):
        self.logger.critical(message, **kwargs)

    def log_event(self, event_type: str, details: dict):
        """Log a monitoring event as one line of JSON."""
        payload = json.dumps(details, default=str, sort_keys=True)
        self.info(f"EVENT: {event_type} | {payload}")

    def _record(self, event_type: str, timestamp: datetime, student_id, details: Dict):
        with self._events_lock:
            self.events.append({
                'timestamp': timestamp.isoformat(),
                'event_type': event_type,
                'student_id': student_id,
                'details': details,
            })
            self.event_counts[event_type] += 1

    def log_alert(self, alert):
        """Record a student alert and log it at warning level."""
        self._record('STUDENT_ALERT', alert.timestamp, alert.student_id,
                     {'alert_id': alert.id, 'name': alert.student_name})
        self.warning(f"ALERT - {alert.student_name} ({alert.student_id}) at "
                     f"{alert.time_label}: {alert.message}")

    def log_reminder(self, reminder):
        self._record('CLASS_REMINDER', reminder.timestamp, None, {'slot': reminder.slot})
        self.info(f"REMINDER - {reminder.title} ({reminder.slot}): {reminder.message}")

    def get_recent_events(self, hours: int = 24) -> List[Dict]:
        """Recorded events newer than ``hours`` ago, oldest first."""
        cutoff = datetime.now().timestamp() - hours * 3600
        with self._events_lock:
            return [
                dict(event) for event in self.events
                if datetime.fromisoformat(event['timestamp']).timestamp() >= cutoff
            ]

    def get_log_statistics(self) -> Dict:
        with self._events_lock:
            return {
                'events_count': len(self.events),
                'events_by_type': dict(self.event_counts),
                'log_queue_size': self.log_queue.qsize(),
                'log_file': str(self.log_path),
            }

    def shutdown(self):
        """Drain the async queue; later messages are logged synchronously."""
        if self.log_worker_thread.is_alive():
            self.log_queue.put(None)
            self.log_worker_thread.join(timeout=5.0)
        for handler in self.logger.handlers:
            handler.flush()


# Global logger instance
logger = ClassroomLogger()
