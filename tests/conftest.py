from datetime import datetime

import pytest

from attendance.roster_store import InMemoryRosterStore
from monitor.engine import AttendanceMonitor
from monitor.models import RecognitionEvent, Student
from monitor.notifications import NotificationSink
from monitor.scheduler import ReminderScheduler


class RecordingSink(NotificationSink):
    def __init__(self):
        self.alerts = []
        self.reminders = []

    def notify_alert(self, alert):
        self.alerts.append(alert)

    def notify_reminder(self, reminder):
        self.reminders.append(reminder)


def at(hour, minute=0, second=0, day=6):
    return datetime(2024, 5, day, hour, minute, second)


def seen(student_id, when, confidence=0.9):
    return RecognitionEvent(student_id=student_id, confidence=confidence, timestamp=when)


@pytest.fixture
def students():
    return [
        Student(id="a", name="A"),
        Student(id="b", name="B", is_present=True),
        Student(id="c", name="C", has_permission=True),
    ]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def monitor(students, sink):
    return AttendanceMonitor(
        students=students,
        sinks=[sink],
        scheduler=ReminderScheduler(["09:00", "10:00"]),
        alert_message="A alerted",
    )


@pytest.fixture
def active_monitor(monitor):
    monitor.submit()
    return monitor


@pytest.fixture
def store():
    return InMemoryRosterStore()
