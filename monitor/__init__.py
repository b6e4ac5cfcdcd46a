"""
Attendance monitoring and alert deduplication engine.

This module provides:
- Roster state with presence/permission flags
- Hourly alert deduplication and a bounded alert history
- The Idle/Active/Paused monitoring lifecycle
- Class-start reminders
- Detection and clock threads feeding the monitor
"""

from .engine import AttendanceMonitor
from .exceptions import (
    MonitorError,
    StudentNotFound,
    InvalidTransition,
    DetectorUnavailable,
    RosterStoreError,
)
from .models import (
    Student,
    RecognitionEvent,
    Alert,
    Reminder,
    MonitoringState,
    ScheduleSlot,
    AttendanceStats,
)

__all__ = [
    'AttendanceMonitor',
    'MonitorError',
    'StudentNotFound',
    'InvalidTransition',
    'DetectorUnavailable',
    'RosterStoreError',
    'Student',
    'RecognitionEvent',
    'Alert',
    'Reminder',
    'MonitoringState',
    'ScheduleSlot',
    'AttendanceStats',
]
