"""
Data model for the attendance monitor.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class MonitoringState(Enum):
    """States of the monitoring lifecycle."""
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass
class Student:
    """A student on the roster."""
    id: str
    name: str
    is_present: bool = False
    has_permission: bool = False
    photo_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RecognitionEvent:
    """A single face recognized (or not) by the detection pipeline."""
    student_id: Optional[str]
    confidence: float
    timestamp: datetime


@dataclass(frozen=True)
class Alert:
    """An alert raised for a student seen outside without permission."""
    id: str
    student_id: str
    student_name: str
    timestamp: datetime
    time_label: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'student_id': self.student_id,
            'student_name': self.student_name,
            'timestamp': self.timestamp.isoformat(),
            'time_label': self.time_label,
            'message': self.message,
        }


@dataclass(frozen=True)
class Reminder:
    """A class-start reminder."""
    slot: str
    timestamp: datetime
    title: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slot': self.slot,
            'timestamp': self.timestamp.isoformat(),
            'title': self.title,
            'message': self.message,
        }


@dataclass(frozen=True)
class ScheduleSlot:
    """One entry of the daily timetable."""
    start: str
    end: str
    kind: str = "class"  # class or break


@dataclass(frozen=True)
class AttendanceStats:
    """Aggregate counts derived from the roster."""
    total: int
    present: int
    absent: int
    permitted: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
