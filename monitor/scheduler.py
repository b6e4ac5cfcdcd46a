"""
Class schedule and class-start reminders.
"""
from datetime import datetime, date
from typing import Iterable, List, Optional, Tuple

from utils.config import config

from .models import Reminder, ScheduleSlot


class ReminderScheduler:
    """Fires one reminder per configured slot per day.

    Driven by a wall-clock tick faster than once a minute; the memo of the
    last fired (date, slot) keeps repeated ticks in the same minute quiet.
    """

    def __init__(self, slots: Optional[Iterable[str]] = None,
                 title: Optional[str] = None, message: Optional[str] = None):
        self.slots = frozenset(slots if slots is not None else config.schedule.reminder_slots)
        self.title = title or config.schedule.reminder_title
        self.message = message or config.schedule.reminder_message
        self.last_fired_slot: Optional[str] = None
        self.last_fired_date: Optional[date] = None

    def check(self, now: datetime) -> Optional[Reminder]:
        current_slot = now.strftime("%H:%M")
        if current_slot not in self.slots:
            return None
        if (current_slot == self.last_fired_slot
                and now.date() == self.last_fired_date):
            return None

        self.last_fired_slot = current_slot
        self.last_fired_date = now.date()
        return Reminder(
            slot=current_slot,
            timestamp=now,
            title=self.title,
            message=self.message,
        )


class DailySchedule:
    """The day's timetable of class and break periods."""

    def __init__(self, slots: Optional[Iterable[Tuple[str, str, str]]] = None):
        rows = slots if slots is not None else config.schedule.timetable
        self.slots: List[ScheduleSlot] = [ScheduleSlot(start, end, kind) for start, end, kind in rows]

    def current_index(self, now: datetime) -> Optional[int]:
        """Index of the slot covering ``now``, or None outside the timetable."""
        current = now.strftime("%H:%M")
        for index, slot in enumerate(self.slots):
            if slot.start <= current < slot.end:
                return index
        return None

    def class_starts(self) -> List[str]:
        return [slot.start for slot in self.slots if slot.kind == "class"]

    def to_dict(self, now: datetime) -> dict:
        return {
            'current_index': self.current_index(now),
            'slots': [
                {'start': s.start, 'end': s.end, 'kind': s.kind} for s in self.slots
            ],
        }
