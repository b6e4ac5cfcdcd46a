"""
Attendance monitor: the single owner of roster, dedup, alert and lifecycle
state. Every mutation goes through one lock; notification sinks and state
listeners are called after it is released.
"""
import threading
from datetime import datetime
from typing import Iterable, List, Optional

from utils.config import config
from utils.logger import logger

from .alerts import AlertEmitter
from .dedup import AlertDeduplicator
from .exceptions import StudentNotFound
from .lifecycle import MonitoringLifecycle, StateListener
from .models import (
    Alert,
    AttendanceStats,
    MonitoringState,
    RecognitionEvent,
    Reminder,
    Student,
)
from .roster import RosterState
from .scheduler import ReminderScheduler


class AttendanceMonitor:
    """Correlates recognition events with the roster and raises deduplicated alerts."""

    def __init__(self, students: Iterable[Student] = (), store=None, sinks=None,
                 deduplicator: Optional[AlertDeduplicator] = None,
                 emitter: Optional[AlertEmitter] = None,
                 scheduler: Optional[ReminderScheduler] = None,
                 alert_message: Optional[str] = None,
                 lock_timeout: Optional[float] = None):
        self.store = store
        self.sinks = list(sinks or [])
        self.roster = RosterState(students)
        self.deduplicator = deduplicator or AlertDeduplicator()
        self.emitter = emitter or AlertEmitter()
        self.scheduler = scheduler or ReminderScheduler()
        self.lifecycle = MonitoringLifecycle()
        self.alert_message = alert_message or config.monitor.alert_message
        self.lock_timeout = config.monitor.lock_timeout if lock_timeout is None else lock_timeout

        self._lock = threading.Lock()
        self._stats_lock = threading.Lock()

        # Counters, guarded by _stats_lock
        self.events_received = 0
        self.events_dropped = 0

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def load_roster(self, students: Optional[Iterable[Student]] = None):
        """Replace the roster, from ``students`` or from the attached store."""
        if students is None:
            students = self.store.list_students() if self.store is not None else []
        students = list(students)
        with self._lock:
            self.roster.load(students)
        logger.info(f"Roster loaded: {len(students)} students")

    def add_student(self, student: Student):
        with self._lock:
            self.roster.add(student)

    def remove_student(self, student_id: str) -> Student:
        with self._lock:
            return self.roster.remove(student_id)

    def get_student(self, student_id: str) -> Student:
        with self._lock:
            return self.roster.get(student_id)

    def students(self) -> List[Student]:
        with self._lock:
            return self.roster.snapshot()

    def set_presence(self, student_id: str, value: bool):
        """Mark a student present or absent.

        Raises StudentNotFound for an unknown id. With a store attached the
        change is written through first; a store failure leaves the
        in-memory roster untouched.
        """
        with self._lock:
            if not self.roster.contains(student_id):
                raise StudentNotFound(student_id)
            if self.store is not None:
                self.store.update_flags(student_id, is_present=value)
            self.roster.set_presence(student_id, value)
        logger.debug(f"Presence of {student_id} set to {bool(value)}")

    def set_permission(self, student_id: str, value: bool):
        with self._lock:
            if not self.roster.contains(student_id):
                raise StudentNotFound(student_id)
            if self.store is not None:
                self.store.update_flags(student_id, has_permission=value)
            self.roster.set_permission(student_id, value)
        logger.debug(f"Permission of {student_id} set to {bool(value)}")

    def stats(self) -> AttendanceStats:
        with self._lock:
            return self.roster.stats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitoringState:
        return self.lifecycle.state

    @property
    def submitted(self) -> bool:
        return self.lifecycle.submitted

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    def add_state_listener(self, listener: StateListener):
        """Register a callback invoked with the new state after each transition."""
        self.lifecycle.add_listener(listener)

    def _notify_state(self, state: MonitoringState):
        for listener in self.lifecycle.listeners:
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed: {e}")

    def submit(self) -> bool:
        """Submit attendance and start monitoring with fresh alert state.

        Later calls are no-ops and return False.
        """
        with self._lock:
            started = self.lifecycle.submit()
            if started:
                self.deduplicator.reset()
                self.emitter.clear()
            state = self.lifecycle.state

        if started:
            logger.log_event("ATTENDANCE_SUBMITTED", {'stats': self.stats().to_dict()})
            self._notify_state(state)
        return started

    def toggle_monitoring(self) -> MonitoringState:
        """Pause or resume monitoring; raises InvalidTransition before submit."""
        with self._lock:
            state = self.lifecycle.toggle()
        logger.info(f"Monitoring {state.value}")
        self._notify_state(state)
        return state

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_recognition_event(self, event: RecognitionEvent) -> Optional[Alert]:
        """Process one recognition event; returns the alert raised, if any."""
        with self._stats_lock:
            self.events_received += 1

        if event.student_id is None or not self.lifecycle.is_active:
            return None

        if not self._lock.acquire(timeout=self.lock_timeout):
            with self._stats_lock:
                self.events_dropped += 1
            logger.debug(f"Monitor busy, dropped recognition of {event.student_id}")
            return None

        try:
            # Re-check under the lock; a toggle may have raced us
            if not self.lifecycle.is_active:
                return None
            try:
                student = self.roster.get(event.student_id)
            except StudentNotFound:
                logger.debug(f"Recognized id {event.student_id} is not on the roster")
                return None

            if student.is_present or student.has_permission:
                return None

            if not self.deduplicator.should_alert(student.id, event.timestamp):
                logger.debug(f"Student {student.name} already alerted this hour - skipping alert")
                return None

            alert = self.emitter.emit(student, event.timestamp, self.alert_message)
        finally:
            self._lock.release()

        self._dispatch('notify_alert', alert)
        return alert

    def tick(self, now: datetime) -> Optional[Reminder]:
        """Advance wall-clock driven state: dedup window and class reminders."""
        with self._lock:
            if self.deduplicator.roll(now):
                logger.debug(f"Alert window rolled over at {now:%H:%M:%S}")
            reminder = self.scheduler.check(now)

        if reminder is not None:
            self._dispatch('notify_reminder', reminder)
        return reminder

    def _dispatch(self, method: str, payload):
        for sink in self.sinks:
            try:
                getattr(sink, method)(payload)
            except Exception as e:
                logger.error(f"Notification sink {type(sink).__name__} failed: {e}")

    def alerts(self) -> List[Alert]:
        with self._lock:
            return self.emitter.alerts()

    def get_status(self) -> dict:
        """Summary of lifecycle and counters for status displays."""
        with self._lock:
            stats = self.roster.stats()
            alert_count = len(self.emitter)
        with self._stats_lock:
            received, dropped = self.events_received, self.events_dropped
        return {
            'state': self.lifecycle.state.value,
            'submitted': self.lifecycle.submitted,
            'stats': stats.to_dict(),
            'alerts': alert_count,
            'events_received': received,
            'events_dropped': dropped,
        }
