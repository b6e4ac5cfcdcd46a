"""Errors raised by the attendance monitor and its collaborators."""


class MonitorError(Exception):
    """Base class for attendance monitor errors."""


class StudentNotFound(MonitorError, KeyError):
    """A roster operation referenced an unknown student id."""

    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__(student_id)

    def __str__(self):
        return f"Student not found: {self.student_id}"


class InvalidTransition(MonitorError):
    """A monitoring lifecycle command is not allowed in the current state."""


class DetectorUnavailable(MonitorError):
    """The face detector failed to produce a result for this pass."""


class RosterStoreError(MonitorError):
    """The roster persistence layer failed."""
