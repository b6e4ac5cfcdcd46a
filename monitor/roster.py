"""
In-memory roster state for the active monitoring session.
"""
from dataclasses import replace
from typing import Dict, Iterable, List

from .exceptions import StudentNotFound
from .models import Student, AttendanceStats


class RosterState:
    """Authoritative view of each student's presence and permission flags.

    Students are kept in insertion order. Callers receive copies, so the
    only way to change a flag is through ``set_presence`` and
    ``set_permission``. Synchronization is the owner's job (see
    ``AttendanceMonitor``).
    """

    def __init__(self, students: Iterable[Student] = ()):
        self._students: Dict[str, Student] = {}
        self.load(students)

    def load(self, students: Iterable[Student]):
        """Replace the roster with a fresh listing."""
        self._students = {}
        for student in students:
            self._students[student.id] = replace(student)

    def add(self, student: Student):
        self._students[student.id] = replace(student)

    def remove(self, student_id: str) -> Student:
        try:
            return self._students.pop(student_id)
        except KeyError:
            raise StudentNotFound(student_id) from None

    def _require(self, student_id: str) -> Student:
        student = self._students.get(student_id)
        if student is None:
            raise StudentNotFound(student_id)
        return student

    def get(self, student_id: str) -> Student:
        return replace(self._require(student_id))

    def contains(self, student_id: str) -> bool:
        return student_id in self._students

    def set_presence(self, student_id: str, value: bool):
        self._require(student_id).is_present = bool(value)

    def set_permission(self, student_id: str, value: bool):
        self._require(student_id).has_permission = bool(value)

    def snapshot(self) -> List[Student]:
        return [replace(s) for s in self._students.values()]

    def stats(self) -> AttendanceStats:
        students = list(self._students.values())
        present = sum(1 for s in students if s.is_present)
        return AttendanceStats(
            total=len(students),
            present=present,
            absent=len(students) - present,
            permitted=sum(1 for s in students if s.has_permission),
        )

    def __len__(self):
        return len(self._students)
