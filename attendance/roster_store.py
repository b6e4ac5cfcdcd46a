import os
import sqlite3
import threading
import uuid
import datetime
from typing import Dict, List, Optional
import logging

from monitor.exceptions import RosterStoreError, StudentNotFound
from monitor.models import Student

logger = logging.getLogger(__name__)

MAX_PHOTO_BYTES = 5 * 1024 * 1024


def normalize_name(name: str) -> str:
    """Trim a student name; empty names are rejected."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Student name is required")
    return cleaned


def validate_photo(photo_path: str, max_bytes: int = MAX_PHOTO_BYTES) -> str:
    """Check that a photo exists and is under the upload limit."""
    if not os.path.isfile(photo_path):
        raise ValueError(f"Photo not found: {photo_path}")
    if os.path.getsize(photo_path) > max_bytes:
        raise ValueError(f"Photo exceeds {max_bytes // (1024 * 1024)}MB limit: {photo_path}")
    return photo_path


class RosterStore:
    """Durable student records consumed by the monitor."""

    def list_students(self) -> List[Student]:
        raise NotImplementedError

    def create_student(self, name: str, photo_ref: Optional[str] = None) -> Student:
        raise NotImplementedError

    def delete_student(self, student_id: str):
        raise NotImplementedError

    def update_flags(self, student_id: str, is_present: Optional[bool] = None,
                     has_permission: Optional[bool] = None) -> Student:
        raise NotImplementedError


class InMemoryRosterStore(RosterStore):
    """Roster store kept in a dict; ordering follows creation."""

    def __init__(self):
        self._students: Dict[str, Student] = {}
        self._lock = threading.Lock()

    def list_students(self) -> List[Student]:
        with self._lock:
            return [Student(**s.to_dict()) for s in self._students.values()]

    def create_student(self, name: str, photo_ref: Optional[str] = None) -> Student:
        student = Student(id=str(uuid.uuid4()), name=normalize_name(name), photo_ref=photo_ref)
        with self._lock:
            self._students[student.id] = student
        return Student(**student.to_dict())

    def delete_student(self, student_id: str):
        with self._lock:
            if self._students.pop(student_id, None) is None:
                raise StudentNotFound(student_id)

    def update_flags(self, student_id: str, is_present: Optional[bool] = None,
                     has_permission: Optional[bool] = None) -> Student:
        with self._lock:
            student = self._students.get(student_id)
            if student is None:
                raise StudentNotFound(student_id)
            if is_present is not None:
                student.is_present = bool(is_present)
            if has_permission is not None:
                student.has_permission = bool(has_permission)
            return Student(**student.to_dict())


class SqliteRosterStore(RosterStore):
    """Roster store backed by an SQLite ``students`` table."""

    def __init__(self, db_path: str = "roster.db"):
        self.db_path = db_path
        self.init_database()

    def _connect(self):
        return sqlite3.connect(self.db_path)

    def init_database(self):
        """Create the students table if needed."""
        try:
            conn = self._connect()
            try:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS students (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        photo_url TEXT,
                        is_present INTEGER NOT NULL DEFAULT 0,
                        has_permission INTEGER NOT NULL DEFAULT 0,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    )
                ''')
                conn.commit()
            finally:
                conn.close()
            logger.info("Roster database initialized successfully")
        except sqlite3.Error as e:
            logger.error(f"Error initializing roster database: {e}")
            raise RosterStoreError(f"Cannot initialize roster database: {e}") from e

    @staticmethod
    def _row_to_student(row) -> Student:
        return Student(
            id=row[0],
            name=row[1],
            photo_ref=row[2],
            is_present=bool(row[3]),
            has_permission=bool(row[4]),
        )

    def list_students(self) -> List[Student]:
        try:
            conn = self._connect()
            try:
                cursor = conn.execute('''
                    SELECT id, name, photo_url, is_present, has_permission
                    FROM students
                    ORDER BY created_at ASC, rowid ASC
                ''')
                return [self._row_to_student(row) for row in cursor.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Error fetching students: {e}")
            raise RosterStoreError(f"Cannot list students: {e}") from e

    def get_student(self, student_id: str) -> Student:
        try:
            conn = self._connect()
            try:
                row = conn.execute('''
                    SELECT id, name, photo_url, is_present, has_permission
                    FROM students WHERE id = ?
                ''', (student_id,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RosterStoreError(f"Cannot fetch student {student_id}: {e}") from e

        if row is None:
            raise StudentNotFound(student_id)
        return self._row_to_student(row)

    def create_student(self, name: str, photo_ref: Optional[str] = None) -> Student:
        student = Student(id=str(uuid.uuid4()), name=normalize_name(name), photo_ref=photo_ref)
        try:
            conn = self._connect()
            try:
                conn.execute('''
                    INSERT INTO students (id, name, photo_url, created_at)
                    VALUES (?, ?, ?, ?)
                ''', (student.id, student.name, photo_ref, datetime.datetime.now().isoformat()))
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Error adding student: {e}")
            raise RosterStoreError(f"Cannot add student: {e}") from e

        logger.info(f"Added student {student.name} ({student.id})")
        return student

    def delete_student(self, student_id: str):
        try:
            conn = self._connect()
            try:
                cursor = conn.execute('DELETE FROM students WHERE id = ?', (student_id,))
                conn.commit()
                deleted = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Error deleting student: {e}")
            raise RosterStoreError(f"Cannot delete student {student_id}: {e}") from e

        if not deleted:
            raise StudentNotFound(student_id)

    def update_flags(self, student_id: str, is_present: Optional[bool] = None,
                     has_permission: Optional[bool] = None) -> Student:
        updates = []
        params = []
        if is_present is not None:
            updates.append("is_present = ?")
            params.append(int(bool(is_present)))
        if has_permission is not None:
            updates.append("has_permission = ?")
            params.append(int(bool(has_permission)))

        if updates:
            try:
                conn = self._connect()
                try:
                    cursor = conn.execute(
                        f"UPDATE students SET {', '.join(updates)} WHERE id = ?",
                        (*params, student_id),
                    )
                    conn.commit()
                    updated = cursor.rowcount
                finally:
                    conn.close()
            except sqlite3.Error as e:
                logger.error(f"Error updating student flags: {e}")
                raise RosterStoreError(f"Cannot update student {student_id}: {e}") from e

            if not updated:
                raise StudentNotFound(student_id)

        return self.get_student(student_id)
