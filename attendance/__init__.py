"""
Roster persistence for the classroom attendance monitor.

This module provides:
- An in-memory roster store for sessions and tests
- An SQLite-backed roster store
- Name and photo validation for new students
"""

from .roster_store import (
    RosterStore,
    InMemoryRosterStore,
    SqliteRosterStore,
    normalize_name,
    validate_photo,
)

__all__ = [
    'RosterStore',
    'InMemoryRosterStore',
    'SqliteRosterStore',
    'normalize_name',
    'validate_photo',
]
