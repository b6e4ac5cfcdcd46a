"""
REST API for the classroom attendance monitor.
"""
import time
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from attendance.roster_store import validate_photo
from monitor.engine import AttendanceMonitor
from monitor.exceptions import InvalidTransition, RosterStoreError, StudentNotFound
from monitor.notifications import NotificationFeed
from monitor.scheduler import DailySchedule
from utils.config import config
from utils.logger import logger


class StudentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    photo_ref: Optional[str] = None


class FlagRequest(BaseModel):
    value: bool


def create_app(monitor: AttendanceMonitor, feed: Optional[NotificationFeed] = None,
               schedule: Optional[DailySchedule] = None, matcher=None, encoder=None,
               detection_loop=None, clock: Callable[[], datetime] = datetime.now) -> FastAPI:
    """Build the API around a monitor that has a roster store attached."""
    store = monitor.store
    if store is None:
        raise ValueError("create_app requires a monitor with a roster store")

    feed = feed or NotificationFeed()
    schedule = schedule or DailySchedule()

    app = FastAPI(
        title="Classroom Attendance Monitor API",
        description="Attendance, monitoring and alert endpoints",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _student_or_404(func, *args):
        try:
            return func(*args)
        except StudentNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except RosterStoreError as e:
            logger.error(f"Roster store error: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": time.time()}

    @app.get("/api/status")
    async def get_status():
        status = monitor.get_status()
        if detection_loop is not None:
            status['detection'] = detection_loop.get_statistics()
        if matcher is not None:
            status['recognition'] = matcher.get_recognition_statistics()
        status['logging'] = logger.get_log_statistics()
        return status

    @app.get("/api/stats")
    async def get_stats():
        return monitor.stats().to_dict()

    @app.get("/api/alerts")
    async def get_alerts():
        return [alert.to_dict() for alert in monitor.alerts()]

    @app.get("/api/students")
    async def list_students():
        return [student.to_dict() for student in monitor.students()]

    @app.post("/api/students", status_code=201)
    def add_student(request: StudentRequest):
        try:
            if request.photo_ref:
                validate_photo(request.photo_ref, config.roster.max_photo_bytes)
            student = store.create_student(request.name, request.photo_ref)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except RosterStoreError as e:
            logger.error(f"Failed to add student: {e}")
            raise HTTPException(status_code=500, detail="Failed to add student. Please try again.")

        monitor.add_student(student)
        if student.photo_ref and encoder is not None and matcher is not None:
            encoding = encoder.encode_image(student.photo_ref)
            if encoding is not None:
                matcher.add_face(student.id, encoding)

        feed.notify("Student added", f"{student.name} has been added successfully")
        return student.to_dict()

    @app.delete("/api/students/{student_id}")
    def delete_student(student_id: str):
        _student_or_404(monitor.get_student, student_id)
        _student_or_404(store.delete_student, student_id)
        monitor.remove_student(student_id)
        if matcher is not None:
            matcher.remove_face(student_id)
        return {"success": True, "id": student_id}

    @app.put("/api/students/{student_id}/presence")
    def set_presence(student_id: str, request: FlagRequest):
        _student_or_404(monitor.set_presence, student_id, request.value)
        return _student_or_404(monitor.get_student, student_id).to_dict()

    @app.put("/api/students/{student_id}/permission")
    def set_permission(student_id: str, request: FlagRequest):
        _student_or_404(monitor.set_permission, student_id, request.value)
        return _student_or_404(monitor.get_student, student_id).to_dict()

    @app.post("/api/submit")
    def submit_attendance():
        started = monitor.submit()
        if started:
            feed.notify(
                "Attendance Submitted",
                "Real-time camera monitoring has started. Face recognition active.",
            )
        return {"success": started, "state": monitor.state.value, "submitted": monitor.submitted}

    @app.post("/api/monitoring/toggle")
    def toggle_monitoring():
        try:
            state = monitor.toggle_monitoring()
        except InvalidTransition as e:
            feed.notify(
                "Submit Attendance First",
                "Please submit attendance before starting camera monitoring.",
                variant='destructive',
            )
            raise HTTPException(status_code=409, detail=str(e))
        return {"success": True, "state": state.value}

    @app.get("/api/schedule")
    async def get_schedule():
        data = schedule.to_dict(clock())
        data['reminder_slots'] = sorted(monitor.scheduler.slots)
        return data

    @app.get("/api/events")
    async def get_recent_events(hours: int = 24):
        return logger.get_recent_events(hours)

    @app.get("/api/notifications")
    async def get_notifications(limit: Optional[int] = None):
        return feed.recent(limit)

    return app
