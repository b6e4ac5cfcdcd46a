import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from api.api_server import create_app
from conftest import RecordingSink, at, seen
from monitor.engine import AttendanceMonitor
from monitor.exceptions import StudentNotFound
from monitor.notifications import NotificationFeed
from monitor.pipeline import DetectionLoop
from monitor.scheduler import ReminderScheduler
from recognition.face_matcher import FaceMatcher


@pytest.fixture
def feed():
    return NotificationFeed(max_items=10)


@pytest.fixture
def api_monitor(store, feed):
    monitor = AttendanceMonitor(
        store=store,
        sinks=[RecordingSink(), feed],
        scheduler=ReminderScheduler(["09:00"]),
    )
    monitor.load_roster()
    return monitor


@pytest.fixture
def client(api_monitor, feed):
    return TestClient(create_app(api_monitor, feed=feed, clock=lambda: at(9, 30)))


def add(client, name):
    response = client.post("/api/students", json={"name": name})
    assert response.status_code == 201
    return response.json()


def test_requires_store(students):
    with pytest.raises(ValueError):
        create_app(AttendanceMonitor(students=students))


def test_health(client):
    assert client.get("/health").json()['status'] == "healthy"


def test_add_and_list_students(client, store):
    ada = add(client, "  Ada ")
    assert ada['name'] == "Ada"
    assert ada['is_present'] is False

    listed = client.get("/api/students").json()
    assert [s['id'] for s in listed] == [ada['id']]
    assert store.list_students()[0].id == ada['id']


def test_add_student_validation(client):
    assert client.post("/api/students", json={"name": ""}).status_code == 422
    assert client.post("/api/students", json={"name": "   "}).status_code == 422
    missing_photo = client.post("/api/students", json={"name": "Ada", "photo_ref": "/nope/ada.jpg"})
    assert missing_photo.status_code == 422
    assert client.get("/api/students").json() == []


def test_flags_and_stats(client, store):
    ada = add(client, "Ada")
    add(client, "Grace")

    response = client.put(f"/api/students/{ada['id']}/presence", json={"value": True})
    assert response.status_code == 200
    assert response.json()['is_present'] is True
    assert store.list_students()[0].is_present

    response = client.put(f"/api/students/{ada['id']}/permission", json={"value": True})
    assert response.json()['has_permission'] is True

    stats = client.get("/api/stats").json()
    assert stats == {'total': 2, 'present': 1, 'absent': 1, 'permitted': 1}


def test_unknown_student_is_404(client):
    assert client.put("/api/students/ghost/presence", json={"value": True}).status_code == 404
    assert client.put("/api/students/ghost/permission", json={"value": True}).status_code == 404
    assert client.delete("/api/students/ghost").status_code == 404


def test_delete_student(client):
    ada = add(client, "Ada")
    assert client.delete(f"/api/students/{ada['id']}").json() == {"success": True, "id": ada['id']}
    assert client.get("/api/students").json() == []


def test_toggle_requires_submit(client, feed):
    response = client.post("/api/monitoring/toggle")
    assert response.status_code == 409
    assert feed.recent(1)[0]['title'] == "Submit Attendance First"

    first = client.post("/api/submit").json()
    assert first == {"success": True, "state": "active", "submitted": True}
    assert client.post("/api/submit").json()['success'] is False

    assert client.post("/api/monitoring/toggle").json()['state'] == "paused"
    assert client.post("/api/monitoring/toggle").json()['state'] == "active"


def test_alerts_and_notifications(client, api_monitor):
    ada = add(client, "Ada")
    client.post("/api/submit")
    alert = api_monitor.on_recognition_event(seen(ada['id'], at(9, 5)))

    alerts = client.get("/api/alerts").json()
    assert [a['id'] for a in alerts] == [alert.id]
    assert alerts[0]['student_name'] == "Ada"

    notifications = client.get("/api/notifications", params={"limit": 1}).json()
    assert notifications[0]['title'] == "Student Alert"
    assert notifications[0]['variant'] == "destructive"


def test_status_and_schedule(client):
    status = client.get("/api/status").json()
    assert status['state'] == "idle"

    schedule = client.get("/api/schedule").json()
    assert schedule['reminder_slots'] == ["09:00"]
    assert schedule['slots'][schedule['current_index']]['start'] == "09:00"


def test_flag_update_racing_a_delete_is_404(client, api_monitor, monkeypatch):
    ada = add(client, "Ada")

    def deleted_meanwhile(student_id):
        raise StudentNotFound(student_id)

    monkeypatch.setattr(api_monitor, "get_student", deleted_meanwhile)
    assert client.put(f"/api/students/{ada['id']}/presence", json={"value": True}).status_code == 404
    assert client.put(f"/api/students/{ada['id']}/permission", json={"value": True}).status_code == 404


class SlowCamera:
    def __init__(self, delay):
        self.delay = delay

    def start_stream(self):
        time.sleep(self.delay)
        return True

    def stop_stream(self):
        pass

    def get_frame(self, timeout=1.0):
        return None


def test_slow_camera_start_does_not_block_other_requests(api_monitor, feed):
    loop = DetectionLoop(api_monitor, SlowCamera(0.5), encoder=None, matcher=FaceMatcher(), interval=0.01)
    loop.attach()
    app = create_app(api_monitor, feed=feed, detection_loop=loop)

    async def finished_at(request):
        await request
        return time.perf_counter()

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            return await asyncio.gather(
                finished_at(http.post("/api/submit")),
                finished_at(http.get("/health")),
            )

    try:
        submit_done, health_done = asyncio.run(scenario())
    finally:
        loop.stop()

    assert health_done < submit_done
    assert api_monitor.is_active
