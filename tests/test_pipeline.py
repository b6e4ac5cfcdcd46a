import threading
import time

import numpy as np
import pytest

from conftest import at, seen
from monitor.engine import AttendanceMonitor
from monitor.exceptions import DetectorUnavailable
from monitor.pipeline import ClockTicker, DetectionLoop
from recognition.face_matcher import FaceMatcher


class FakeCamera:
    def __init__(self, frames=None, available=True):
        self.frames = list(frames or [])
        self.available = available
        self.started = 0
        self.stopped = 0

    def start_stream(self):
        self.started += 1
        return self.available

    def stop_stream(self):
        self.stopped += 1

    def get_frame(self, timeout=1.0):
        return self.frames.pop(0) if self.frames else None


class FakeEncoder:
    def __init__(self, results):
        self.results = list(results)

    def encode_frame(self, frame):
        result = self.results.pop(0) if self.results else []
        if isinstance(result, Exception):
            raise result
        return result


FRAME = np.zeros((4, 4, 3), dtype=np.uint8)


@pytest.fixture
def matcher():
    m = FaceMatcher(tolerance=0.6)
    m.add_face("a", np.zeros(4))
    m.add_face("b", np.full(4, 5.0))
    return m


def make_loop(monitor, matcher, results, frames=1, queue_size=8):
    return DetectionLoop(
        monitor,
        FakeCamera([FRAME] * frames),
        FakeEncoder(results),
        matcher,
        interval=0.01,
        queue_size=queue_size,
        clock=lambda: at(9, 5),
    )


def test_run_once_publishes_one_event_per_face(active_monitor, matcher):
    loop = make_loop(active_monitor, matcher, [[np.zeros(4), np.full(4, 5.0), np.full(4, 50.0)]])
    assert loop.run_once() == 3

    alerts = loop.drain()
    assert [a.student_id for a in alerts] == ["a"]
    assert loop.events.qsize() == 0


def test_detector_failure_is_no_detection(active_monitor, matcher):
    loop = make_loop(active_monitor, matcher, [DetectorUnavailable("model crashed"), [np.zeros(4)]], frames=2)

    assert loop.run_once() == 0
    assert loop.detector_failures == 1
    assert loop.drain() == []
    assert active_monitor.alerts() == []

    assert loop.run_once() == 1
    assert len(loop.drain()) == 1


def test_no_events_when_not_active(monitor, matcher):
    loop = make_loop(monitor, matcher, [[np.zeros(4)]])
    assert loop.run_once() == 0
    assert loop.events.qsize() == 0


def test_full_queue_discards_oldest(active_monitor, matcher):
    loop = make_loop(active_monitor, matcher, [], queue_size=2)
    loop.publish(seen("b", at(9, 1)))
    loop.publish(seen("c", at(9, 2)))
    loop.publish(seen("a", at(9, 3)))

    assert loop.events_discarded == 1
    queued = [loop.events.get_nowait().student_id for _ in range(2)]
    assert queued == ["c", "a"]


def test_stop_is_safe_in_any_state(active_monitor, matcher):
    loop = make_loop(active_monitor, matcher, [])
    loop.stop()
    loop.stop()
    assert loop.frame_source.stopped == 2
    assert not loop.running


def test_start_fails_without_frame_source(active_monitor, matcher):
    loop = DetectionLoop(active_monitor, FakeCamera(available=False), FakeEncoder([]), matcher)
    assert not loop.start()
    assert not loop.running


def test_lifecycle_drives_loop(students, matcher):
    monitor = AttendanceMonitor(students=students)
    camera = FakeCamera()
    loop = DetectionLoop(monitor, camera, FakeEncoder([]), matcher, interval=0.01)
    loop.attach()

    monitor.submit()
    assert loop.running
    assert camera.started == 1

    monitor.toggle_monitoring()
    assert not loop.running
    assert camera.stopped == 1

    monitor.toggle_monitoring()
    assert loop.running
    loop.stop()


def test_threads_deliver_alerts(students, matcher):
    monitor = AttendanceMonitor(students=students)
    loop = make_loop(monitor, matcher, [[np.zeros(4)]])
    loop.attach()
    monitor.submit()

    deadline = time.time() + 5.0
    while not monitor.alerts() and time.time() < deadline:
        time.sleep(0.01)
    loop.stop()

    assert [a.student_id for a in monitor.alerts()] == ["a"]


def test_clock_ticker_calls_tick():
    calls = []

    class Target:
        def tick(self, now):
            calls.append(now)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

    ticker = ClockTicker(Target(), interval=0.01, clock=lambda: at(9))
    ticker.start()
    deadline = time.time() + 5.0
    while len(calls) < 3 and time.time() < deadline:
        time.sleep(0.01)
    ticker.stop()

    assert len(calls) >= 3


class BlockingCamera(FakeCamera):
    """Holds the producer inside get_frame until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.gate = threading.Event()

    def get_frame(self, timeout=1.0):
        self.entered.set()
        self.gate.wait(5.0)
        return None


def test_busy_producer_releases_camera_when_it_exits(active_monitor, matcher):
    camera = BlockingCamera()
    loop = DetectionLoop(active_monitor, camera, FakeEncoder([]), matcher, interval=0.01)
    loop.join_timeout = 0.05
    assert loop.start()
    assert camera.entered.wait(5.0)

    loop.stop()
    assert camera.stopped == 0
    assert not loop.start()

    camera.gate.set()
    deadline = time.time() + 5.0
    while camera.stopped == 0 and time.time() < deadline:
        time.sleep(0.01)
    assert camera.stopped == 1

    loop._producer.join(5.0)
    assert loop.start()
    loop.stop()
    assert camera.stopped == 2
