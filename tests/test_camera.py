import time
from queue import Queue

import numpy as np
import pytest

from camera import stream_handler
from camera.stream_handler import CameraStream


class FakeCapture:
    def __init__(self, device_id, opened=True):
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        return True

    def get(self, prop):
        return 0

    def read(self):
        return True, np.zeros((2, 2, 3), dtype=np.uint8)

    def release(self):
        self.released = True


@pytest.fixture
def fake_cv2(monkeypatch):
    captures = []

    def factory(device_id):
        capture = FakeCapture(device_id)
        captures.append(capture)
        return capture

    monkeypatch.setattr(stream_handler.cv2, "VideoCapture", factory)
    return captures


def test_stop_is_safe_before_start():
    stream = CameraStream(device_id=0)
    stream.stop_stream()
    stream.stop_stream()
    assert not stream.running


def test_start_and_stop_release_device(fake_cv2):
    stream = CameraStream(device_id=0)
    assert stream.start_stream()
    assert stream.start_stream()
    assert len(fake_cv2) == 1

    deadline = time.time() + 5.0
    frame = None
    while frame is None and time.time() < deadline:
        frame = stream.get_frame(timeout=0.1)
    assert frame is not None

    stream.stop_stream()
    assert fake_cv2[0].released
    assert stream.get_frame() is None


def test_unavailable_camera(monkeypatch):
    monkeypatch.setattr(stream_handler.cv2, "VideoCapture", lambda device_id: FakeCapture(device_id, opened=False))
    stream = CameraStream(device_id=3)
    assert not stream.start_stream()
    assert stream.cap is None


def test_put_latest_keeps_freshest_frame():
    stream = CameraStream(device_id=0)
    stream.frame_queue = Queue(maxsize=1)
    first = np.zeros((1, 1, 3), dtype=np.uint8)
    second = np.ones((1, 1, 3), dtype=np.uint8)
    stream._put_latest(first)
    stream._put_latest(second)

    assert stream.frames_dropped == 1
    assert stream.frame_queue.get_nowait() is second
