"""
Camera stream handler feeding the detection loop.
A capture thread keeps only the freshest frames; stale ones are dropped.
"""
import cv2
import time
import numpy as np
from typing import Optional, Tuple
import threading
from queue import Queue, Empty, Full

from utils.config import config
from utils.logger import logger

# Consecutive failed reads before the capture thread gives up on the device
MAX_READ_FAILURES = 50


class CameraStream:
    """Threaded OpenCV capture with a small drop-oldest frame buffer."""

    def __init__(self, device_id: int = None, resolution: Tuple[int, int] = None):
        self.device_id = config.camera.device_id if device_id is None else device_id
        self.resolution = resolution or config.camera.resolution

        self.cap: Optional[cv2.VideoCapture] = None
        self.frame_queue = Queue(maxsize=config.camera.buffer_size)
        self.running = False
        self.capture_thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

        self.frames_captured = 0
        self.frames_dropped = 0
        self.read_failures = 0
        self.last_frame_time: Optional[float] = None

    def _apply_settings(self):
        width, height = self.resolution
        for prop, value in (
            (cv2.CAP_PROP_FRAME_WIDTH, width),
            (cv2.CAP_PROP_FRAME_HEIGHT, height),
            (cv2.CAP_PROP_FPS, config.camera.fps),
            (cv2.CAP_PROP_BUFFERSIZE, config.camera.buffer_size),
        ):
            self.cap.set(prop, value)

    def _open_camera(self) -> bool:
        capture = cv2.VideoCapture(self.device_id)
        if not capture.isOpened():
            capture.release()
            logger.error(f"Cannot open classroom camera {self.device_id}")
            return False

        self.cap = capture
        self._apply_settings()
        logger.info(f"Classroom camera {self.device_id} opened at "
                    f"{int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
                    f"{int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}")
        return True

    def _capture_frames(self):
        frame_interval = 1.0 / config.camera.fps
        failures = 0

        while self.running:
            ok, frame = self.cap.read()
            if not ok or frame is None:
                failures += 1
                self.read_failures += 1
                if failures >= MAX_READ_FAILURES:
                    logger.error(f"Camera {self.device_id} stopped delivering frames")
                    self.running = False
                    break
                time.sleep(frame_interval)
                continue

            failures = 0
            self.frames_captured += 1
            self.last_frame_time = time.time()
            self._put_latest(frame)
            time.sleep(frame_interval)

    def _put_latest(self, frame: np.ndarray):
        """Enqueue a frame, evicting the oldest buffered one when full."""
        while True:
            try:
                self.frame_queue.put_nowait(frame)
                return
            except Full:
                try:
                    self.frame_queue.get_nowait()
                    self.frames_dropped += 1
                except Empty:
                    pass

    def _drain(self):
        while True:
            try:
                self.frame_queue.get_nowait()
            except Empty:
                return

    def start_stream(self) -> bool:
        """Open the device if needed and start the capture thread."""
        with self._lock:
            if self.running:
                return True
            if self.cap is None and not self._open_camera():
                return False

            self.running = True
            self.capture_thread = threading.Thread(
                target=self._capture_frames, name=f"camera-{self.device_id}", daemon=True
            )
            self.capture_thread.start()

        logger.info(f"Camera {self.device_id} streaming")
        return True

    def stop_stream(self):
        """Stop capture and release the device. Safe to call at any time."""
        with self._lock:
            was_running = self.running
            self.running = False

            thread, self.capture_thread = self.capture_thread, None
            if thread is not None and thread.is_alive():
                thread.join(timeout=2.0)

            if self.cap is not None:
                self.cap.release()
                self.cap = None
            self._drain()

        if was_running:
            logger.info(f"Camera {self.device_id} released")

    def get_frame(self, timeout: float = 1.0) -> Optional[np.ndarray]:
        """Newest buffered frame, or None when stopped or nothing arrives in time."""
        if not self.running:
            return None
        try:
            return self.frame_queue.get(timeout=timeout)
        except Empty:
            logger.debug(f"No frame from camera {self.device_id} within {timeout}s")
            return None

    def get_camera_info(self) -> dict:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "running": self.running,
            "frames_captured": self.frames_captured,
            "frames_dropped": self.frames_dropped,
            "read_failures": self.read_failures,
            "last_frame_time": self.last_frame_time,
        }

    def is_running(self) -> bool:
        return self.running and self.cap is not None and self.cap.isOpened()

    def __enter__(self):
        self.start_stream()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_stream()
