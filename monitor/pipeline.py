"""
Threads driving the attendance monitor.

DetectionLoop   frames -> encodings -> matches -> RecognitionEvent queue -> monitor
ClockTicker     wall-clock tick -> monitor.tick(now)
"""
import threading
from datetime import datetime
from queue import Queue, Empty, Full
from typing import Callable, List, Optional

from utils.config import config
from utils.logger import logger

from .exceptions import DetectorUnavailable
from .models import Alert, MonitoringState, RecognitionEvent


class DetectionLoop:
    """Feeds recognition events into the monitor at the detector's own cadence.

    The producer thread grabs a frame, encodes and matches every face and
    puts one event per face on a bounded queue; when the queue is full the
    oldest event is discarded. The consumer thread hands events to the
    monitor. Detector failures count as "no detection" for that pass.
    """

    def __init__(self, monitor, frame_source, encoder, matcher,
                 interval: Optional[float] = None, queue_size: Optional[int] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.monitor = monitor
        self.frame_source = frame_source
        self.encoder = encoder
        self.matcher = matcher
        self.interval = interval or config.monitor.detection_interval
        self.clock = clock
        self.events: Queue = Queue(maxsize=queue_size or config.monitor.event_queue_size)

        self.running = False
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self.join_timeout = 2.0
        self._producer: Optional[threading.Thread] = None
        self._release_lock = threading.Lock()
        self._release_pending = False

        # Counters
        self.frames_processed = 0
        self.events_published = 0
        self.events_discarded = 0
        self.detector_failures = 0

    def attach(self):
        """Start and stop with the monitoring lifecycle."""
        self.monitor.add_state_listener(self._on_state_change)

    def _on_state_change(self, state: MonitoringState):
        if state is MonitoringState.ACTIVE:
            self.start()
        else:
            self.stop()

    def publish(self, event: RecognitionEvent):
        """Queue an event, discarding the oldest one if the queue is full."""
        while True:
            try:
                self.events.put_nowait(event)
                self.events_published += 1
                return
            except Full:
                try:
                    self.events.get_nowait()
                    self.events_discarded += 1
                except Empty:
                    pass

    def run_once(self) -> int:
        """One detector pass; returns the number of events published."""
        if not self.monitor.is_active:
            return 0

        frame = self.frame_source.get_frame()
        if frame is None:
            return 0

        try:
            encodings = self.encoder.encode_frame(frame)
        except DetectorUnavailable as e:
            self.detector_failures += 1
            logger.warning(f"Detector unavailable, skipping pass: {e}")
            return 0

        self.frames_processed += 1
        now = self.clock()
        for encoding in encodings:
            result = self.matcher.match(encoding)
            self.publish(RecognitionEvent(
                student_id=result.student_id,
                confidence=result.confidence,
                timestamp=now,
            ))
        return len(encodings)

    def drain(self) -> List[Alert]:
        """Hand every queued event to the monitor; returns alerts raised."""
        alerts = []
        while True:
            try:
                event = self.events.get_nowait()
            except Empty:
                return alerts
            alert = self.monitor.on_recognition_event(event)
            if alert is not None:
                alerts.append(alert)

    def _produce(self):
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error in detection pass: {e}")
            self._stop_event.wait(self.interval)

        # A stop() that timed out waiting for us left the release to this thread
        with self._release_lock:
            if self._release_pending:
                self._release_pending = False
                self._release_frame_source()

    def _release_frame_source(self):
        try:
            self.frame_source.stop_stream()
        except Exception as e:
            logger.error(f"Error releasing frame source: {e}")

    def _consume(self):
        while not self._stop_event.is_set():
            try:
                event = self.events.get(timeout=0.5)
            except Empty:
                continue
            try:
                self.monitor.on_recognition_event(event)
            except Exception as e:
                logger.error(f"Error processing recognition event: {e}")

    def start(self) -> bool:
        with self._lock:
            if self.running:
                return True

            if self._producer is not None and self._producer.is_alive():
                logger.warning("Detection loop not started: previous producer has not exited")
                return False

            if not self.frame_source.start_stream():
                logger.error("Detection loop not started: frame source unavailable")
                return False

            self._stop_event.clear()
            self._producer = threading.Thread(target=self._produce, name="detection-producer", daemon=True)
            self._threads = [
                self._producer,
                threading.Thread(target=self._consume, name="detection-consumer", daemon=True),
            ]
            for thread in self._threads:
                thread.start()
            self.running = True

        logger.info("Detection loop started")
        return True

    def stop(self):
        """Stop the threads and release the camera. Safe to call in any state."""
        with self._lock:
            was_running = self.running
            self.running = False
            self._stop_event.set()

            current = threading.current_thread()
            for thread in self._threads:
                if thread is not current and thread.is_alive():
                    thread.join(timeout=self.join_timeout)
            self._threads = []

            with self._release_lock:
                if self._producer is not None and self._producer.is_alive():
                    logger.warning("Detection producer still busy after stop; "
                                   "frame source will be released when it exits")
                    self._release_pending = True
                else:
                    self._release_frame_source()

            while True:
                try:
                    self.events.get_nowait()
                except Empty:
                    break

        if was_running:
            logger.info("Detection loop stopped")

    def get_statistics(self) -> dict:
        stats = {
            'running': self.running,
            'frames_processed': self.frames_processed,
            'events_published': self.events_published,
            'events_discarded': self.events_discarded,
            'detector_failures': self.detector_failures,
            'queued_events': self.events.qsize(),
        }
        if hasattr(self.frame_source, 'get_camera_info'):
            stats['camera'] = self.frame_source.get_camera_info()
        return stats


class ClockTicker:
    """Calls ``monitor.tick(now)`` on a fixed cadence."""

    def __init__(self, monitor, interval: Optional[float] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.monitor = monitor
        self.interval = interval or config.monitor.tick_interval
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.monitor.tick(self.clock())
            except Exception as e:
                logger.error(f"Error in clock tick: {e}")
            self._stop_event.wait(self.interval)

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="clock-ticker", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
