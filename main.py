#!/usr/bin/env python3
"""
Classroom attendance monitor controller.
Wires the roster store, monitor, face pipeline, clock and REST API together.
"""
import argparse
import signal
import sys
from typing import Optional

import uvicorn

from api.api_server import create_app
from attendance.roster_store import SqliteRosterStore
from camera.stream_handler import CameraStream
from monitor.engine import AttendanceMonitor
from monitor.notifications import LoggingNotificationSink, NotificationFeed
from monitor.pipeline import ClockTicker, DetectionLoop
from monitor.scheduler import DailySchedule
from recognition.face_matcher import FaceMatcher
from utils.config import config
from utils.logger import logger

# Face encoding needs dlib through face_recognition
try:
    from recognition.face_encoder import FaceEncoder
    VISION_AVAILABLE = True
except ImportError:
    VISION_AVAILABLE = False


class ClassroomMonitorSystem:
    """Main controller for the attendance monitor and its collaborators."""

    def __init__(self, camera_id: int = 0, db_path: Optional[str] = None, use_camera: bool = True):
        self.camera_id = camera_id
        self.use_camera = use_camera and VISION_AVAILABLE
        self.running = False

        self.store = SqliteRosterStore(db_path or config.roster.db_path)
        self.feed = NotificationFeed()
        self.monitor = AttendanceMonitor(store=self.store, sinks=[LoggingNotificationSink(), self.feed])
        self.matcher = FaceMatcher()
        self.schedule = DailySchedule()
        self.ticker = ClockTicker(self.monitor)

        self.encoder = None
        self.camera_stream: Optional[CameraStream] = None
        self.detection_loop: Optional[DetectionLoop] = None

        self._initialize_system()

        self.api_app = create_app(
            self.monitor,
            feed=self.feed,
            schedule=self.schedule,
            matcher=self.matcher,
            encoder=self.encoder,
            detection_loop=self.detection_loop,
        )

    def _initialize_system(self):
        """Load the roster and set up the face pipeline."""
        logger.info("Initializing classroom monitor.")

        self.monitor.load_roster()

        if not self.use_camera:
            if not VISION_AVAILABLE:
                logger.warning("face_recognition not installed, camera monitoring disabled")
            return

        self.encoder = FaceEncoder()
        self._enroll_roster_photos()

        self.camera_stream = CameraStream(self.camera_id)
        self.detection_loop = DetectionLoop(self.monitor, self.camera_stream, self.encoder, self.matcher)
        self.detection_loop.attach()
        logger.info("Face pipeline initialized")

    def _enroll_roster_photos(self):
        enrolled = 0
        for student in self.monitor.students():
            if not student.photo_ref:
                continue
            encoding = self.encoder.encode_image(student.photo_ref)
            if encoding is not None:
                self.matcher.add_face(student.id, encoding)
                enrolled += 1
        logger.info(f"Enrolled {enrolled} student photos")

    def start(self, host: str, port: int):
        """Start the ticker and serve the API until shutdown."""
        if self.running:
            logger.warning("System is already running")
            return

        self.running = True
        self.ticker.start()
        logger.info(f"Starting API server on {host}:{port}")

        try:
            uvicorn.run(self.api_app, host=host, port=port, log_level="info")
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        finally:
            self.stop()

    def stop(self):
        """Stop all threads and release the camera."""
        if not self.running:
            return
        self.running = False

        self.ticker.stop()
        if self.detection_loop is not None:
            self.detection_loop.stop()

        logger.info("Classroom monitor stopped")
        logger.shutdown()

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        self.stop()
        sys.exit(0)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Classroom Attendance Monitor")
    parser.add_argument("--camera", "-c", type=int, default=config.camera.device_id,
                        help="Camera device ID")
    parser.add_argument("--host", type=str, default=config.api.host, help="API server host")
    parser.add_argument("--port", "-p", type=int, default=config.api.port, help="API server port")
    parser.add_argument("--db", type=str, default=config.roster.db_path, help="Roster database path")
    parser.add_argument("--no-camera", action="store_true", help="Run without camera monitoring")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        config.logging.log_level = "DEBUG"
        logger.set_level("DEBUG")

    try:
        system = ClassroomMonitorSystem(
            camera_id=args.camera,
            db_path=args.db,
            use_camera=not args.no_camera,
        )
        signal.signal(signal.SIGTERM, system._signal_handler)
        system.start(args.host, args.port)

    except KeyboardInterrupt:
        logger.info("Classroom monitor interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
