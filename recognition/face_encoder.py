"""
Face encoding for camera frames and enrolment photos.
Uses the face_recognition library (dlib) with OpenCV preprocessing.
"""
import os
import threading
import time
from typing import List, Optional

import cv2
import numpy as np
import face_recognition

from monitor.exceptions import DetectorUnavailable
from utils.config import config
from utils.logger import logger


class FaceEncoder:
    """Turns frames into face encodings."""

    def __init__(self, model: str = None, detection_scale: float = None):
        self.model = model or config.face.model
        self.detection_scale = detection_scale or config.face.detection_scale

        # Performance tracking
        self.encoding_times = []
        self.total_faces = 0
        self._stats_lock = threading.Lock()

        logger.info(f"Face encoder initialized with model: {self.model}")

    def encode_frame(self, frame: np.ndarray) -> List[np.ndarray]:
        """Encode every face in a BGR frame.

        Raises DetectorUnavailable if the frame is unusable or the detector
        fails.
        """
        if frame is None or frame.size == 0:
            raise DetectorUnavailable("Empty frame")

        start_time = time.time()
        try:
            if self.detection_scale != 1.0:
                small_frame = cv2.resize(frame, (0, 0), fx=self.detection_scale, fy=self.detection_scale)
            else:
                small_frame = frame

            rgb_frame = cv2.cvtColor(small_frame, cv2.COLOR_BGR2RGB)
            face_locations = face_recognition.face_locations(rgb_frame, model=self.model)
            if not face_locations:
                return []

            encodings = face_recognition.face_encodings(rgb_frame, face_locations)

        except Exception as e:
            raise DetectorUnavailable(f"Face detection failed: {e}") from e

        with self._stats_lock:
            self.encoding_times.append(time.time() - start_time)
            if len(self.encoding_times) > 100:
                self.encoding_times = self.encoding_times[-100:]
            self.total_faces += len(encodings)

        return list(encodings)

    def encode_image(self, image_path: str) -> Optional[np.ndarray]:
        """Encode the face in an enrolment photo; None if there is none."""
        if not os.path.exists(image_path):
            logger.warning(f"Photo does not exist: {image_path}")
            return None

        try:
            image = face_recognition.load_image_file(image_path)
            encodings = face_recognition.face_encodings(image)
        except Exception as e:
            logger.error(f"Failed to encode face from {image_path}: {e}")
            return None

        if not encodings:
            logger.warning(f"No face found in {image_path}")
            return None

        if len(encodings) > 1:
            logger.warning(f"Multiple faces found in {image_path}, using first one")

        return encodings[0]

    def get_encoding_statistics(self) -> dict:
        with self._stats_lock:
            avg = float(np.mean(self.encoding_times)) if self.encoding_times else 0.0
            return {
                'model': self.model,
                'total_faces': self.total_faces,
                'average_encoding_time_ms': avg * 1000,
            }
