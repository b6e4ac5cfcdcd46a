"""
Face matching against the enrolled gallery.
Pure nearest-neighbour matching plus a thread-safe gallery wrapper.
"""
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from utils.config import config
from utils.logger import logger

Encoding = Union[np.ndarray, Sequence[float]]
GalleryEntry = Union[Encoding, Sequence[Encoding]]


@dataclass(frozen=True)
class MatchResult:
    """Best gallery identity for a probe, or None when unknown."""
    student_id: Optional[str]
    distance: float

    @property
    def is_known(self) -> bool:
        return self.student_id is not None

    @property
    def confidence(self) -> float:
        if not np.isfinite(self.distance):
            return 0.0
        return max(0.0, min(1.0, 1.0 - self.distance))


def _as_matrix(entry: GalleryEntry) -> np.ndarray:
    """One or more encodings as a 2-D array (rows are encodings)."""
    matrix = np.asarray(entry, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    return matrix


def face_distance(encodings: np.ndarray, probe: Encoding) -> np.ndarray:
    """Euclidean distance from ``probe`` to each row of ``encodings``."""
    if len(encodings) == 0:
        return np.empty(0)
    return np.linalg.norm(encodings - np.asarray(probe, dtype=np.float64), axis=1)


def match_face(probe: Encoding, gallery: Mapping[str, GalleryEntry],
               tolerance: float = 0.6) -> MatchResult:
    """Match ``probe`` against ``gallery``.

    Identities are visited in sorted order and an equidistant later
    identity never replaces an earlier one, so ties resolve
    deterministically. A match requires ``distance <= tolerance``.
    """
    best_id: Optional[str] = None
    best_distance = float('inf')

    for student_id in sorted(gallery):
        encodings = _as_matrix(gallery[student_id])
        if encodings.size == 0:
            continue
        distance = float(face_distance(encodings, probe).min())
        if distance < best_distance and not np.isclose(distance, best_distance):
            best_id, best_distance = student_id, distance

    if best_id is None or best_distance > tolerance:
        return MatchResult(None, best_distance)
    return MatchResult(best_id, best_distance)


class FaceMatcher:
    """Enrolled gallery with matching and recognition statistics."""

    def __init__(self, tolerance: Optional[float] = None):
        self.gallery: Dict[str, List[np.ndarray]] = {}
        self.tolerance = config.face.tolerance if tolerance is None else tolerance
        self._lock = threading.Lock()

        # Performance tracking
        self.matching_times = []
        self.recognition_counts: Dict[str, int] = {}

        logger.info(f"Face matcher initialized (tolerance {self.tolerance})")

    def add_face(self, student_id: str, encoding: Encoding):
        """Add a reference encoding for a student."""
        with self._lock:
            self.gallery.setdefault(student_id, []).append(np.asarray(encoding, dtype=np.float64))
        logger.info(f"Added face encoding for {student_id}")

    def remove_face(self, student_id: str) -> bool:
        with self._lock:
            removed = self.gallery.pop(student_id, None) is not None
        if removed:
            logger.info(f"Removed face encodings for {student_id}")
        return removed

    def match(self, probe: Encoding) -> MatchResult:
        start_time = time.time()
        with self._lock:
            gallery = {k: list(v) for k, v in self.gallery.items()}
            tolerance = self.tolerance

        result = match_face(probe, gallery, tolerance)

        with self._lock:
            self.matching_times.append(time.time() - start_time)
            if len(self.matching_times) > 100:
                self.matching_times = self.matching_times[-100:]
            if result.is_known:
                self.recognition_counts[result.student_id] = \
                    self.recognition_counts.get(result.student_id, 0) + 1

        if result.is_known:
            logger.debug(f"Face matched: {result.student_id} (distance: {result.distance:.3f})")
        return result

    def match_many(self, probes: Sequence[Encoding]) -> List[MatchResult]:
        """Match each face of a frame independently."""
        return [self.match(probe) for probe in probes]

    def update_tolerance(self, new_tolerance: float):
        with self._lock:
            self.tolerance = max(0.0, min(1.0, new_tolerance))
        logger.info(f"Updated face tolerance to {self.tolerance}")

    def get_recognition_statistics(self) -> Dict:
        """Get face matching performance statistics."""
        with self._lock:
            avg_matching_time = float(np.mean(self.matching_times)) if self.matching_times else 0.0
            counts = dict(self.recognition_counts)
            known = len(self.gallery)

        return {
            'enrolled_students': known,
            'average_matching_time_ms': avg_matching_time * 1000,
            'tolerance': self.tolerance,
            'most_recognized': dict(sorted(counts.items(), key=lambda x: x[1], reverse=True)[:5]),
        }

    def __len__(self):
        return len(self.gallery)
