"""Camera handling module for the classroom attendance monitor."""
from .stream_handler import CameraStream
__all__ = ['CameraStream']
