"""
Configuration settings for the classroom attendance monitor.
Dataclass sections with environment overrides and validation.
"""
import os
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Tuple
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_SLOTS = [
    "09:00", "10:00", "11:00", "12:00", "13:30", "14:30", "15:45"
]

DEFAULT_TIMETABLE = [
    ("09:00", "10:00", "class"),
    ("10:00", "10:45", "class"),
    ("10:45", "11:00", "break"),
    ("11:00", "12:00", "class"),
    ("12:00", "12:45", "class"),
    ("12:45", "13:30", "break"),
    ("13:30", "14:30", "class"),
    ("14:30", "15:30", "class"),
    ("15:30", "15:45", "break"),
    ("15:45", "16:20", "class"),
]


@dataclass
class CameraConfig:
    """Classroom camera settings."""
    device_id: int = 0
    resolution: Tuple[int, int] = (640, 480)
    fps: int = 15
    buffer_size: int = 1


@dataclass
class FaceConfig:
    """Face encoding and matching configuration."""
    model: str = "hog"  # hog or cnn
    tolerance: float = 0.6
    detection_scale: float = 0.5


@dataclass
class MonitorConfig:
    """Attendance monitoring engine configuration."""
    alert_history_size: int = 8
    alert_message: str = "Recognized student absent without permission during class"
    detection_interval: float = 1.0  # seconds between detector passes
    tick_interval: float = 1.0
    event_queue_size: int = 32
    lock_timeout: float = 0.05  # seconds a recognition event may wait for the lock


@dataclass
class ScheduleConfig:
    """Class schedule and reminder configuration."""
    reminder_slots: List[str] = field(default_factory=lambda: list(DEFAULT_REMINDER_SLOTS))
    timetable: List[Tuple[str, str, str]] = field(default_factory=lambda: list(DEFAULT_TIMETABLE))
    reminder_title: str = "Class Starting"
    reminder_message: str = "A new class has started! Please mark attendance."


@dataclass
class RosterConfig:
    """Roster store configuration."""
    db_path: str = "classroom_data/roster.db"
    photo_dir: str = "classroom_data/photos"
    max_photo_bytes: int = 5 * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    output_dir: str = "classroom_output"
    max_events: int = 1000
    notification_feed_size: int = 50


@dataclass
class ApiConfig:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


def _is_valid_slot(value: str) -> bool:
    parts = value.split(":")
    if len(parts) != 2 or not all(len(p) == 2 and p.isdigit() for p in parts):
        return False
    return int(parts[0]) < 24 and int(parts[1]) < 60


def _parse_resolution(value: str) -> Tuple[int, int]:
    width, height = value.lower().split("x")
    return int(width), int(height)


def _parse_slots(value: str) -> List[str]:
    return [s.strip() for s in value.split(",") if s.strip()]


def _parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ValueError(f"unknown log level {value!r}")
    return level


# variable -> (section, attribute, parser)
ENV_OVERRIDES = {
    "CAMERA_ID": ("camera", "device_id", int),
    "CAMERA_RESOLUTION": ("camera", "resolution", _parse_resolution),
    "FACE_TOLERANCE": ("face", "tolerance", float),
    "ALERT_HISTORY_SIZE": ("monitor", "alert_history_size", int),
    "CLASS_REMINDERS": ("schedule", "reminder_slots", _parse_slots),
    "ROSTER_DB": ("roster", "db_path", str),
    "LOG_LEVEL": ("logging", "log_level", _parse_log_level),
    "API_HOST": ("api", "host", str),
    "API_PORT": ("api", "port", int),
}

SECTIONS = {
    'camera': CameraConfig,
    'face': FaceConfig,
    'monitor': MonitorConfig,
    'schedule': ScheduleConfig,
    'roster': RosterConfig,
    'logging': LoggingConfig,
    'api': ApiConfig,
}


class Config:
    """Main configuration class with validation."""

    def __init__(self, load_environment: bool = True, create_directories: bool = True):
        for name, section in SECTIONS.items():
            setattr(self, name, section())

        if load_environment:
            self._load_environment_variables()
        self._validate_configuration()
        if create_directories:
            self._create_directories()

    def _load_environment_variables(self):
        """Apply environment overrides; unparsable values keep the default."""
        for variable, (section, attribute, parse) in ENV_OVERRIDES.items():
            raw = os.getenv(variable)
            if not raw:
                continue
            try:
                setattr(getattr(self, section), attribute, parse(raw))
            except ValueError as e:
                logger.warning(f"Ignoring {variable}={raw!r}: {e}")

    def _validate_configuration(self):
        """Collect every invalid setting and raise them together."""
        errors = []

        if self.camera.device_id < 0:
            errors.append("Camera device ID must be non-negative")
        if self.camera.fps <= 0 or self.camera.buffer_size < 1:
            errors.append("Camera FPS and buffer size must be positive")
        if any(dim <= 0 for dim in self.camera.resolution):
            errors.append("Camera resolution must have positive width and height")

        if not 0.0 <= self.face.tolerance <= 1.0:
            errors.append("Face tolerance must be between 0.0 and 1.0")
        if not 0.1 <= self.face.detection_scale <= 1.0:
            errors.append("Face detection scale must be between 0.1 and 1.0")
        if self.face.model not in ("hog", "cnn"):
            errors.append(f"Unknown face detection model: {self.face.model}")

        if self.monitor.alert_history_size < 1:
            errors.append("Alert history size must be positive")
        if self.monitor.detection_interval <= 0 or self.monitor.tick_interval <= 0:
            errors.append("Detection and tick intervals must be positive")
        if self.monitor.event_queue_size < 1:
            errors.append("Event queue size must be positive")

        bad_slots = [s for s in self.schedule.reminder_slots if not _is_valid_slot(s)]
        if bad_slots:
            errors.append(f"Invalid reminder slots (expected HH:MM): {', '.join(bad_slots)}")

        for start, end, kind in self.schedule.timetable:
            if not (_is_valid_slot(start) and _is_valid_slot(end)) or start >= end:
                errors.append(f"Invalid timetable slot: {start}-{end}")
            if kind not in ("class", "break"):
                errors.append(f"Invalid timetable slot type: {kind}")

        if self.roster.max_photo_bytes <= 0:
            errors.append("Maximum photo size must be positive")
        if not 0 < self.api.port < 65536:
            errors.append("API port must be between 1 and 65535")

        if errors:
            message = "Invalid configuration:\n" + "\n".join(f"- {error}" for error in errors)
            logger.error(message)
            raise ValueError(message)

    def _create_directories(self):
        """Create the log, photo and database directories."""
        wanted = [
            Path(self.logging.output_dir) / "logs",
            Path(self.roster.photo_dir),
            Path(self.roster.db_path).parent,
        ]
        for directory in wanted:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Could not create directory {directory}: {e}")

    def get_effective_config(self) -> dict:
        """Every section as a plain dictionary."""
        return {name: asdict(getattr(self, name)) for name in SECTIONS}


# Global configuration instance
try:
    config = Config()
except ValueError as e:
    logger.error(f"Failed to initialize configuration: {e}")
    config = Config(load_environment=False, create_directories=False)
    logger.warning("Using default configuration")


def validate_config():
    """Validate current configuration."""
    try:
        config._validate_configuration()
        return True
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        return False


def get_config_summary():
    """Get a summary of current configuration."""
    return {
        'camera_device': config.camera.device_id,
        'face_tolerance': config.face.tolerance,
        'alert_history_size': config.monitor.alert_history_size,
        'reminder_slots': list(config.schedule.reminder_slots),
        'roster_db': config.roster.db_path,
        'logging_level': config.logging.log_level,
        'api_port': config.api.port,
    }
