"""Utility modules for the classroom attendance monitor."""
from .config import config, Config
from .logger import logger, ClassroomLogger
__all__ = ['config', 'Config', 'logger', 'ClassroomLogger']
