"""Classroom screen: slide deck, ink layer and live classroom tools"""

from .config import AppConfig, configure_logging, load_config
from .local_storage import LocalStorage
from .scheduler import Scheduler
from .session import ClassroomSession

__all__ = ['AppConfig', 'ClassroomSession', 'LocalStorage', 'Scheduler',
           'configure_logging', 'load_config']
