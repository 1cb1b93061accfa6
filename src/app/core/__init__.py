"""
Core module - Configuration, database, scheduler, email and documents.
"""

from app.core.config import get_settings, settings
from app.core.database import Base, close_db, get_db, init_db
from app.core.scheduler import start_scheduler, stop_scheduler

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Scheduler
    "start_scheduler",
    "stop_scheduler",
]
