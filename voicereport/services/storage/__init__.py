"""
Storage module - Local durable key-value persistence.
"""

from voicereport.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    init_db,
    reset_engine,
)
from voicereport.services.storage.models_db import KeyValueRecord
from voicereport.services.storage.repository import KeyValueRepository

__all__ = [
    "Base",
    "KeyValueRecord",
    "KeyValueRepository",
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
