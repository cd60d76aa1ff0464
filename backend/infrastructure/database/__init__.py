from .connection import (
    build_database_url,
    close_db,
    get_db,
    get_engine,
    get_session_factory,
    init_db,
)
from .models.base import Base
from .upsert import upsert

__all__ = [
    "Base",
    "build_database_url",
    "get_engine",
    "get_session_factory",
    "get_db",
    "init_db",
    "close_db",
    "upsert",
]
