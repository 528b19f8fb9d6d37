from .db import build_engine, build_session_factory, get_session
from .models import Base, Instance, history_table

__all__ = [
    "Base",
    "Instance",
    "build_engine",
    "build_session_factory",
    "get_session",
    "history_table",
]
