"""Async engine, sessions and the declarative base shared by every model."""

from .base import Base, UTCDateTime, utcnow
from .engine import engine
from .pagination import Paginator
from .session import DbSession, async_session_maker, get_db_session, session_scope


__all__ = [
    "Base",
    "DbSession",
    "Paginator",
    "UTCDateTime",
    "async_session_maker",
    "engine",
    "get_db_session",
    "session_scope",
    "utcnow",
]
