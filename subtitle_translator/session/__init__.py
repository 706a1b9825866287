"""Translation session persistence backed by SQLAlchemy."""

from __future__ import annotations

from .cache_store import TranslationCacheStore
from .engine import create_session_factory, dispose_engine, get_db_session, get_engine
from .models import (
    Base,
    SessionEntryModel,
    SessionStatus,
    TranslationCacheModel,
    TranslationSessionModel,
)
from .repository import (
    ResumeResult,
    ResumeStatus,
    SessionInfo,
    SessionRepository,
    compute_content_hash,
)

__all__ = [
    "Base",
    "ResumeResult",
    "ResumeStatus",
    "SessionEntryModel",
    "SessionInfo",
    "SessionRepository",
    "SessionStatus",
    "TranslationCacheModel",
    "TranslationCacheStore",
    "TranslationSessionModel",
    "compute_content_hash",
    "create_session_factory",
    "dispose_engine",
    "get_db_session",
    "get_engine",
]
