"""Persist translation sessions so interrupted runs can be resumed."""

from __future__ import annotations

import enum
import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

from sqlalchemy import and_, delete, select
from sqlalchemy.orm import Session, sessionmaker

from subtitle_translator import logging_manager as log_mgr

from .engine import get_db_session
from .models import SessionEntryModel, SessionStatus, TranslationSessionModel

logger = log_mgr.get_logger().getChild("session.repository")

StoredTranslation = Tuple[str, Optional[float]]


def compute_content_hash(text: str) -> str:
    """Return the hex SHA-256 digest of ``text`` encoded as UTF-8."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class SessionInfo:
    id: str
    source_path: str
    content_hash: str
    source_language: str
    target_language: str
    provider: str
    model: str
    total_entries: int
    completed_entries: int
    status: SessionStatus
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def pending_entries(self) -> int:
        return max(0, self.total_entries - self.completed_entries)

    def completion_percentage(self) -> float:
        if self.total_entries == 0:
            return 0.0
        return self.completed_entries / self.total_entries * 100.0

    def is_resumable(self) -> bool:
        return self.status in (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED)

    def __str__(self) -> str:
        return (
            f"[{self.id[:8]}] {self.source_language} -> {self.target_language} "
            f"({self.completion_percentage():.1f}% complete, {self.status.value})"
        )


class ResumeStatus(str, enum.Enum):
    RESUMED = "resumed"
    NOT_FOUND = "not_found"
    SOURCE_CHANGED = "source_changed"
    ALREADY_COMPLETED = "already_completed"
    FAILED = "failed"


@dataclass(slots=True)
class ResumeResult:
    status: ResumeStatus
    session: Optional[SessionInfo] = None
    translations: Dict[int, StoredTranslation] = field(default_factory=dict)

    def can_proceed(self) -> bool:
        return self.status in (ResumeStatus.RESUMED, ResumeStatus.NOT_FOUND)


def _to_info(model: TranslationSessionModel) -> SessionInfo:
    return SessionInfo(
        id=model.id,
        source_path=model.source_path,
        content_hash=model.content_hash,
        source_language=model.source_language,
        target_language=model.target_language,
        provider=model.provider,
        model=model.model,
        total_entries=model.total_entries,
        completed_entries=model.completed_entries,
        status=SessionStatus(model.status),
        error=model.error,
        created_at=model.created_at,
        updated_at=model.updated_at,
        completed_at=model.completed_at,
    )


class SessionRepository:
    """SQLAlchemy-backed store for translation sessions and their entries."""

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None) -> None:
        self._factory = session_factory

    def _scope(self):
        return get_db_session(self._factory)

    @staticmethod
    def _load(db: Session, session_id: str) -> TranslationSessionModel:
        model = db.get(TranslationSessionModel, session_id)
        if model is None:
            raise KeyError(f"Unknown translation session: {session_id}")
        return model

    def create(
        self,
        *,
        source_path: str,
        content_hash: str,
        source_language: str,
        target_language: str,
        provider: str,
        model: str,
        total_entries: int,
    ) -> SessionInfo:
        with self._scope() as db:
            record = TranslationSessionModel(
                id=str(uuid.uuid4()),
                source_path=source_path,
                content_hash=content_hash,
                source_language=source_language,
                target_language=target_language,
                provider=provider,
                model=model,
                total_entries=total_entries,
                completed_entries=0,
                status=SessionStatus.IN_PROGRESS.value,
            )
            db.add(record)
            db.flush()
            db.refresh(record)
            info = _to_info(record)
        logger.info(
            "Created translation session %s",
            info.id,
            extra={
                "event": "session.created",
                "attributes": {"entries": total_entries, "source_path": source_path},
            },
        )
        return info

    def get(self, session_id: str) -> Optional[SessionInfo]:
        with self._scope() as db:
            record = db.get(TranslationSessionModel, session_id)
            return _to_info(record) if record is not None else None

    def find_resumable(
        self,
        content_hash: str,
        source_language: str,
        target_language: str,
        provider: str,
        model: str,
    ) -> Optional[SessionInfo]:
        """Return the most recently updated resumable session for this input, if any."""

        with self._scope() as db:
            record = db.execute(
                select(TranslationSessionModel)
                .where(
                    and_(
                        TranslationSessionModel.content_hash == content_hash,
                        TranslationSessionModel.source_language == source_language,
                        TranslationSessionModel.target_language == target_language,
                        TranslationSessionModel.provider == provider,
                        TranslationSessionModel.model == model,
                        TranslationSessionModel.status.in_(
                            [SessionStatus.IN_PROGRESS.value, SessionStatus.PAUSED.value]
                        ),
                    )
                )
                .order_by(TranslationSessionModel.updated_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _to_info(record) if record is not None else None

    def resume(self, session_id: str, content_hash: str) -> ResumeResult:
        """Reopen ``session_id`` and return the translations stored so far.

        The session is only resumed when ``content_hash`` still matches the
        hash recorded at creation.
        """

        with self._scope() as db:
            record = db.get(TranslationSessionModel, session_id)
            if record is None:
                return ResumeResult(ResumeStatus.NOT_FOUND)
            info = _to_info(record)
            if record.content_hash != content_hash:
                return ResumeResult(ResumeStatus.SOURCE_CHANGED, info)
            if record.status == SessionStatus.COMPLETED.value:
                return ResumeResult(ResumeStatus.ALREADY_COMPLETED, info)
            if record.status == SessionStatus.FAILED.value:
                return ResumeResult(ResumeStatus.FAILED, info)

            record.status = SessionStatus.IN_PROGRESS.value
            rows = db.execute(
                select(SessionEntryModel).where(SessionEntryModel.session_id == session_id)
            ).scalars()
            translations = {row.entry_id: (row.translated_text, row.confidence) for row in rows}
            db.flush()
            info = _to_info(record)

        logger.info(
            "Resumed translation session %s with %d stored translations",
            session_id,
            len(translations),
            extra={"event": "session.resumed"},
        )
        return ResumeResult(ResumeStatus.RESUMED, info, translations)

    def update_progress(
        self, session_id: str, translations: Mapping[int, StoredTranslation]
    ) -> SessionInfo:
        """Upsert per-entry translations and refresh the completed count."""

        with self._scope() as db:
            record = self._load(db, session_id)
            if translations:
                db.execute(
                    delete(SessionEntryModel).where(
                        and_(
                            SessionEntryModel.session_id == session_id,
                            SessionEntryModel.entry_id.in_(list(translations)),
                        )
                    )
                )
                for entry_id, (text, confidence) in translations.items():
                    db.add(
                        SessionEntryModel(
                            session_id=session_id,
                            entry_id=entry_id,
                            translated_text=text,
                            confidence=confidence,
                        )
                    )
            db.flush()
            stored = db.execute(
                select(SessionEntryModel.entry_id).where(SessionEntryModel.session_id == session_id)
            ).all()
            record.completed_entries = min(record.total_entries, len(stored))
            db.flush()
            return _to_info(record)

    def mark_paused(self, session_id: str) -> SessionInfo:
        return self._set_status(session_id, SessionStatus.PAUSED)

    def mark_complete(self, session_id: str) -> SessionInfo:
        return self._set_status(session_id, SessionStatus.COMPLETED)

    def mark_failed(self, session_id: str, error: Optional[str] = None) -> SessionInfo:
        return self._set_status(session_id, SessionStatus.FAILED, error=error)

    def _set_status(
        self, session_id: str, status: SessionStatus, *, error: Optional[str] = None
    ) -> SessionInfo:
        with self._scope() as db:
            record = self._load(db, session_id)
            record.status = status.value
            if status is SessionStatus.COMPLETED:
                record.completed_at = datetime.now(timezone.utc)
                record.completed_entries = record.total_entries
            if error is not None:
                record.error = error
            db.flush()
            info = _to_info(record)
        logger.info(
            "Session %s marked %s",
            session_id,
            status.value,
            extra={"event": "session.status", "attributes": {"status": status.value}},
        )
        return info

    def list_sessions(self, status: Optional[SessionStatus] = None) -> List[SessionInfo]:
        with self._scope() as db:
            query = select(TranslationSessionModel).order_by(
                TranslationSessionModel.updated_at.desc()
            )
            if status is not None:
                query = query.where(TranslationSessionModel.status == status.value)
            return [_to_info(record) for record in db.execute(query).scalars()]


__all__ = [
    "ResumeResult",
    "ResumeStatus",
    "SessionInfo",
    "SessionRepository",
    "StoredTranslation",
    "compute_content_hash",
]
