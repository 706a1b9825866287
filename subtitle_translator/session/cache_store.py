"""Database tier of the translation cache."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from subtitle_translator import logging_manager as log_mgr

from .engine import get_db_session
from .models import TranslationCacheModel
from .repository import compute_content_hash

logger = log_mgr.get_logger().getChild("session.cache_store")


class TranslationCacheStore:
    """Store finished translations keyed by source text, language pair, provider and model."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker[Session]] = None,
        *,
        provider: str = "",
        model: str = "",
    ) -> None:
        self._factory = session_factory
        self.provider = provider
        self.model = model

    def _scope(self):
        return get_db_session(self._factory)

    def _lookup(self, db: Session, text_hash: str, source_language: str, target_language: str):
        return db.execute(
            select(TranslationCacheModel).where(
                TranslationCacheModel.source_text_hash == text_hash,
                TranslationCacheModel.source_language == source_language,
                TranslationCacheModel.target_language == target_language,
                TranslationCacheModel.provider == self.provider,
                TranslationCacheModel.model == self.model,
            )
        ).scalar_one_or_none()

    def get(self, text: str, source_language: str, target_language: str) -> Optional[str]:
        """Return the stored translation of ``text`` and count the hit."""

        with self._scope() as db:
            record = self._lookup(
                db, compute_content_hash(text), source_language, target_language
            )
            if record is None:
                return None
            record.hit_count += 1
            db.flush()
            return record.translated_text

    def put(
        self, text: str, source_language: str, target_language: str, translation: str
    ) -> None:
        """Insert or replace the translation of ``text``."""

        text_hash = compute_content_hash(text)
        with self._scope() as db:
            record = self._lookup(db, text_hash, source_language, target_language)
            if record is None:
                db.add(
                    TranslationCacheModel(
                        source_text_hash=text_hash,
                        source_text=text,
                        source_language=source_language,
                        target_language=target_language,
                        provider=self.provider,
                        model=self.model,
                        translated_text=translation,
                        hit_count=0,
                    )
                )
            else:
                record.translated_text = translation
            db.flush()

    def count(self) -> int:
        with self._scope() as db:
            return int(db.execute(select(func.count(TranslationCacheModel.id))).scalar_one())

    def clear(self) -> int:
        with self._scope() as db:
            deleted = db.execute(delete(TranslationCacheModel)).rowcount or 0
        logger.info(
            "Cleared %d cached translations",
            deleted,
            extra={"event": "session.cache.cleared"},
        )
        return deleted


__all__ = ["TranslationCacheStore"]
