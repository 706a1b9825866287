"""Window-by-window translation of a document.

Each context window becomes one structured request. Failures are classified
into the error taxonomy and handed to an :class:`ErrorRecoveryHandler`, whose
decision drives an explicit retry loop: wait and retry, split the batch into
smaller requests, or stop and emit placeholders.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import AbstractSet, Callable, Dict, List, Optional, Union

import requests

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator import observability
from subtitle_translator import prompt_templates
from subtitle_translator.analysis.summary import HistorySummarizer
from subtitle_translator.context import (
    ContextWindow,
    DynamicWindowConfig,
    DynamicWindowSizer,
    WindowConfig,
    count_windows,
    iter_windows,
)
from subtitle_translator.document import Glossary, SubtitleDocument
from subtitle_translator.llm_batch import parse_translation_response
from subtitle_translator.prompt_templates import TranslatedEntry
from subtitle_translator.providers.base import TranslationProvider
from subtitle_translator.quality.errors import (
    Abort,
    ErrorKind,
    ErrorRecoveryHandler,
    RecoveryStrategy,
    ReduceBatchSize,
    Retry,
    TranslationError,
    classify_exception,
)
from subtitle_translator.translation_cache import TranslationCache

from .errors import PipelineCancelled

logger = log_mgr.get_logger().getChild("pipeline.translation")

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]

# Failures that are classified and handed to recovery; anything else is a bug.
_RECOVERABLE_EXCEPTIONS = (TranslationError, requests.exceptions.RequestException, ValueError)


@dataclass(frozen=True)
class TranslationPassConfig:
    window_config: WindowConfig = field(default_factory=WindowConfig)
    max_retries: int = 3
    accept_glossary_updates: bool = True
    use_extractive_fallback: bool = True
    custom_instructions: Optional[str] = None
    recovery_strategy: Union[str, RecoveryStrategy] = "default"
    dynamic_sizing: Optional[DynamicWindowConfig] = None

    @classmethod
    def fast(cls) -> "TranslationPassConfig":
        return cls(
            window_config=WindowConfig.minimal(),
            max_retries=1,
            accept_glossary_updates=False,
            use_extractive_fallback=True,
            recovery_strategy="fast_fail",
        )

    @classmethod
    def quality(cls) -> "TranslationPassConfig":
        return cls(
            window_config=WindowConfig.large_context(),
            max_retries=3,
            accept_glossary_updates=True,
            use_extractive_fallback=True,
            recovery_strategy="aggressive",
            dynamic_sizing=DynamicWindowConfig.quality(),
        )

    def with_instructions(self, instructions: str) -> "TranslationPassConfig":
        return TranslationPassConfig(
            window_config=self.window_config,
            max_retries=self.max_retries,
            accept_glossary_updates=self.accept_glossary_updates,
            use_extractive_fallback=self.use_extractive_fallback,
            custom_instructions=instructions,
            recovery_strategy=self.recovery_strategy,
            dynamic_sizing=self.dynamic_sizing,
        )

    def resolve_strategy(self) -> RecoveryStrategy:
        if isinstance(self.recovery_strategy, RecoveryStrategy):
            return self.recovery_strategy
        return RecoveryStrategy.from_name(self.recovery_strategy)


@dataclass(slots=True)
class BatchResult:
    translations: List[TranslatedEntry]
    entry_ids: List[int]
    glossary_updates: Glossary = field(default_factory=Glossary)
    retries_used: int = 0
    used_fallback: bool = False

    def get_translation(self, entry_id: int) -> Optional[TranslatedEntry]:
        for translation in self.translations:
            if translation.id == entry_id:
                return translation
        return None

    def is_complete(self) -> bool:
        return not self.missing_ids()

    def missing_ids(self) -> List[int]:
        returned = {translation.id for translation in self.translations}
        return [entry_id for entry_id in self.entry_ids if entry_id not in returned]


@dataclass(slots=True)
class TranslationStats:
    total_batches: int = 0
    completed_batches: int = 0
    total_entries_translated: int = 0
    total_retries: int = 0
    fallback_used_count: int = 0
    skipped_batches: int = 0
    cached_entries: int = 0

    def success_rate(self) -> float:
        if self.total_batches == 0:
            return 100.0
        return self.completed_batches / self.total_batches * 100.0


def _log_rejected_update(source: str, target: str) -> None:
    logger.debug(
        "Ignoring glossary update for character name %s",
        source,
        extra={
            "event": "pipeline.translation.name_update_ignored",
            "attributes": {"source": source, "target": target},
        },
    )


def _without_names(updates: Glossary, glossary: Glossary) -> Glossary:
    # Character names are never translated, whatever the model suggests.
    kept = Glossary(character_names=set(updates.character_names))
    for source, term in updates.terms.items():
        if glossary.is_character_name(source):
            _log_rejected_update(source, term.target)
            continue
        kept.terms[source] = term
    for source, target in updates.technical_terms.items():
        if glossary.is_character_name(source):
            _log_rejected_update(source, target)
            continue
        kept.technical_terms[source] = target
    return kept


def _fallback_result(entry_ids: List[int], retries: int) -> BatchResult:
    # Empty text with zero confidence leaves the entries untranslated for validation to flag.
    placeholders = [
        TranslatedEntry(id=entry_id, translated="", confidence=0.0) for entry_id in entry_ids
    ]
    return BatchResult(
        translations=placeholders,
        entry_ids=list(entry_ids),
        retries_used=retries,
        used_fallback=True,
    )


class TranslationPass:
    """Translate a document one context window at a time."""

    def __init__(
        self,
        config: Optional[TranslationPassConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        cache: Optional[TranslationCache] = None,
    ) -> None:
        self.config = config or TranslationPassConfig()
        self._sleep = sleep
        self.cache = cache
        self._summarizer = HistorySummarizer()
        # Counters of the most recent translate_document call, kept when it raises.
        self.last_stats = TranslationStats()

    # ------------------------------------------------------------------
    # Single batch
    # ------------------------------------------------------------------
    def translate_batch(self, provider: TranslationProvider, window: ContextWindow) -> BatchResult:
        """Translate ``window.current_batch``, applying the configured recovery strategy."""

        handler = ErrorRecoveryHandler(
            self.config.resolve_strategy(), current_batch_size=len(window.current_batch)
        )
        return self._run_batch(provider, window, handler)

    def _run_batch(
        self,
        provider: TranslationProvider,
        window: ContextWindow,
        handler: ErrorRecoveryHandler,
    ) -> BatchResult:
        entry_ids = window.batch_ids()
        system_prompt = prompt_templates.build_system_prompt(
            window.source_language, window.target_language
        )
        user_prompt = prompt_templates.build_user_prompt(window, self.config.custom_instructions)

        retries = 0
        last_error: Optional[TranslationError] = None
        while retries <= self.config.max_retries:
            try:
                with observability.provider_request(
                    provider.name, getattr(provider, "model", None), len(entry_ids)
                ):
                    reply = provider.complete(system_prompt, user_prompt)
                response = parse_translation_response(reply)
            except _RECOVERABLE_EXCEPTIONS as exc:
                error = classify_exception(exc, affected_entries=entry_ids)
                last_error = error
                action = handler.handle_error(error)
                logger.warning(
                    "Batch request failed: %s; recovery: %s",
                    error,
                    action.description(),
                    extra={
                        "event": "pipeline.translation.batch_error",
                        "attributes": {
                            "kind": error.kind.value,
                            "entries": entry_ids,
                            "attempt": retries + 1,
                        },
                    },
                )
                if isinstance(action, Abort):
                    raise error
                if isinstance(action, Retry):
                    self._sleep(action.delay)
                    retries += 1
                    continue
                if isinstance(action, ReduceBatchSize):
                    if action.new_size < len(entry_ids):
                        split = self._run_split(provider, window, handler, action.new_size)
                        split.retries_used += retries + 1
                        return split
                    retries += 1
                    continue
                break
            else:
                return self._build_result(
                    response, entry_ids, retries, window.glossary.character_names
                )

        if self.config.use_extractive_fallback:
            logger.warning(
                "Using placeholder translations for %d entries",
                len(entry_ids),
                extra={
                    "event": "pipeline.translation.fallback",
                    "attributes": {"entries": entry_ids, "retries": retries},
                },
            )
            return _fallback_result(entry_ids, retries)
        if last_error is None:
            last_error = TranslationError(
                ErrorKind.UNKNOWN,
                f"Translation failed after {retries} retries",
                affected_entries=entry_ids,
            )
        raise last_error

    def _run_split(
        self,
        provider: TranslationProvider,
        window: ContextWindow,
        handler: ErrorRecoveryHandler,
        size: int,
    ) -> BatchResult:
        batch = window.current_batch
        merged = BatchResult(translations=[], entry_ids=window.batch_ids())
        for start in range(0, len(batch), size):
            part = self._run_batch(provider, window.with_batch(batch[start : start + size]), handler)
            merged.translations.extend(part.translations)
            merged.glossary_updates.merge(part.glossary_updates)
            merged.retries_used += part.retries_used
            merged.used_fallback = merged.used_fallback or part.used_fallback
        return merged

    def _build_result(
        self,
        response: prompt_templates.TranslationResponse,
        entry_ids: List[int],
        retries: int,
        character_names: AbstractSet[str] = frozenset(),
    ) -> BatchResult:
        requested = set(entry_ids)
        seen: Dict[int, TranslatedEntry] = {}
        for translation in response.translations:
            if translation.id not in requested:
                logger.debug(
                    "Ignoring translation for unrequested entry %s",
                    translation.id,
                    extra={"event": "pipeline.translation.unexpected_entry"},
                )
                continue
            seen.setdefault(translation.id, translation)

        result = BatchResult(
            translations=list(seen.values()), entry_ids=list(entry_ids), retries_used=retries
        )
        if self.config.accept_glossary_updates and response.notes is not None:
            for source, target in response.notes.glossary_updates.items():
                if source in character_names:
                    _log_rejected_update(source, target)
                    continue
                result.glossary_updates.add_term(source, target)
        missing = result.missing_ids()
        if missing:
            logger.warning(
                "Model response omitted %d of %d entries",
                len(missing),
                len(entry_ids),
                extra={
                    "event": "pipeline.translation.missing_entries",
                    "attributes": {"missing": missing},
                },
            )
        return result

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------
    def apply_batch_result(self, document: SubtitleDocument, result: BatchResult) -> int:
        """Write non-empty translations into ``document``; return how many were applied."""

        applied = 0
        for translation in result.translations:
            entry = document.get_entry(translation.id)
            if entry is None or not translation.translated:
                continue
            entry.set_translation(translation.translated, translation.confidence)
            applied += 1
        if self.config.accept_glossary_updates and not result.glossary_updates.is_empty():
            document.glossary.merge(_without_names(result.glossary_updates, document.glossary))
        return applied

    @staticmethod
    def _already_translated(document: SubtitleDocument, window: ContextWindow) -> bool:
        # Entries restored from a saved session keep their stored translation.
        for entry_id in window.batch_ids():
            entry = document.get_entry(entry_id)
            if entry is None or not entry.is_translated:
                return False
        return True

    def _fill_from_cache(self, document: SubtitleDocument, window: ContextWindow) -> int:
        """Apply cached translations to untranslated batch entries; return how many hit."""

        hits = 0
        for item in window.current_batch:
            entry = document.get_entry(item.id)
            if entry is None or entry.is_translated:
                continue
            cached = self.cache.get(item.text, window.source_language, window.target_language)
            if cached:
                entry.set_translation(cached, 1.0)
                hits += 1
        if hits:
            logger.debug(
                "Reused %d cached translations",
                hits,
                extra={
                    "event": "pipeline.translation.cache_hits",
                    "attributes": {"entries": window.batch_ids()},
                },
            )
        return hits

    def _remember_results(self, window: ContextWindow, result: BatchResult) -> None:
        texts = {item.id: item.text for item in window.current_batch}
        for translation in result.translations:
            # Placeholders carry no text and are never cached.
            if not translation.translated or translation.id not in texts:
                continue
            self.cache.store(
                texts[translation.id],
                window.source_language,
                window.target_language,
                translation.translated,
            )

    def translate_document(
        self,
        provider: TranslationProvider,
        document: SubtitleDocument,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> TranslationStats:
        """Translate every window of ``document`` strictly in order."""

        stats = self.last_stats = TranslationStats()
        if not document.entries:
            return stats

        window_config = self.config.window_config
        sizer = (
            DynamicWindowSizer(self.config.dynamic_sizing)
            if self.config.dynamic_sizing is not None
            else None
        )
        stats.total_batches = count_windows(document, window_config, sizer=sizer)

        for window in iter_windows(document, window_config, sizer=sizer):
            if cancel_check is not None and cancel_check():
                raise PipelineCancelled(completed_batches=stats.completed_batches)

            if self._already_translated(document, window):
                stats.completed_batches += 1
                stats.skipped_batches += 1
                if progress_callback is not None:
                    progress_callback(stats.completed_batches / stats.total_batches * 100.0)
                continue

            if self.cache is not None:
                stats.cached_entries += self._fill_from_cache(document, window)
                pending = [
                    item
                    for item in window.current_batch
                    if not document.get_entry(item.id).is_translated
                ]
                if not pending:
                    stats.completed_batches += 1
                    if progress_callback is not None:
                        progress_callback(stats.completed_batches / stats.total_batches * 100.0)
                    continue
                if len(pending) < len(window.current_batch):
                    window = window.with_batch(pending)

            if window.needs_summarization(window_config):
                history = document.entries[: window.position]
                window = window.with_history_summary(
                    self._summarizer.summarize_history(history).text
                )

            with log_mgr.log_context(batch=stats.completed_batches + 1):
                result = self.translate_batch(provider, window)
                applied = self.apply_batch_result(document, result)
                if self.cache is not None:
                    self._remember_results(window, result)

            stats.completed_batches += 1
            stats.total_entries_translated += applied
            stats.total_retries += result.retries_used
            if result.used_fallback:
                stats.fallback_used_count += 1

            if progress_callback is not None:
                progress_callback(stats.completed_batches / stats.total_batches * 100.0)

        logger.info(
            "Translated %d entries in %d batches",
            stats.total_entries_translated,
            stats.completed_batches,
            extra={
                "event": "pipeline.translation.completed",
                "attributes": {
                    "retries": stats.total_retries,
                    "fallbacks": stats.fallback_used_count,
                    "cached": stats.cached_entries,
                },
            },
        )
        return stats


__all__ = [
    "BatchResult",
    "CancelCheck",
    "ProgressCallback",
    "TranslationPass",
    "TranslationPassConfig",
    "TranslationStats",
]
