"""Console-script entry point for subtitle-translator."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from subtitle_translator import config_manager as cfg
from subtitle_translator import logging_manager as log_mgr
from subtitle_translator.config_manager import TranslatorSettings
from subtitle_translator.document import SubtitleDocument
from subtitle_translator.pipeline import (
    PipelineCancelled,
    PipelineConfig,
    PipelinePhase,
    PipelineProgress,
    PipelineResult,
    TranslationPipeline,
)
from subtitle_translator.providers import create_provider
from subtitle_translator.providers.base import TranslationProvider
from subtitle_translator.session import (
    ResumeStatus,
    SessionInfo,
    SessionRepository,
    SessionStatus,
    TranslationCacheStore,
    compute_content_hash,
    create_session_factory,
)
from subtitle_translator.session.repository import StoredTranslation
from subtitle_translator.subtitles import SubtitleProcessingError, load_subtitle_rows, write_srt
from subtitle_translator.translation_cache import TranslationCache
from subtitle_translator.translation_workers import (
    DocumentTranslationRunner,
    assemble_chunks,
    split_rows,
)

from .args import parse_cli_args, settings_overrides

logger = log_mgr.get_logger().getChild("cli")
console_info = log_mgr.console_info

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def build_pipeline_config(settings: TranslatorSettings) -> PipelineConfig:
    config = PipelineConfig.for_profile(
        settings.profile, settings.source_language, settings.target_language
    ).with_instructions(settings.custom_instructions)
    if not settings.enable_analysis or not settings.enable_validation:
        config = replace(
            config,
            enable_analysis=config.enable_analysis and settings.enable_analysis,
            enable_validation=config.enable_validation and settings.enable_validation,
        )
    return config


def default_output_path(input_path: Path, target_language: str) -> Path:
    return input_path.with_name(f"{input_path.stem}.{target_language}.srt")


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn the first Ctrl+C into a cooperative cancel; a second one aborts."""

    cancel_event = threading.Event()

    def _handle_interrupt(signum, frame) -> None:  # pragma: no cover - signal driven
        if cancel_event.is_set():
            raise KeyboardInterrupt
        console_info("Interrupt received; stopping after the current batch...", logger_obj=logger)
        cancel_event.set()

    if threading.current_thread() is not threading.main_thread():
        yield cancel_event
        return
    previous = signal.signal(signal.SIGINT, _handle_interrupt)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


def _progress_logger() -> Callable[[PipelineProgress], None]:
    last_reported = {"percent": -10.0}

    def _report(progress: PipelineProgress) -> None:
        percent = progress.overall_progress * 100.0
        if percent - last_reported["percent"] >= 10.0 or percent >= 100.0:
            last_reported["percent"] = percent
            console_info("[%5.1f%%] %s", percent, progress.status, logger_obj=logger)

    return _report


def _stored_translations(document: SubtitleDocument) -> Dict[int, StoredTranslation]:
    return {
        entry.id: (entry.translated_text, entry.confidence)
        for entry in document.entries
        if entry.translated_text
    }


def _checkpointer(
    repository: SessionRepository, session_id: str, document: SubtitleDocument
) -> Callable[[PipelineProgress], None]:
    """Store new translations after every translated batch."""

    saved: Dict[int, StoredTranslation] = _stored_translations(document)

    def _checkpoint(progress: PipelineProgress) -> None:
        if progress.phase is not PipelinePhase.TRANSLATION:
            return
        pending = {
            entry_id: stored
            for entry_id, stored in _stored_translations(document).items()
            if saved.get(entry_id) != stored
        }
        if pending:
            repository.update_progress(session_id, pending)
            saved.update(pending)

    return _checkpoint


def _fan_out(
    *listeners: Callable[[PipelineProgress], None]
) -> Callable[[PipelineProgress], None]:
    def _notify(progress: PipelineProgress) -> None:
        for listener in listeners:
            listener(progress)

    return _notify


def _open_session(
    repository: SessionRepository,
    settings: TranslatorSettings,
    input_path: Path,
    content_hash: str,
    document: SubtitleDocument,
    resume: bool,
) -> SessionInfo:
    if resume:
        existing = repository.find_resumable(
            content_hash,
            settings.source_language,
            settings.target_language,
            settings.provider,
            settings.model,
        )
        if existing is not None:
            outcome = repository.resume(existing.id, content_hash)
            if outcome.status is ResumeStatus.RESUMED and outcome.session is not None:
                for entry_id, (text, confidence) in outcome.translations.items():
                    entry = document.get_entry(entry_id)
                    if entry is not None:
                        entry.set_translation(text, confidence)
                console_info("Resuming session %s", outcome.session, logger_obj=logger)
                return outcome.session
    return repository.create(
        source_path=str(input_path),
        content_hash=content_hash,
        source_language=settings.source_language,
        target_language=settings.target_language,
        provider=settings.provider,
        model=settings.model,
        total_entries=len(document.entries),
    )


def _build_cache(
    settings: TranslatorSettings, provider: TranslationProvider, session_factory
) -> Optional[TranslationCache]:
    if not settings.enable_cache:
        return None
    store = TranslationCacheStore(
        session_factory, provider=provider.name, model=getattr(provider, "model", "") or ""
    )
    return TranslationCache(store=store)


def _translate_single(
    args: argparse.Namespace,
    settings: TranslatorSettings,
    provider: TranslationProvider,
    input_path: Path,
    output_path: Path,
    rows: List,
) -> int:
    document = SubtitleDocument.from_entries(
        [row.as_tuple() for row in rows],
        settings.source_language,
        settings.target_language,
        metadata={"source_path": str(input_path)},
    )
    session_factory = create_session_factory(settings.resolved_database_url())
    repository = SessionRepository(session_factory)
    content_hash = compute_content_hash(input_path.read_text(encoding="utf-8", errors="replace"))
    session = _open_session(repository, settings, input_path, content_hash, document, args.resume)

    pipeline = TranslationPipeline(
        build_pipeline_config(settings),
        cache=_build_cache(settings, provider, session_factory),
    )
    try:
        with _cancel_on_interrupt() as cancel_event, log_mgr.log_context(session_id=session.id):
            result: PipelineResult = pipeline.translate(
                provider,
                document,
                progress_callback=_fan_out(
                    _progress_logger(), _checkpointer(repository, session.id, document)
                ),
                cancel_check=cancel_event.is_set,
            )
    except PipelineCancelled as exc:
        repository.update_progress(session.id, _stored_translations(document))
        repository.mark_paused(session.id)
        console_info(
            "Cancelled after %d batches; resume with the same command.",
            exc.completed_batches,
            logger_obj=logger,
        )
        return EXIT_CANCELLED

    repository.update_progress(session.id, _stored_translations(document))
    if not result.success:
        repository.mark_failed(session.id, result.error)
        log_mgr.console_warning("%s", result.summary(), logger_obj=logger)
        return EXIT_FAILED

    write_srt(output_path, document.to_output_entries())
    repository.mark_complete(session.id)
    console_info("%s", result.summary(), logger_obj=logger)
    if result.quality is not None:
        console_info("%s", result.quality.summary(), logger_obj=logger)
    console_info("Wrote %s", output_path, logger_obj=logger)
    return EXIT_OK


def _translate_chunked(
    settings: TranslatorSettings,
    provider: TranslationProvider,
    output_path: Path,
    rows: List,
    chunk_size: int,
) -> int:
    config = build_pipeline_config(settings)
    cache = _build_cache(
        settings, provider, create_session_factory(settings.resolved_database_url())
    )
    runner = DocumentTranslationRunner(
        lambda: TranslationPipeline(config, cache=cache),
        provider,
        max_concurrency=settings.max_concurrency,
        dispatch_delay=settings.dispatch_delay_seconds,
    )
    chunks = split_rows([row.as_tuple() for row in rows], chunk_size)
    documents = [
        SubtitleDocument.from_entries(chunk, settings.source_language, settings.target_language)
        for chunk in chunks
    ]

    def _report(completed: int, total: int) -> None:
        console_info("Translated chunk %d/%d", completed, total, logger_obj=logger)

    outcomes = runner.run(documents, progress_callback=_report)
    failures = [outcome for outcome in outcomes if not outcome.result.success]
    for outcome in failures:
        log_mgr.console_warning(
            "Chunk %d failed: %s", outcome.index + 1, outcome.result.error, logger_obj=logger
        )
    if failures:
        return EXIT_FAILED

    write_srt(output_path, assemble_chunks(outcome.output_rows for outcome in outcomes))
    console_info("Wrote %s", output_path, logger_obj=logger)
    return EXIT_OK


def run_translate(args: argparse.Namespace) -> int:
    settings = cfg.load_configuration(args.config, settings_overrides(args))
    log_mgr.configure_logging_level(debug_enabled=settings.debug)

    input_path = Path(args.input_file).expanduser()
    output_path = (
        Path(args.output_file).expanduser()
        if args.output_file
        else default_output_path(input_path, settings.target_language)
    )
    log_mgr.ensure_correlation_context(
        correlation_id=str(uuid.uuid4()), document_id=input_path.name
    )

    try:
        rows = load_subtitle_rows(input_path)
    except SubtitleProcessingError as exc:
        log_mgr.console_warning("%s", exc, logger_obj=logger)
        return EXIT_FAILED

    provider = create_provider(settings.provider, settings)
    try:
        if args.chunk_size:
            return _translate_chunked(settings, provider, output_path, rows, args.chunk_size)
        return _translate_single(args, settings, provider, input_path, output_path, rows)
    finally:
        close = getattr(provider, "close", None)
        if callable(close):
            close()


def run_sessions(args: argparse.Namespace) -> int:
    settings = cfg.load_configuration(args.config, settings_overrides(args))
    log_mgr.configure_logging_level(debug_enabled=settings.debug)
    repository = SessionRepository(create_session_factory(settings.resolved_database_url()))
    status = SessionStatus(args.status) if args.status else None
    sessions = repository.list_sessions(status)
    if not sessions:
        console_info("No translation sessions found.", logger_obj=logger)
    for session in sessions:
        console_info("%s %s", session, session.source_path, logger_obj=logger)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the subtitle-translator CLI."""

    args = parse_cli_args(argv)
    if args.command == "sessions":
        return run_sessions(args)
    return run_translate(args)


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
