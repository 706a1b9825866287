"""Three-phase translation pipeline: analysis, translation, validation."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Tuple

from subtitle_translator import logging_manager as log_mgr
from subtitle_translator import observability
from subtitle_translator.document import OutputRow, SubtitleDocument
from subtitle_translator.providers.base import TranslationProvider
from subtitle_translator.quality import QualityMetrics, QualityScore, TranslationError
from subtitle_translator.translation_cache import TranslationCache

from .analysis_pass import AnalysisConfig, AnalysisPass, AnalysisResult
from .translation_pass import CancelCheck, TranslationPass, TranslationPassConfig, TranslationStats
from .validation_pass import ValidationConfig, ValidationPass, ValidationReport

logger = log_mgr.get_logger().getChild("pipeline.orchestrator")


class PipelinePhase(str, enum.Enum):
    ANALYSIS = "analysis"
    TRANSLATION = "translation"
    VALIDATION = "validation"


# Share of overall progress each phase starts at and spans.
_PHASE_SPANS = {
    PipelinePhase.ANALYSIS: (0.0, 0.1),
    PipelinePhase.TRANSLATION: (0.1, 0.8),
    PipelinePhase.VALIDATION: (0.9, 0.1),
}


@dataclass(slots=True)
class PipelineProgress:
    phase: PipelinePhase
    total_entries: int = 0
    phase_progress: float = 0.0
    overall_progress: float = 0.0
    status: str = ""
    entries_processed: int = 0

    def update(self, phase_progress: float, status: str) -> None:
        self.phase_progress = max(0.0, min(1.0, phase_progress))
        self.status = status
        start, span = _PHASE_SPANS[self.phase]
        self.overall_progress = start + self.phase_progress * span

    def next_phase(self, phase: PipelinePhase) -> None:
        self.phase = phase
        self.phase_progress = 0.0
        self.overall_progress = _PHASE_SPANS[phase][0]
        self.status = f"Starting {phase.value} phase"

    def snapshot(self) -> "PipelineProgress":
        return replace(self)


ProgressListener = Callable[[PipelineProgress], None]


@dataclass(frozen=True)
class PipelineConfig:
    source_language: str = "en"
    target_language: str = "fr"
    enable_analysis: bool = True
    enable_validation: bool = True
    analysis_config: AnalysisConfig = field(default_factory=AnalysisConfig)
    translation_config: TranslationPassConfig = field(default_factory=TranslationPassConfig)
    validation_config: ValidationConfig = field(default_factory=ValidationConfig)

    @classmethod
    def new(cls, source_language: str, target_language: str) -> "PipelineConfig":
        return cls(
            source_language=source_language,
            target_language=target_language,
            validation_config=ValidationConfig.for_language_pair(source_language, target_language),
        )

    @classmethod
    def fast(cls, source_language: str, target_language: str) -> "PipelineConfig":
        return cls(
            source_language=source_language,
            target_language=target_language,
            enable_validation=False,
            analysis_config=AnalysisConfig.minimal(),
            translation_config=TranslationPassConfig.fast(),
        )

    @classmethod
    def quality(cls, source_language: str, target_language: str) -> "PipelineConfig":
        return cls(
            source_language=source_language,
            target_language=target_language,
            analysis_config=AnalysisConfig.thorough(),
            translation_config=TranslationPassConfig.quality(),
            validation_config=ValidationConfig.strict(),
        )

    @classmethod
    def for_profile(
        cls, profile: str, source_language: str, target_language: str
    ) -> "PipelineConfig":
        """Return the preset named ``profile`` (``fast``, ``default`` or ``quality``)."""

        normalized = (profile or "default").strip().lower()
        if normalized == "fast":
            return cls.fast(source_language, target_language)
        if normalized == "quality":
            return cls.quality(source_language, target_language)
        if normalized in {"default", "new"}:
            return cls.new(source_language, target_language)
        raise ValueError(f"Unknown pipeline profile: {profile!r}")

    def with_instructions(self, instructions: Optional[str]) -> "PipelineConfig":
        if not instructions:
            return self
        return replace(
            self, translation_config=self.translation_config.with_instructions(instructions)
        )


@dataclass(slots=True)
class PipelineResult:
    analysis: Optional[AnalysisResult] = None
    translation_stats: TranslationStats = field(default_factory=TranslationStats)
    validation: Optional[ValidationReport] = None
    quality: Optional[QualityScore] = None
    duration: float = 0.0
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failure(
        cls,
        error: str,
        duration: float,
        *,
        analysis: Optional[AnalysisResult] = None,
        translation_stats: Optional[TranslationStats] = None,
    ) -> "PipelineResult":
        return cls(
            analysis=analysis,
            translation_stats=translation_stats or TranslationStats(),
            duration=duration,
            success=False,
            error=error,
        )

    def quality_score(self) -> Optional[float]:
        if self.validation is None:
            return None
        return self.validation.quality_score

    def summary(self) -> str:
        parts = [f"Duration: {self.duration:.2f}s"]
        if self.analysis is not None:
            parts.append(f"Analysis: {self.analysis.description()}")
        parts.append(
            f"Translation: {self.translation_stats.total_entries_translated} entries "
            f"in {self.translation_stats.total_batches} batches"
        )
        if self.translation_stats.cached_entries:
            parts.append(f"Cache: {self.translation_stats.cached_entries} entries reused")
        if self.validation is not None:
            parts.append(f"Validation: {self.validation.quality_score * 100:.1f}% quality score")
        if not self.success and self.error:
            parts.append(f"Error: {self.error}")
        return " | ".join(parts)


class TranslationPipeline:
    """Run analysis, translation and validation over one document."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        translation_pass: Optional[TranslationPass] = None,
        cache: Optional[TranslationCache] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.analysis_pass = AnalysisPass(self.config.analysis_config)
        self.translation_pass = translation_pass or TranslationPass(
            self.config.translation_config, cache=cache
        )
        self.validation_pass = ValidationPass(self.config.validation_config)
        self._metrics = QualityMetrics()

    @classmethod
    def for_languages(cls, source_language: str, target_language: str) -> "TranslationPipeline":
        return cls(PipelineConfig.new(source_language, target_language))

    def translate(
        self,
        provider: TranslationProvider,
        document: SubtitleDocument,
        progress_callback: Optional[ProgressListener] = None,
        cancel_check: Optional[CancelCheck] = None,
    ) -> PipelineResult:
        """Translate ``document`` in place and return what each phase produced.

        Translation failures that recovery could not absorb are reported on a
        failed :class:`PipelineResult`. Cancellation propagates as
        :class:`~subtitle_translator.pipeline.errors.PipelineCancelled`.
        """

        started = time.perf_counter()
        if document.target_language is None:
            document.target_language = self.config.target_language
        progress = PipelineProgress(PipelinePhase.ANALYSIS, total_entries=len(document.entries))
        attributes = {
            "entries": len(document.entries),
            "source_language": document.source_language,
            "target_language": document.target_language,
            "provider": provider.name,
        }

        def emit() -> None:
            if progress_callback is not None:
                progress_callback(progress.snapshot())

        analysis: Optional[AnalysisResult] = None
        if self.config.enable_analysis:
            with observability.pipeline_stage("analysis", attributes):
                progress.update(0.0, "Analyzing document...")
                emit()
                analysis = self.analysis_pass.analyze_and_update(document)
                progress.update(1.0, f"Analysis complete: {analysis.description()}")
                emit()

        progress.next_phase(PipelinePhase.TRANSLATION)
        emit()

        def on_translation_progress(percent: float) -> None:
            progress.update(percent / 100.0, f"Translating... {percent:.1f}%")
            progress.entries_processed = len(document.translated_entries())
            emit()

        try:
            with observability.pipeline_stage("translation", attributes):
                stats = self.translation_pass.translate_document(
                    provider,
                    document,
                    progress_callback=on_translation_progress,
                    cancel_check=cancel_check,
                )
        except TranslationError as exc:
            logger.error(
                "Translation failed: %s",
                exc,
                extra={
                    "event": "pipeline.failed",
                    "attributes": {"kind": exc.kind.value, "entries": exc.affected_entries},
                },
            )
            return PipelineResult.failure(
                f"Translation failed: {exc}",
                time.perf_counter() - started,
                analysis=analysis,
                translation_stats=self.translation_pass.last_stats,
            )

        progress.update(1.0, "Translation complete")
        emit()

        validation: Optional[ValidationReport] = None
        if self.config.enable_validation:
            progress.next_phase(PipelinePhase.VALIDATION)
            with observability.pipeline_stage("validation", attributes):
                progress.update(0.0, "Validating translations...")
                emit()
                validation = self.validation_pass.validate_and_repair(document)
                progress.update(1.0, validation.summary())
                emit()

        quality = self._metrics.score_document(document)
        duration = time.perf_counter() - started
        result = PipelineResult(
            analysis=analysis,
            translation_stats=stats,
            validation=validation,
            quality=quality,
            duration=duration,
        )
        observability.record_metric(
            "subtitle_translator.pipeline.duration", duration, {"provider": provider.name}
        )
        logger.info(
            "Pipeline finished: %s",
            result.summary(),
            extra={
                "event": "pipeline.completed",
                "attributes": {"quality": round(quality.overall, 4)},
            },
        )
        return result

    def analyze(self, document: SubtitleDocument) -> AnalysisResult:
        return self.analysis_pass.analyze_and_update(document)

    def validate(self, document: SubtitleDocument) -> ValidationReport:
        return self.validation_pass.validate_and_repair(document)


def translate_entries(
    rows: Iterable[object],
    provider: TranslationProvider,
    config: Optional[PipelineConfig] = None,
    *,
    progress_callback: Optional[ProgressListener] = None,
    cancel_check: Optional[CancelCheck] = None,
) -> Tuple[List[OutputRow], PipelineResult]:
    """Translate subtitle rows and return output rows with the pipeline result.

    ``rows`` are ``(seq, start_ms, end_ms, text)`` tuples or objects exposing
    those attributes. Timing and numbering are passed through unchanged.
    """

    config = config or PipelineConfig()
    document = SubtitleDocument.from_entries(
        list(rows), config.source_language, config.target_language
    )
    result = TranslationPipeline(config).translate(
        provider, document, progress_callback=progress_callback, cancel_check=cancel_check
    )
    return document.to_output_entries(), result


__all__ = [
    "PipelineConfig",
    "PipelinePhase",
    "PipelineProgress",
    "PipelineResult",
    "ProgressListener",
    "TranslationPipeline",
    "translate_entries",
]
