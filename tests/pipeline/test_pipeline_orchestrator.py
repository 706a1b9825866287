"""Tests for the three-phase translation pipeline."""

from __future__ import annotations

import json

import pytest

from subtitle_translator.context import WindowConfig
from subtitle_translator.pipeline import (
    PipelineCancelled,
    PipelineConfig,
    PipelinePhase,
    PipelineProgress,
    PipelineResult,
    TranslationPassConfig,
    TranslationPipeline,
    TranslationStats,
    translate_entries,
)
from subtitle_translator.pipeline.validation_pass import IssueKind
from subtitle_translator.providers import MockProvider
from subtitle_translator.quality import ErrorKind, TranslationError

pytestmark = pytest.mark.pipeline

DIALOGUE = [
    "ALICE: Where were you last night?",
    "BOB: Working late, Alice.",
    "ALICE: Again? You promised.",
    "[door slams]",
    "BOB: I know, Alice. I'm sorry.",
]


class TestPipelineConfig:
    """Tests for PipelineConfig presets."""

    def test_default_profile_uses_language_pair_bounds(self):
        config = PipelineConfig.for_profile("default", "en", "ja")
        assert config.validation_config.max_length_ratio == pytest.approx(0.9)
        assert (config.source_language, config.target_language) == ("en", "ja")

    def test_fast_profile_disables_validation(self):
        config = PipelineConfig.for_profile("FAST", "en", "de")
        assert not config.enable_validation
        assert not config.analysis_config.detect_scenes

    def test_quality_profile(self):
        config = PipelineConfig.for_profile("quality", "en", "de")
        assert config.validation_config.min_confidence_threshold == 0.7
        assert config.translation_config.dynamic_sizing is not None

    def test_unknown_profile(self):
        with pytest.raises(ValueError):
            PipelineConfig.for_profile("turbo", "en", "fr")

    def test_with_instructions(self):
        config = PipelineConfig()
        assert config.with_instructions(None) is config
        assert (
            config.with_instructions("Keep it formal").translation_config.custom_instructions
            == "Keep it formal"
        )


class TestPipelineProgress:
    """Tests for PipelineProgress arithmetic."""

    def test_translation_span(self):
        progress = PipelineProgress(PipelinePhase.TRANSLATION)
        progress.update(0.5, "half")
        assert progress.overall_progress == pytest.approx(0.5)

    def test_progress_is_clamped(self):
        progress = PipelineProgress(PipelinePhase.VALIDATION)
        progress.update(3.0, "done")
        assert progress.phase_progress == 1.0
        assert progress.overall_progress == pytest.approx(1.0)

    def test_next_phase(self):
        progress = PipelineProgress(PipelinePhase.ANALYSIS)
        progress.next_phase(PipelinePhase.VALIDATION)
        assert progress.overall_progress == pytest.approx(0.9)
        assert progress.status == "Starting validation phase"


class TestTranslationPipeline:
    """Tests for TranslationPipeline.translate."""

    def test_full_run(self, make_document):
        document = make_document(DIALOGUE, target_language=None)
        updates = []

        result = TranslationPipeline(PipelineConfig.new("en", "fr")).translate(
            MockProvider.working(), document, progress_callback=updates.append
        )

        assert result.success
        assert document.target_language == "fr"
        assert document.is_fully_translated()
        assert result.analysis is not None and result.analysis.speaker_count == 2
        assert document.glossary.is_character_name("Alice")
        assert result.validation is not None and result.validation.passed()
        assert result.quality is not None and result.quality.grade() == "A"
        assert result.quality_score() == result.validation.quality_score

        phases = [update.phase for update in updates]
        assert phases[0] is PipelinePhase.ANALYSIS
        assert phases[-1] is PipelinePhase.VALIDATION
        overall = [update.overall_progress for update in updates]
        assert overall == sorted(overall)
        assert overall[-1] == pytest.approx(1.0)

    def test_repair_keeps_character_names(self, make_document):
        document = make_document(["John is here.", "John left.", "Hello John."])
        reply = json.dumps(
            {
                "translations": [
                    {"id": 1, "translated": "John est la.", "confidence": 0.9},
                    {"id": 2, "translated": "John est parti.", "confidence": 0.9},
                    {"id": 3, "translated": "Bonjour John.", "confidence": 0.9},
                ],
                "notes": {"glossary_updates": {"John": "Jean"}},
            }
        )

        result = TranslationPipeline(PipelineConfig.new("en", "fr")).translate(
            MockProvider([reply]), document
        )

        assert result.success
        assert document.glossary.is_character_name("John")
        assert [entry.translated_text for entry in document.entries] == [
            "John est la.",
            "John est parti.",
            "Bonjour John.",
        ]
        assert not [
            issue
            for issue in result.validation.issues
            if issue.kind is IssueKind.GLOSSARY_INCONSISTENCY
        ]

    def test_fast_profile_skips_validation(self, make_document):
        document = make_document(DIALOGUE)
        result = TranslationPipeline(PipelineConfig.fast("en", "fr")).translate(
            MockProvider.working(), document
        )
        assert result.success
        assert result.validation is None
        assert result.quality_score() is None

    def test_analysis_can_be_disabled(self, make_document):
        document = make_document(DIALOGUE)
        config = PipelineConfig(enable_analysis=False)
        result = TranslationPipeline(config).translate(MockProvider.working(), document)
        assert result.analysis is None
        assert document.glossary.is_empty()

    def test_unrecoverable_error_gives_failed_result(self, make_document):
        document = make_document(DIALOGUE)
        provider = MockProvider([TranslationError(ErrorKind.CONFIG_ERROR, "model not found")])

        result = TranslationPipeline().translate(provider, document)

        assert not result.success
        assert result.error.startswith("Translation failed: config_error: model not found")
        assert result.analysis is not None
        assert "Error: Translation failed" in result.summary()

    def test_failed_result_keeps_partial_stats(self, make_document):
        document = make_document(DIALOGUE)
        first = json.dumps(
            {
                "translations": [
                    {"id": 1, "translated": "ALICE: Ou etais-tu ?", "confidence": 0.9},
                    {"id": 2, "translated": "BOB: Au travail, Alice.", "confidence": 0.9},
                ]
            }
        )
        provider = MockProvider([first, TranslationError(ErrorKind.CONFIG_ERROR, "model not found")])
        config = PipelineConfig(
            translation_config=TranslationPassConfig(window_config=WindowConfig(batch_size=2))
        )

        result = TranslationPipeline(config).translate(provider, document)

        assert not result.success
        assert result.translation_stats.total_batches == 3
        assert result.translation_stats.completed_batches == 1
        assert result.translation_stats.total_entries_translated == 2

    def test_cancellation_propagates(self, make_document):
        document = make_document(DIALOGUE)
        with pytest.raises(PipelineCancelled):
            TranslationPipeline().translate(
                MockProvider.working(), document, cancel_check=lambda: True
            )
        assert not document.translated_entries()

    def test_analyze_and_validate_helpers(self, make_document):
        document = make_document(DIALOGUE)
        pipeline = TranslationPipeline.for_languages("en", "fr")
        assert pipeline.analyze(document).speaker_count == 2
        report = pipeline.validate(document)
        assert len(report.issues) == len(DIALOGUE)


class TestPipelineResult:
    """Tests for PipelineResult reporting."""

    def test_failure_summary(self):
        result = PipelineResult.failure(
            "boom", 1.5, translation_stats=TranslationStats(total_batches=2)
        )
        assert not result.success
        assert result.summary() == (
            "Duration: 1.50s | Translation: 0 entries in 2 batches | Error: boom"
        )


class TestTranslateEntries:
    """Tests for the row-level convenience entry point."""

    def test_rows_keep_numbering_and_timing(self, make_rows):
        rows = make_rows(["Hello there", "<i>Good night</i>"])
        output, result = translate_entries(
            rows, MockProvider.working(), PipelineConfig.new("en", "fr")
        )
        assert result.success
        assert [row[:3] for row in output] == [row[:3] for row in rows]
        assert [row[3] for row in output] == ["Hello there", "<i>Good night</i>"]
